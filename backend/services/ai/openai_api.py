"""
Helper for interacting with the OpenAI API.

Provides chat completion with error handling for the scenario generator and
the reveal commentary. Callers own the fallback behaviour.
"""
import asyncio
import logging

from openai import AsyncOpenAI, OpenAIError

from backend.config import get_settings

__all__ = [
    "OpenAIError",
    "OpenAIAPIError",
    "generate_response",
]

logger = logging.getLogger(__name__)


class OpenAIAPIError(RuntimeError):
    """Raised when the OpenAI API cannot be contacted or returns an error."""


async def generate_response(
        prompt: str,
        system_prompt: str = "You are a playful host at a baby shower party game.",
        model: str | None = None,
        timeout: float = 10.0,
        temperature: float = 0.8,
        max_tokens: int = 500,
) -> str:
    """
    Generate a response using OpenAI API.

    Args:
        prompt: User prompt to send to the OpenAI API
        system_prompt: System message framing the request
        model: OpenAI model to use (defaults to settings.ai_openai_model)
        timeout: Hard timeout in seconds for the whole call
        temperature: Sampling temperature
        max_tokens: Upper bound on generated tokens

    Returns:
        The generated string, stripped

    Raises:
        OpenAIAPIError: If API key is missing, the call times out or fails,
            or the response is empty
    """
    settings = get_settings()

    if not settings.ai_enabled:
        raise OpenAIAPIError("AI generation disabled by configuration")

    if not settings.openai_api_key:
        raise OpenAIAPIError("OPENAI_API_KEY environment variable must be set")

    model_name = model or settings.ai_openai_model

    try:
        client = AsyncOpenAI(api_key=settings.openai_api_key, timeout=timeout, max_retries=0)

        response = await asyncio.wait_for(
            client.chat.completions.create(
                model=model_name,
                messages=[
                    {"role": "system", "content": system_prompt},
                    {"role": "user", "content": prompt}
                ],
                temperature=temperature,
                max_tokens=max_tokens,
            ),
            timeout=timeout,
        )

        if not response.choices:
            raise OpenAIAPIError("OpenAI API returned no choices")

        choice = response.choices[0]
        if not choice.message:
            raise OpenAIAPIError("OpenAI API returned choice without message")

        output_text = choice.message.content
        if not output_text or not output_text.strip():
            logger.warning(f"OpenAI returned empty content. Model: {model_name}, "
                           f"Finish reason: {choice.finish_reason}")
            raise OpenAIAPIError("OpenAI API returned empty response content")

        return output_text.strip()

    except asyncio.TimeoutError as exc:
        raise OpenAIAPIError(f"OpenAI API call timed out after {timeout}s") from exc
    except OpenAIError as exc:
        raise OpenAIAPIError(f"OpenAI API error: {exc}") from exc
    except Exception as exc:
        if isinstance(exc, OpenAIAPIError):
            raise
        raise OpenAIAPIError(f"Failed to contact OpenAI API: {exc}") from exc
