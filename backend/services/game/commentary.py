"""Roast commentary and celebration effects for revealed rounds."""
import asyncio
import logging
import random

from backend.config import get_settings
from backend.services.ai.openai_api import OpenAIAPIError, generate_response
from backend.services.ai.prompt_builder import COMMENTARY_SYSTEM_PROMPT, build_commentary_prompt

logger = logging.getLogger(__name__)

# (minimum percentage gap, roast), checked from the largest gap down
DEFAULT_ROASTS = [
    (100, "100% consensus! Either you're all psychic or this was way too obvious!"),
    (70, "The crystal ball was cloudy today, folks! Even grandma's intuition failed!"),
    (50, "Wow, that's a landslide! Either the crowd is brilliant or someone needs to rethink their life choices!"),
    (30, "Your parenting intuition score: needs work! Better luck next round, folks!"),
    (10, "The crowd thinks they know best, but plot twist: nobody knows anything about babies!"),
    (0, "Well folks, looks like we're evenly split! Even the universe is undecided!"),
]

FLAVOR_TEXTS = [
    " Time to call the parenting experts!",
    " Someone's been watching too many parenting videos!",
    " The baby is definitely judging your choices right now.",
    " Remember this moment next time you're confident!",
    " This is why we can't have nice things!",
]


def percentages(votes_a: int, votes_b: int) -> tuple[int, int]:
    """Rounded vote shares; (0, 0) when nobody voted."""
    total = votes_a + votes_b
    if total == 0:
        return 0, 0
    return round(votes_a / total * 100), round(votes_b / total * 100)


def particle_effect(percentage_a: int, percentage_b: int) -> str:
    """Pick the reveal animation from how lopsided the vote was."""
    gap = abs(percentage_a - percentage_b)
    if gap > 60:
        return "fireworks"
    if gap > 40:
        return "confetti"
    if gap > 20:
        return "stars"
    return "hearts"


def default_roast(percentage_a: int, percentage_b: int, rng: random.Random | None = None) -> str:
    """Template roast keyed by the vote gap, with a random flavor line."""
    gap = abs(percentage_a - percentage_b)
    roast = next(text for threshold, text in DEFAULT_ROASTS if gap >= threshold)
    flavor = (rng or random).choice(FLAVOR_TEXTS)
    return roast + flavor


async def generate_commentary(
    prompt_text: str,
    role_a_name: str,
    role_b_name: str,
    votes_a: int,
    votes_b: int,
    winner: str,
    is_tie: bool,
    actual_choice: str | None = None,
) -> str:
    """Roast line for a revealed round. Never raises.

    Uses the AI service when available and falls back to the gap-keyed
    template table on any failure.
    """
    settings = get_settings()
    percentage_a, percentage_b = percentages(votes_a, votes_b)

    crowd_name = role_a_name if winner == "A" else role_b_name
    crowd_percentage = percentage_a if winner == "A" else percentage_b
    actual_name = None
    if actual_choice:
        actual_name = role_a_name if actual_choice == "A" else role_b_name

    try:
        prompt = build_commentary_prompt(
            prompt_text,
            crowd_name,
            crowd_percentage,
            is_tie,
            actual_name,
        )
        return await asyncio.wait_for(
            generate_response(
                prompt,
                system_prompt=COMMENTARY_SYSTEM_PROMPT,
                timeout=settings.ai_commentary_timeout_seconds,
                max_tokens=100,
            ),
            timeout=settings.ai_commentary_timeout_seconds,
        )
    except asyncio.TimeoutError:
        logger.warning("AI commentary timed out, using default roast")
    except OpenAIAPIError as e:
        logger.info(f"AI commentary unavailable ({e}), using default roast")
    except Exception as e:
        logger.error(f"Unexpected error generating commentary: {e}", exc_info=True)

    return default_roast(percentage_a, percentage_b)
