"""Scenario generation for Mom vs Dad rounds.

Tries the AI text service first and falls back to a built-in template table.
The fallback path never raises: it is what keeps the game-start action
available when the AI service is slow, down or talking nonsense.
"""
import asyncio
import json
import logging
import re
from dataclasses import dataclass

from backend.config import get_settings
from backend.models.base import ScenarioSource
from backend.services.ai.openai_api import OpenAIAPIError, generate_response
from backend.services.ai.prompt_builder import (
    SCENARIO_SYSTEM_PROMPT,
    THEME_CONTEXTS,
    build_scenario_prompt,
)
from backend.services.game.exceptions import UpstreamError

logger = logging.getLogger(__name__)

MIN_INTENSITY = 0.1
MAX_INTENSITY = 1.0

_CODE_FENCE_RE = re.compile(r"```(?:json|JSON)?\s*|\s*```")

# {a} and {b} are replaced with the two role names.
FALLBACK_SCENARIOS: dict[str, list[tuple[str, str, str, float]]] = {
    "general": [
        ("It's 3 AM and the baby explodes a diaper everywhere",
         "{a} would retch dramatically", "{b} would clean it up immediately", 0.7),
        ("Baby's first solid food reaction",
         "{a} would google frantically", "{b} would take a video for memories", 0.5),
        ("Lost pacifier at 2 AM",
         "{a} would sanitize it", "{b} would buy a new one", 0.4),
        ("Baby laughs at the dog but not at the parents",
         "{a} would be offended", "{b} would high-five the dog", 0.6),
        ("Baby says a first word",
         "{a} would cry happy tears", "{b} would compete to teach more words", 0.5),
        ("Baby reaches for a grandparent instead of a parent",
         "{a} would fake tears", "{b} would tease about it", 0.6),
        ("Baby's first bath time chaos",
         "{a} would worry about the water temperature", "{b} would splash around playfully", 0.5),
        ("Middle of the night feeding duty",
         "{a} would be up before the first cry", "{b} would warm a bottle half asleep", 0.4),
        ("Baby's first steps",
         "{a} would clap and cheer", "{b} would video call everyone", 0.5),
        ("Baby refuses to sleep at bedtime",
         "{a} would try every trick in the book", "{b} would read the same book ten times", 0.6),
    ],
    "farm": [
        ("The baby's first visit to a petting zoo",
         "{a} would bring hand sanitizer for every goat", "{b} would try to ride the pony", 0.6),
        ("A rooster keeps waking the baby at dawn",
         "{a} would negotiate with the rooster", "{b} would record a rooster lullaby remix", 0.8),
        ("The baby wants to feed the ducks",
         "{a} would pack organic duck snacks", "{b} would get chased by a goose", 0.7),
    ],
    "funny": [
        ("The baby gets hold of the TV remote",
         "{a} would childproof every button", "{b} would let the baby pick the movie", 0.7),
        ("The baby sneezes food across the table",
         "{a} would grab the wipes", "{b} would score it out of ten", 0.9),
        ("The baby learns to blow raspberries",
         "{a} would politely applaud", "{b} would challenge the baby to a contest", 0.8),
    ],
    "sleep": [
        ("The baby finally sleeps at 4 AM",
         "{a} would tiptoe out in silence", "{b} would sleep on the nursery floor", 0.6),
        ("Sleep training night one",
         "{a} would follow the chart to the minute", "{b} would cave after thirty seconds", 0.7),
        ("Both parents are awake at 3 AM",
         "{a} would start folding laundry", "{b} would make a midnight snack", 0.5),
    ],
    "feeding": [
        ("The baby rejects mashed peas",
         "{a} would try twelve more recipes", "{b} would do the airplane spoon", 0.6),
        ("Bottle prep in the dark",
         "{a} would measure it perfectly blindfolded", "{b} would spill formula everywhere", 0.7),
        ("The baby steals food from a plate",
         "{a} would check it for allergens", "{b} would share the fries", 0.6),
    ],
    "messy": [
        ("A blowout during a family photo",
         "{a} would have a spare outfit ready", "{b} would keep smiling for the camera", 0.9),
        ("Spaghetti night with the baby",
         "{a} would lay down a tarp", "{b} would join in the mess", 0.8),
        ("The baby finds the finger paint",
         "{a} would frame the wall art", "{b} would add a signature", 0.7),
    ],
    "emotional": [
        ("The baby's first day at daycare",
         "{a} would cry in the parking lot", "{b} would pretend not to cry", 0.5),
        ("The baby outgrows the newborn clothes",
         "{a} would keep every single onesie", "{b} would make a memory quilt", 0.4),
        ("The baby says 'I love you' for the first time",
         "{a} would record it on loop", "{b} would say it back a hundred times", 0.5),
    ],
}


@dataclass
class GeneratedScenario:
    """Round content produced by the generator."""

    prompt_text: str
    option_a: str
    option_b: str
    intensity: float
    source: str = ScenarioSource.FALLBACK.value


def clamp_intensity(value) -> float:
    """Coerce a value into [0.1, 1.0]; anything unparseable becomes 0.5."""
    try:
        intensity = float(value)
    except (TypeError, ValueError):
        return 0.5
    if intensity != intensity:  # NaN
        return 0.5
    return round(max(MIN_INTENSITY, min(MAX_INTENSITY, intensity)), 2)


def normalize_theme(theme: str | None) -> str:
    """Map unknown or empty themes onto ``general``."""
    key = (theme or "general").strip().lower()
    return key if key in THEME_CONTEXTS else "general"


def fallback_scenario(
    role_a_name: str,
    role_b_name: str,
    theme: str | None,
    round_number: int,
    intensity: float | None = None,
) -> GeneratedScenario:
    """Deterministic scenario from the template table. Never raises."""
    templates = FALLBACK_SCENARIOS[normalize_theme(theme)]
    index = (max(round_number, 1) - 1) % len(templates)
    prompt_text, option_a, option_b, default_intensity = templates[index]

    return GeneratedScenario(
        prompt_text=prompt_text,
        option_a=option_a.format(a=role_a_name, b=role_b_name),
        option_b=option_b.format(a=role_a_name, b=role_b_name),
        intensity=clamp_intensity(default_intensity if intensity is None else intensity),
        source=ScenarioSource.FALLBACK.value,
    )


def parse_scenario_response(content: str, requested_intensity: float | None) -> GeneratedScenario:
    """Parse an AI response into a scenario.

    Content may be wrapped in markdown code fences.

    Raises:
        UpstreamError: If the content is empty, not JSON, or missing fields
    """
    if not content or not content.strip():
        raise UpstreamError("AI returned empty content")

    cleaned = _CODE_FENCE_RE.sub("", content).strip()

    try:
        data = json.loads(cleaned)
    except json.JSONDecodeError as exc:
        raise UpstreamError(f"AI returned non-JSON content: {exc}") from exc

    if not isinstance(data, dict):
        raise UpstreamError("AI returned JSON that is not an object")

    prompt_text = data.get("scenario") or data.get("scenario_text") or data.get("prompt")
    option_a = data.get("option_a") or data.get("mom_option")
    option_b = data.get("option_b") or data.get("dad_option")

    fields = (prompt_text, option_a, option_b)
    if not all(isinstance(field, str) and field.strip() for field in fields):
        raise UpstreamError("AI response is missing scenario fields")

    intensity = data.get("intensity")
    if intensity is None:
        intensity = requested_intensity

    return GeneratedScenario(
        prompt_text=prompt_text.strip(),
        option_a=option_a.strip(),
        option_b=option_b.strip(),
        intensity=clamp_intensity(intensity),
        source=ScenarioSource.AI.value,
    )


class ScenarioGenerator:
    """Produces round scenarios from the AI service with template fallback."""

    def __init__(self, timeout: float | None = None):
        self.settings = get_settings()
        self.timeout = timeout or self.settings.ai_scenario_timeout_seconds

    async def generate(
        self,
        role_a_name: str,
        role_b_name: str,
        theme: str | None,
        round_number: int,
        intensity: float | None = None,
    ) -> GeneratedScenario:
        """Generate one round's scenario. Never raises.

        Args:
            role_a_name: Display name of role A
            role_b_name: Display name of role B
            theme: Theme key; unknown themes fall back to ``general``
            round_number: 1-based round number
            intensity: Requested comedy intensity, clamped to [0.1, 1.0]

        Returns:
            GeneratedScenario with ``source`` set to ``ai`` or ``fallback``
        """
        theme_key = normalize_theme(theme)
        requested = None if intensity is None else clamp_intensity(intensity)

        try:
            prompt = build_scenario_prompt(
                role_a_name,
                role_b_name,
                theme_key,
                round_number,
                requested if requested is not None else self.settings.default_intensity,
            )
            content = await asyncio.wait_for(
                generate_response(
                    prompt,
                    system_prompt=SCENARIO_SYSTEM_PROMPT,
                    timeout=self.timeout,
                ),
                timeout=self.timeout,
            )
            scenario = parse_scenario_response(content, requested)
            logger.info(f"Generated AI scenario for round {round_number} (theme={theme_key})")
            return scenario

        except asyncio.TimeoutError:
            logger.warning(f"AI scenario for round {round_number} timed out after {self.timeout}s, using fallback")
        except (OpenAIAPIError, UpstreamError) as e:
            logger.warning(f"AI scenario for round {round_number} unavailable ({e}), using fallback")
        except Exception as e:
            logger.error(f"Unexpected error generating AI scenario for round {round_number}: {e}", exc_info=True)

        return fallback_scenario(role_a_name, role_b_name, theme_key, round_number, requested)

    async def generate_all(
        self,
        role_a_name: str,
        role_b_name: str,
        theme: str | None,
        total_rounds: int,
        intensity: float | None = None,
    ) -> list[GeneratedScenario]:
        """Generate scenarios for rounds 1..total_rounds, returned in round order."""
        return list(await asyncio.gather(*[
            self.generate(role_a_name, role_b_name, theme, round_number, intensity)
            for round_number in range(1, total_rounds + 1)
        ]))
