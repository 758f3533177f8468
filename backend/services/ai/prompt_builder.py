"""
Shared prompt building utilities for AI scenario and commentary generation.
"""

THEME_CONTEXTS = {
    "general": "general parenting situations",
    "farm": "farm and barnyard themed scenarios",
    "funny": "hilarious and absurd situations",
    "sleep": "sleep deprivation and middle-of-the-night scenarios",
    "feeding": "feeding and eating situations",
    "messy": "messy diaper situations",
    "emotional": "emotional parenting moments",
}

SCENARIO_SYSTEM_PROMPT = "You write family-friendly party game content and answer with JSON only."

COMMENTARY_SYSTEM_PROMPT = """You are a sassy but loving barnyard host at a baby shower game.
Your job is to roast the crowd's predictions playfully.
Keep it family-friendly, funny, and short (1-2 sentences).
Use a warm, teasing tone that makes everyone laugh."""


def build_scenario_prompt(
    role_a_name: str,
    role_b_name: str,
    theme: str,
    round_number: int,
    intensity: float,
) -> str:
    """
    Build the prompt for a single "who would rather" round.

    Args:
        role_a_name: Display name of the first role (usually mom)
        role_b_name: Display name of the second role (usually dad)
        theme: Theme key, see THEME_CONTEXTS
        round_number: 1-based round the scenario is for
        intensity: Requested comedy intensity in [0.1, 1.0]

    Returns:
        A formatted prompt string asking for a JSON object
    """
    theme_context = THEME_CONTEXTS.get(theme, THEME_CONTEXTS["general"])

    return f"""Generate a funny "who would rather" scenario for a baby shower game about {role_a_name} (mom) vs {role_b_name} (dad).
This is round {round_number} of the game, so make it different from an obvious first idea.

Theme: {theme_context}
Comedy intensity: {intensity:.1f} (0.1 = mildly funny, 1.0 = hilarious)

Requirements:
1. Write a realistic, relatable scenario that could happen with a new baby
2. Make it funny but not offensive - keep it family-friendly
3. The scenario should highlight personality differences between them
4. Generate two options - one that {role_a_name} would do, one that {role_b_name} would do
5. Include an intensity score from 0.1 (mildly funny) to 1.0 (hilarious)

Return ONLY a JSON object with this exact format:
{{
  "scenario": "The scenario description",
  "option_a": "What {role_a_name} would do",
  "option_b": "What {role_b_name} would do",
  "intensity": 0.7
}}

Do not include any other text or formatting."""


def build_commentary_prompt(
    prompt_text: str,
    crowd_choice_name: str,
    crowd_percentage: int,
    is_tie: bool,
    actual_choice_name: str | None = None,
) -> str:
    """
    Build the prompt for the roast line shown when a round is revealed.

    Args:
        prompt_text: The round's scenario text
        crowd_choice_name: Name of the role the crowd picked
        crowd_percentage: Share of votes for the crowd's pick
        is_tie: Whether the vote was split evenly
        actual_choice_name: Name of the role the parents say is right, if given

    Returns:
        A formatted prompt string
    """
    if is_tie:
        crowd_line = "The crowd was split exactly down the middle."
    else:
        crowd_line = f"The crowd predicted {crowd_choice_name} ({crowd_percentage}%)."

    reality_line = f"Reality: {actual_choice_name} is the right answer!" if actual_choice_name else ""

    return f"""{crowd_line}
{reality_line}
Scenario: {prompt_text}

Generate a short, playful roast teasing the crowd. Be funny but kind!"""
