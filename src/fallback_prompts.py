"""Tracery grammar for fallback prompts when user text is unusable."""

import re

import tracery
from tracery.modifiers import base_english


FALLBACK_GRAMMAR = {
    "origin": ["#scene#"],
    "scene": [
        "A serene landscape with mountains and a lake at sunset",
        "An abstract composition with vibrant colors and geometric shapes",
        "A peaceful garden scene with blooming flowers and butterflies",
        "A futuristic cityscape with flying vehicles and neon lights",
        "A cozy interior with warm lighting and comfortable furniture",
        "A magical forest with glowing mushrooms and fairy lights",
        "A minimalist design with clean lines and subtle textures",
        "A dramatic seascape with crashing waves and stormy skies",
        "A whimsical illustration with playful characters and patterns",
        "A vintage photograph with nostalgic atmosphere and warm tones",
    ],
    "related": ["#theme# #last#"],
    "theme": [
        "complementary",
        "contrasting",
        "expanding",
        "variation of",
        "alternative view of",
        "different perspective on",
    ],
}


def _flatten(grammar_dict: dict, origin: str) -> str:
    grammar = tracery.Grammar(grammar_dict)
    grammar.add_modifiers(base_english)
    return grammar.flatten(f"#{origin}#")


def random_prompt() -> str:
    """Pick a random creative prompt."""
    return _flatten(FALLBACK_GRAMMAR, "origin")


def related_prompt(history: list[str] | None = None) -> str:
    """
    Build a prompt related to the most recent entry of a prompt history.

    Args:
        history: Previous prompts, most recent last

    Returns:
        "<theme> <last prompt>", or a random creative prompt when there is
        no usable history
    """
    last = next((p.strip() for p in reversed(history or []) if p and p.strip()), None)
    if last is None:
        return random_prompt()
    # Tracery syntax characters in user text would be expanded as rules
    grammar = dict(FALLBACK_GRAMMAR, last=[re.sub(r"[#\[\]]", "", last)])
    return _flatten(grammar, "related")
