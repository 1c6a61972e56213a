"""Prompt coherence checks and policy-safe rewrites.

Three strengths of rewriting are offered:

- ``sanitize`` strips a small denylist of terms that commonly trigger
  content-policy rejections and leaves the rest of the prompt intact.
- ``sanitize_or_fallback`` does the same but swaps in a random creative
  prompt when the text is incoherent or nothing usable is left.
- ``genericize`` is the aggressive rewrite used for the single retry after
  the hosted image API rejects a prompt. It always returns something.
"""

import re

from fallback_prompts import random_prompt


MIN_PROMPT_LENGTH = 5
MIN_SANITIZED_LENGTH = 5
MIN_GENERIC_LENGTH = 3

# Terms known to trigger policy rejections; phrases are matched before single words
DENYLIST_TERMS = [
    "friends", "friend", "celebrity", "famous", "actor", "actress",
    "disney", "marvel", "batman", "superman", "pokemon",
    "waiting on", "my friend", "their friend",
]

ULTRA_SAFE_MAP = {
    # Maritime
    "boat": "water scene",
    "ship": "water scene",
    "nautical": "water scene",
    "sailing": "water scene",
    "marina": "water scene",
    "harbor": "water scene",
    "dock": "water scene",
    "yacht": "water scene",
    # Events
    "show": "scene",
    "event": "scene",
    "exhibition": "display",
    "competition": "activity",
    "contest": "activity",
    # Social
    "friends": "figures",
    "friend": "figure",
    "people": "figures",
    "person": "figure",
    "waiting": "standing",
    "watching": "viewing",
    # Filler
    "my": "",
    "the": "",
    "a": "",
    "an": "",
}

PROBLEMATIC_TERMS = [
    "topless", "nude", "naked", "sexy", "erotic", "porn", "hentai",
    "gore", "blood", "violence", "kill", "murder", "hate speech",
]

COLORS = [
    "blue", "red", "green", "yellow", "purple", "orange", "pink",
    "brown", "gray", "white", "black", "golden", "silver",
]

MOODS = ["peaceful", "calm", "serene", "vibrant", "bright", "soft", "gentle", "warm", "cool", "dreamy"]

GENERIC_FALLBACK = "colorful abstract art"

INCOHERENT_PATTERNS = [
    re.compile(r"\b(\w+)\s+\1\s+\1\b"),       # same word three times running
    re.compile(r"\b\w\s+\w\s+\w\b"),          # run of single-letter tokens
    re.compile(r"^\s*(um|uh|er|ah)\s+"),      # leading disfluency
]

_SHORT_WORD = re.compile(r"\b\w{1,2}\b")


def _term_pattern(term: str) -> re.Pattern:
    return re.compile(rf"\b{re.escape(term)}\b", re.IGNORECASE)


def _collapse(text: str) -> str:
    return re.sub(r"\s+", " ", text).strip()


def count_words(text: str | None) -> int:
    """Count whitespace-separated words."""
    if not text or not isinstance(text, str):
        return 0
    return len(text.split())


def is_coherent(text: str) -> bool:
    """
    Heuristically decide whether text is a usable image prompt.

    Rejects text shorter than MIN_PROMPT_LENGTH, text with fewer than two
    words longer than two characters, text where more than half of the words
    are one or two characters (typical of transcription noise), and a few
    incoherence patterns.
    """
    text = (text or "").lower().strip()
    if len(text) < MIN_PROMPT_LENGTH:
        return False

    words = text.split()
    long_words = [w for w in words if len(w) > 2]
    if len(long_words) < 2:
        return False

    short_words = _SHORT_WORD.findall(text)
    if len(short_words) > len(words) * 0.5:
        return False

    return not any(pattern.search(text) for pattern in INCOHERENT_PATTERNS)


def sanitize(text: str) -> str:
    """
    Lowercase text, strip denylisted terms and collapse whitespace.

    The result may be empty or too short to use; see sanitize_or_fallback.
    """
    cleaned = (text or "").lower().strip()
    for term in sorted(DENYLIST_TERMS, key=lambda t: -len(t.split())):
        cleaned = _term_pattern(term).sub("", cleaned)
    return _collapse(cleaned)


def sanitize_or_fallback(text: str) -> str:
    """
    Sanitize text, falling back to a random creative prompt when the input
    is incoherent or too little survives the cleanup.
    """
    if not is_coherent(text):
        return random_prompt()

    cleaned = sanitize(text)
    if len(cleaned) > MIN_SANITIZED_LENGTH and count_words(cleaned) >= 2 and is_coherent(cleaned):
        return cleaned
    return random_prompt()


def contains_problematic_terms(text: str) -> bool:
    lowered = (text or "").lower()
    return any(term in lowered for term in PROBLEMATIC_TERMS)


def extract_colors(text: str) -> list[str]:
    words = set(re.findall(r"[a-z]+", (text or "").lower()))
    return [color for color in COLORS if color in words]


def extract_moods(text: str) -> list[str]:
    words = set(re.findall(r"[a-z]+", (text or "").lower()))
    return [mood for mood in MOODS if mood in words]


def genericize(text: str) -> str:
    """
    Rewrite a rejected prompt into an ultra-safe variant.

    Risky terms are mapped to neutral equivalents. When the result is still
    problematic or too short, a purely abstract phrase is built from the
    color and mood words of the original; if there are none, a hardcoded
    innocuous phrase is returned.

    Args:
        text: The prompt that was rejected

    Returns:
        A non-empty prompt
    """
    original = (text or "").lower()

    safe = text or ""
    for risky, replacement in ULTRA_SAFE_MAP.items():
        safe = _term_pattern(risky).sub(replacement, safe)
    safe = _collapse(safe)

    if len(safe) >= MIN_GENERIC_LENGTH and not contains_problematic_terms(safe):
        return safe

    colors = extract_colors(original)
    moods = extract_moods(original)
    if colors and moods:
        return f"{colors[0]} {moods[0]} abstract art"
    if colors:
        return f"{colors[0]} artistic composition"
    if moods:
        return f"{moods[0]} artistic scene"
    return GENERIC_FALLBACK
