"""Reads the tier tag the reflection model opens its reply with."""

from gategen.state import DifficultyTier

DEFAULT_TIER: DifficultyTier = "MEDIUM"

# Tag vocabulary of the reflection reply. COMPLEX is the legacy name for HARD.
_TAGS: dict[str, DifficultyTier] = {
    "[EASY]": "EASY",
    "[MEDIUM]": "MEDIUM",
    "[COMPLEX]": "HARD",
    "[HARD]": "HARD",
    "[VERY_HARD]": "VERY_HARD",
    "[IMPOSSIBLE]": "IMPOSSIBLE",
}

# Checked in order; "\r\n" before "\n" so a CRLF counts as one separator.
_SEPARATORS = ("\r\n", "\n", " ")


def parse_difficulty(text: str) -> tuple[DifficultyTier, str]:
    """Split a reflection reply into (tier, remainder).

    The tag is only recognized at the very start of the (trimmed) text. A
    recognized tag is removed together with exactly one following separator.
    Anything else, including an unknown bracketed token, yields the default
    tier and the trimmed text. Never raises.
    """
    if not isinstance(text, str):
        return DEFAULT_TIER, ""

    text = text.strip()
    for tag, tier in _TAGS.items():
        if not text.startswith(tag):
            continue
        remainder = text[len(tag):]
        for sep in _SEPARATORS:
            if remainder.startswith(sep):
                remainder = remainder[len(sep):]
                break
        return tier, remainder

    return DEFAULT_TIER, text
