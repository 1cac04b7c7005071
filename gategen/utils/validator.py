"""Input validation — checks the generation request before a session starts."""

MAX_PROMPT_CHARS = 20_000


def validate_input(prompt: str) -> str:
    """Validate that the prompt is a non-empty string of reasonable size.

    Returns the stripped input on success.
    Raises ValueError if input is empty, whitespace-only, or too long.
    """
    if not isinstance(prompt, str) or not prompt.strip():
        raise ValueError("Prompt must be a non-empty string.")
    prompt = prompt.strip()
    if len(prompt) > MAX_PROMPT_CHARS:
        raise ValueError(f"Prompt is too long ({len(prompt)} chars, limit {MAX_PROMPT_CHARS}).")
    return prompt
