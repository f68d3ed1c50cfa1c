"""Rule-based intent normalisation."""

import re

# Applied in order to the lowercased intent.
_RULES: tuple[tuple[re.Pattern[str], str], ...] = (
    (re.compile(r"\b(make|create|generate|build)\b"), "generate"),
    (re.compile(r"\b(picture|photo|pic)\b"), "image"),
    (re.compile(r"\b(text|words|content|copy)\b"), "text"),
    (re.compile(r"\b(openai|chatgpt|gpt)\b"), "gpt"),
    (re.compile(r"\b(dalle|dall-e|dall e)\b"), "dalle"),
)

_WHITESPACE = re.compile(r"\s+")


def normalize_intent(intent: str) -> str:
    """Map synonyms onto the embedding vocabulary.

    Example:
        >>> normalize_intent("  Make a Picture  of a cat")
        'generate a image of a cat'
    """
    normalized = intent.lower().strip()
    for pattern, replacement in _RULES:
        normalized = pattern.sub(replacement, normalized)
    return _WHITESPACE.sub(" ", normalized).strip()
