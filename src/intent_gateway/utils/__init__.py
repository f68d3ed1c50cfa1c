"""Utility modules for the intent gateway."""

from .intents import normalize_intent
from .payloads import canonical_json, comparison_text, fingerprint, size_kb, sort_keys
from .similarity import cosine_similarity

__all__ = [
    "canonical_json",
    "comparison_text",
    "cosine_similarity",
    "fingerprint",
    "normalize_intent",
    "size_kb",
    "sort_keys",
]
