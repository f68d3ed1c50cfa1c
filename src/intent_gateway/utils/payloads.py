"""Payload normalisation helpers.

Payloads are arbitrary JSON values. Everything that compares or measures a
payload goes through these helpers so that key order never matters.
"""

import base64
import json
from typing import Any

FINGERPRINT_LENGTH = 32


def sort_keys(value: Any) -> Any:
    """Recursively sort mapping keys; lists keep their order."""
    if isinstance(value, dict):
        return {key: sort_keys(value[key]) for key in sorted(value)}
    if isinstance(value, (list, tuple)):
        return [sort_keys(item) for item in value]
    return value


def canonical_json(value: Any) -> str:
    """Compact JSON with recursively sorted keys."""
    return json.dumps(sort_keys(value), separators=(",", ":"), ensure_ascii=False, default=str)


def fingerprint(value: Any) -> str:
    """Short auxiliary identifier of a payload (not used for equality)."""
    encoded = base64.b64encode(canonical_json(value).encode("utf-8")).decode("ascii")
    return encoded[:FINGERPRINT_LENGTH]


def size_kb(value: Any) -> float:
    """UTF-8 size of the compact JSON serialisation, in kilobytes."""
    return len(canonical_json(value).encode("utf-8")) / 1024


def comparison_text(intent: str, payload: Any) -> str:
    """Text embedded by the semantic cache for an (intent, payload) pair."""
    return f"{intent} {canonical_json(payload)}"
