"""Proxy result domain entity."""

from dataclasses import dataclass, field
from typing import Any


@dataclass(frozen=True)
class ProxyResult:
    """Outcome of a routed request.

    Attributes:
        response: Upstream (or cached) response data
        matched_template: Template that served the request
        confidence: Cache similarity on a hit, template match confidence otherwise
        cached: Whether the response came from the semantic cache
        latency_ms: Time spent in the gateway
        tokens_used: Tokens reported by the upstream (0 on a cache hit)
        notices: Non-fatal warnings for the caller
    """

    response: Any
    matched_template: str
    confidence: float
    cached: bool
    latency_ms: int = 0
    tokens_used: int = 0
    notices: list[str] = field(default_factory=list)
