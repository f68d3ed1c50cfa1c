"""Cache lookup domain entity."""

from dataclasses import dataclass

from intent_gateway.models import CacheEntryRecord


@dataclass(frozen=True)
class CacheLookup:
    """Result of a semantic cache lookup.

    Attributes:
        hit: Whether an equivalent (intent, payload) pair was found
        entry: The matched cache entry
        confidence: Cosine similarity of the match
    """

    hit: bool
    entry: CacheEntryRecord | None = None
    confidence: float | None = None

    @classmethod
    def miss(cls) -> "CacheLookup":
        return cls(hit=False)
