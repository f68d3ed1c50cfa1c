"""Semantic cache service.

A bounded, per-caller cache of (intent, payload) -> response pairs, matched
by similarity rather than equality. Entries live in one hash per caller;
the hash's TTL is refreshed on every write.

Caching is an optimisation: read failures degrade to a miss and write
failures are reported as a failed SideEffectOutcome, never raised.
"""

import logging
import secrets
import time
from collections.abc import Callable
from datetime import datetime
from typing import Any

from pydantic import ValidationError

from intent_gateway.config import settings
from intent_gateway.entities import CacheLookup, SideEffectOutcome
from intent_gateway.models import CacheEntryRecord, utc_now
from intent_gateway.protocols import EmbeddingProvider, KeyValueStore
from intent_gateway.utils import comparison_text, cosine_similarity, fingerprint

logger = logging.getLogger(__name__)

CACHE_PREFIX = "cache_embeddings"


def cache_key(caller_id: str) -> str:
    return f"{CACHE_PREFIX}:{caller_id}"


def _new_entry_id() -> str:
    return f"{int(time.time() * 1000)}_{secrets.token_hex(5)[:9]}"


class SemanticCacheService:
    """Per-caller semantic cache over a KeyValueStore hash.

    Example:
        ```python
        cache = SemanticCacheService.create(store=store, embedding_provider=provider)

        lookup = await cache.lookup("alice", "generate a poem", {"p": 1})
        if not lookup.hit:
            ...
            await cache.store("alice", "generate a poem", {"p": 1}, response, "tmplA", 0.9)
        ```
    """

    def __init__(
        self,
        store: KeyValueStore,
        embedding_provider: EmbeddingProvider,
        similarity_threshold: float | None = None,
        max_entries: int | None = None,
        ttl: int | None = None,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        """Initialize the cache service.

        Args:
            store: Shared key-value store (required).
            embedding_provider: Embedding recipe used for both sides of a comparison.
            similarity_threshold: Minimum similarity for a hit. Defaults to settings.
            max_entries: Maximum entries kept per caller. Defaults to settings.
            ttl: Bucket TTL in seconds, refreshed on each write. Defaults to settings.
            clock: Source of entry timestamps.
        """
        self._store = store
        self._embeddings = embedding_provider
        self._threshold = (
            similarity_threshold if similarity_threshold is not None else settings.cache_similarity_threshold
        )
        self._max_entries = max_entries or settings.cache_max_entries
        self._ttl = ttl or settings.cache_ttl
        self._clock = clock

    @classmethod
    def create(
        cls,
        store: KeyValueStore,
        embedding_provider: EmbeddingProvider,
        similarity_threshold: float | None = None,
    ) -> "SemanticCacheService":
        """Factory method to create SemanticCacheService with settings defaults."""
        return cls(
            store=store,
            embedding_provider=embedding_provider,
            similarity_threshold=similarity_threshold,
        )

    async def lookup(self, caller_id: str, intent: str, payload: Any) -> CacheLookup:
        """Find a stored response for an equivalent (intent, payload) pair.

        Business logic:
        1. Embed ``intent`` plus the key-sorted payload
        2. Embed every stored entry with the same recipe
        3. Keep the first entry with the highest similarity >= threshold

        Args:
            caller_id: The caller identity
            intent: The (possibly rewritten) intent
            payload: The caller's payload

        Returns:
            CacheLookup with the matched entry and its confidence, or a miss
        """
        try:
            entries = await self._store.hgetall(cache_key(caller_id))
        except Exception:
            logger.exception("Semantic cache search error for user %s", caller_id)
            return CacheLookup.miss()

        if not entries:
            logger.info("No cached entries found for user %s", caller_id)
            return CacheLookup.miss()

        current = self._embeddings.encode(comparison_text(intent, payload))
        best: CacheEntryRecord | None = None
        best_similarity = 0.0

        for entry_id, raw in entries.items():
            try:
                entry = CacheEntryRecord.model_validate_json(raw)
            except ValidationError:
                logger.warning("Failed to parse cached entry %s", entry_id)
                continue

            cached = self._embeddings.encode(comparison_text(entry.intent, entry.payload))
            similarity = cosine_similarity(current, cached)
            logger.debug("Cache entry %s similarity: %.3f", entry_id, similarity)

            if similarity >= self._threshold and (best is None or similarity > best_similarity):
                best = entry
                best_similarity = similarity

        if best is None:
            logger.info("No cache hit for user %s (%d entries checked)", caller_id, len(entries))
            return CacheLookup.miss()

        logger.info(
            "Cache hit for user %s: template=%s similarity=%.3f",
            caller_id,
            best.matched_template,
            best_similarity,
        )
        return CacheLookup(hit=True, entry=best, confidence=best_similarity)

    async def store(
        self,
        caller_id: str,
        intent: str,
        payload: Any,
        response: Any,
        template: str,
        confidence: float,
    ) -> SideEffectOutcome:
        """Store a response, evicting the oldest entries beyond the bound.

        Business logic:
        1. Evict oldest entries (corrupt ones first) until max_entries - 1 remain
        2. Insert the new entry under a fresh id
        3. Refresh the bucket TTL

        Returns:
            SideEffectOutcome; failures are logged, never raised
        """
        key = cache_key(caller_id)
        entry = CacheEntryRecord(
            intent=intent,
            payload=payload,
            payload_hash=fingerprint(payload),
            response=response,
            matched_template=template,
            confidence=confidence,
            timestamp=self._clock(),
        )

        try:
            existing = await self._store.hgetall(key)
            if len(existing) >= self._max_entries:
                stale = self._oldest_first(existing)[: len(existing) - self._max_entries + 1]
                await self._store.hdel(key, *stale)
                logger.info("Removed %d old cache entries for user %s", len(stale), caller_id)

            entry_id = _new_entry_id()
            await self._store.hset(key, entry_id, entry.model_dump_json())
            await self._store.expire(key, self._ttl)
        except Exception as e:
            logger.exception("Failed to store in semantic cache for user %s", caller_id)
            return SideEffectOutcome.failure(e)

        logger.info("Stored response in semantic cache for user %s: template=%s id=%s", caller_id, template, entry_id)
        return SideEffectOutcome.success()

    @staticmethod
    def _oldest_first(entries: dict[str, str]) -> list[str]:
        """Entry ids sorted by timestamp, unparseable entries first."""

        def sort_key(item: tuple[str, str]) -> float:
            try:
                return CacheEntryRecord.model_validate_json(item[1]).timestamp.timestamp()
            except ValidationError:
                return float("-inf")

        return [entry_id for entry_id, _ in sorted(entries.items(), key=sort_key)]

    async def inspect(self, caller_id: str) -> list[tuple[str, CacheEntryRecord]]:
        """Parsed entries of a caller, newest first (diagnostics)."""
        entries = await self._store.hgetall(cache_key(caller_id))
        parsed: list[tuple[str, CacheEntryRecord]] = []
        for entry_id, raw in entries.items():
            try:
                parsed.append((entry_id, CacheEntryRecord.model_validate_json(raw)))
            except ValidationError:
                logger.warning("Skipping corrupt cache entry %s", entry_id)
        parsed.sort(key=lambda item: item[1].timestamp, reverse=True)
        return parsed

    async def clear(self, caller_id: str) -> int:
        """Drop every cache entry of a caller."""
        deleted = await self._store.delete(cache_key(caller_id))
        logger.info("Cleared semantic cache for user %s", caller_id)
        return deleted

    async def has_cache(self, caller_id: str) -> bool:
        return await self._store.exists(cache_key(caller_id)) > 0

    @property
    def threshold(self) -> float:
        """Get the similarity threshold."""
        return self._threshold

    @property
    def max_entries(self) -> int:
        return self._max_entries
