"""
Shared test fixtures for the intent gateway test suite.

Provides an in-memory KeyValueStore with Redis TTL semantics and a
controllable clock, wired services, and a scripted upstream caller.
"""

import fnmatch
import math
from datetime import datetime, timezone
from typing import Any

import pytest
import pytest_asyncio

from intent_gateway.protocols import UpstreamResult
from intent_gateway.repositories import AesCredentialCipher, CredentialRepository, KeywordEmbeddingProvider
from intent_gateway.services import (
    AccessControlService,
    CredentialService,
    GatewayService,
    NotificationService,
    SemanticCacheService,
    SessionService,
    TemplateMatcher,
    TokenResolver,
)

START = datetime(2026, 1, 5, 12, 0, tzinfo=timezone.utc)  # a Monday

USERS = {"alice": "alice-pass", "bob": "bob-pass"}


class FakeClock:
    """Manually advanced clock shared by the store and the services."""

    def __init__(self, start: datetime = START) -> None:
        self.now = start.timestamp()

    def advance(self, seconds: float) -> None:
        self.now += seconds

    def datetime(self) -> datetime:
        return datetime.fromtimestamp(self.now, timezone.utc)


class FakeStore:
    """In-memory KeyValueStore double.

    Keys expire lazily against the fake clock. Methods named in ``failing``
    raise ConnectionError, to exercise failure handling.
    """

    def __init__(self, clock: FakeClock) -> None:
        self.clock = clock
        self.data: dict[str, Any] = {}
        self.expiry: dict[str, float] = {}
        self.published: list[tuple[str, str]] = []
        self.failing: set[str] = set()
        self._stream_seq = 0

    def _check(self, op: str) -> None:
        if op in self.failing:
            raise ConnectionError(f"store unavailable ({op})")

    def _alive(self, key: str) -> bool:
        deadline = self.expiry.get(key)
        if deadline is not None and self.clock.now >= deadline:
            self.data.pop(key, None)
            self.expiry.pop(key, None)
        return key in self.data

    def _drop(self, key: str) -> None:
        self.data.pop(key, None)
        self.expiry.pop(key, None)

    async def get(self, key):
        self._check("get")
        return self.data[key] if self._alive(key) else None

    async def set(self, key, value, ttl=None, nx=False, xx=False, keep_ttl=False):
        self._check("set")
        exists = self._alive(key)
        if (nx and exists) or (xx and not exists):
            return False
        self.data[key] = value
        if ttl is not None:
            self.expiry[key] = self.clock.now + ttl
        elif not keep_ttl:
            self.expiry.pop(key, None)
        return True

    async def delete(self, *keys):
        self._check("delete")
        deleted = 0
        for key in keys:
            if self._alive(key):
                self._drop(key)
                deleted += 1
        return deleted

    async def exists(self, key):
        return 1 if self._alive(key) else 0

    async def ttl(self, key):
        self._check("ttl")
        if not self._alive(key):
            return -2
        if key not in self.expiry:
            return -1
        return math.ceil(self.expiry[key] - self.clock.now)

    async def expire(self, key, seconds):
        self._check("expire")
        if not self._alive(key):
            return False
        if seconds <= 0:
            self._drop(key)
        else:
            self.expiry[key] = self.clock.now + seconds
        return True

    async def hgetall(self, key):
        self._check("hgetall")
        return dict(self.data[key]) if self._alive(key) else {}

    async def hset(self, key, field, value):
        self._check("hset")
        bucket = self.data[key] if self._alive(key) else {}
        created = field not in bucket
        bucket[field] = value
        self.data[key] = bucket
        return int(created)

    async def hdel(self, key, *fields):
        self._check("hdel")
        if not self._alive(key):
            return 0
        bucket = self.data[key]
        removed = sum(1 for field in fields if bucket.pop(field, None) is not None)
        if not bucket:
            self._drop(key)
        return removed

    async def rpush(self, key, *values):
        items = self.data[key] if self._alive(key) else []
        items.extend(values)
        self.data[key] = items
        return len(items)

    @staticmethod
    def _bounds(length, start, stop):
        if start < 0:
            start = max(length + start, 0)
        if stop < 0:
            stop = length + stop
        return start, stop + 1

    async def lrange(self, key, start, stop):
        items = self.data[key] if self._alive(key) else []
        lo, hi = self._bounds(len(items), start, stop)
        return list(items[lo:hi])

    async def ltrim(self, key, start, stop):
        if self._alive(key):
            lo, hi = self._bounds(len(self.data[key]), start, stop)
            self.data[key] = self.data[key][lo:hi]
        return True

    async def xadd(self, key, fields, maxlen=None):
        self._check("xadd")
        entries = self.data[key] if self._alive(key) else []
        self._stream_seq += 1
        entry_id = f"{int(self.clock.now * 1000)}-{self._stream_seq}"
        entries.append((entry_id, dict(fields)))
        if maxlen is not None:
            del entries[:-maxlen]
        self.data[key] = entries
        return entry_id

    async def xrange(self, key, start="-", end="+", count=None):
        entries = list(self.data[key]) if self._alive(key) else []
        return entries[:count] if count is not None else entries

    async def publish(self, channel, message):
        self._check("publish")
        self.published.append((channel, message))
        return 0

    async def keys(self, pattern):
        self._check("keys")
        return [key for key in list(self.data) if self._alive(key) and fnmatch.fnmatchcase(key, pattern)]

    async def ping(self):
        self._check("ping")
        return True


class ScriptedUpstream:
    """UpstreamCaller double returning queued results and recording calls."""

    def __init__(self) -> None:
        self.calls: list[dict[str, Any]] = []
        self.results: list[UpstreamResult] = []

    def will_return(self, result: UpstreamResult) -> None:
        self.results.append(result)

    async def call(self, template, secret, payload, retry_policy=None):
        self.calls.append({"template": template, "secret": secret, "payload": payload, "retry": retry_policy})
        if self.results:
            return self.results.pop(0)
        return UpstreamResult(success=True, data={"echo": payload}, tokens_used=42)


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def store(clock):
    return FakeStore(clock)


@pytest.fixture
def repository(store):
    return CredentialRepository(store)


@pytest.fixture
def embedding_provider():
    return KeywordEmbeddingProvider.create()


@pytest.fixture
def cipher():
    return AesCredentialCipher()


@pytest.fixture
def matcher(repository, embedding_provider):
    return TemplateMatcher(
        repository,
        embedding_provider,
        match_threshold=0.75,
        conflict_threshold=0.9,
        description_conflict_threshold=0.85,
    )


@pytest.fixture
def cache(store, embedding_provider, clock):
    return SemanticCacheService(
        store=store,
        embedding_provider=embedding_provider,
        similarity_threshold=0.85,
        max_entries=3,
        ttl=21600,
        clock=clock.datetime,
    )


@pytest.fixture
def access(repository, clock):
    return AccessControlService(repository, expiry_warning_days=7, clock=clock.datetime)


@pytest.fixture
def credentials(repository, cipher, matcher):
    return CredentialService(repository, cipher, matcher)


@pytest.fixture
def sessions(repository):
    return SessionService(repository, users=USERS, session_ttl=1800, token_length=16)


@pytest.fixture
def notifications(store):
    return NotificationService(store)


@pytest.fixture
def upstream():
    return ScriptedUpstream()


@pytest.fixture
def gateway(repository, cache, matcher, access, credentials, notifications, upstream):
    return GatewayService(
        resolver=TokenResolver(repository),
        cache=cache,
        matcher=matcher,
        access=access,
        credentials=credentials,
        notifications=notifications,
        upstream=upstream,
    )


@pytest_asyncio.fixture
async def alice_token(sessions):
    """Token of a fresh session for alice."""
    record = await sessions.login("alice", "alice-pass")
    return record.token
