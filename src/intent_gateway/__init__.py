"""Intent Gateway - semantic request routing over session-bound credentials.

This package provides a layered architecture for routing natural-language
intents to a caller's registered upstream credentials:

Layers:
    - protocols: Interface contracts (KeyValueStore, EmbeddingProvider, ...)
    - repositories: Data access implementations (Redis, AES cipher, httpx)
    - services: Business logic (cache, matching, access control, sessions)
    - handlers: HTTP endpoint handlers
    - dto: Data transfer objects (API contracts)
    - entities: Domain results (internal)
    - models: Persisted store documents

Usage:
    ```python
    from intent_gateway.repositories import KeywordEmbeddingProvider, RedisKeyValueStore
    from intent_gateway.services import SemanticCacheService

    cache = SemanticCacheService.create(
        store=RedisKeyValueStore.create(),
        embedding_provider=KeywordEmbeddingProvider.create(),
    )
    ```

For HTTP API:
    ```python
    from intent_gateway.api.app import app
    ```
"""

from intent_gateway.config import get_redis_client, settings
from intent_gateway.entities import AccessDecision, CacheLookup, MatchResult, TokenResolution
from intent_gateway.exceptions import GatewayError
from intent_gateway.handlers import GatewayHandler
from intent_gateway.protocols import CredentialCipher, EmbeddingProvider, KeyValueStore, UpstreamCaller
from intent_gateway.repositories import KeywordEmbeddingProvider, RedisKeyValueStore
from intent_gateway.services import GatewayService, SemanticCacheService, TemplateMatcher, TokenResolver

__all__ = [
    # Configuration
    "settings",
    "get_redis_client",
    # Errors
    "GatewayError",
    # Protocols (interfaces)
    "CredentialCipher",
    "EmbeddingProvider",
    "KeyValueStore",
    "UpstreamCaller",
    # Services (business logic)
    "GatewayService",
    "SemanticCacheService",
    "TemplateMatcher",
    "TokenResolver",
    # Handlers (HTTP)
    "GatewayHandler",
    # Repositories (data access)
    "KeywordEmbeddingProvider",
    "RedisKeyValueStore",
    # Entities (domain results)
    "AccessDecision",
    "CacheLookup",
    "MatchResult",
    "TokenResolution",
]
