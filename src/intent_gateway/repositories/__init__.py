"""Repository layer for data access.

This layer wraps external dependencies (Redis, the cipher, upstream HTTP)
and the intent rewriter behind protocol-based interfaces. The repositories
are protocol-based (structural typing), not inheritance-based.
"""

from intent_gateway.protocols import CredentialCipher, EmbeddingProvider, KeyValueStore

from .aes_credential_cipher import AesCredentialCipher
from .credential_repository import CredentialRepository
from .http_upstream_caller import HttpUpstreamCaller
from .keyword_embedding_provider import KeywordEmbeddingProvider
from .redis_store import RedisKeyValueStore
from .rule_based_intent_rewriter import RuleBasedIntentRewriter

__all__ = [
    "AesCredentialCipher",
    "CredentialCipher",
    "CredentialRepository",
    "EmbeddingProvider",
    "HttpUpstreamCaller",
    "KeyValueStore",
    "KeywordEmbeddingProvider",
    "RedisKeyValueStore",
    "RuleBasedIntentRewriter",
]
