"""Protocol interfaces for swappable implementations.

Protocols enable:
- Swapping the store (Redis, in-memory test double)
- Swapping the embedding recipe, intent rewriter, cipher or upstream client
- Unit testing with simple fakes

Usage:
    ```python
    from intent_gateway.protocols import KeyValueStore

    store: KeyValueStore = RedisKeyValueStore.create()
    ```
"""

from .credential_cipher import CredentialCipher
from .embedding_provider import EmbeddingProvider
from .intent_rewriter import IntentRewrite, IntentRewriter
from .key_value_store import KeyValueStore
from .upstream_caller import UpstreamCaller, UpstreamResult

__all__ = [
    "CredentialCipher",
    "EmbeddingProvider",
    "IntentRewrite",
    "IntentRewriter",
    "KeyValueStore",
    "UpstreamCaller",
    "UpstreamResult",
]
