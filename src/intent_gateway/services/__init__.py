"""Service layer for business logic.

Services depend on protocols and the credential repository, never on
Redis or httpx directly.

Architecture:
    Handler -> Service -> Repository
    (HTTP)  -> (Business) -> (Data Access)

Usage:
    ```python
    from intent_gateway.services import SemanticCacheService

    cache = SemanticCacheService.create(store=store, embedding_provider=provider)
    ```
"""

from .access_control import AccessControlService
from .credential_service import CredentialService
from .gateway_service import GatewayService
from .notification_service import NotificationService
from .semantic_cache_service import SemanticCacheService
from .session_service import SessionService
from .template_matcher import TemplateMatcher
from .token_resolver import TokenResolver

__all__ = [
    "AccessControlService",
    "CredentialService",
    "GatewayService",
    "NotificationService",
    "SemanticCacheService",
    "SessionService",
    "TemplateMatcher",
    "TokenResolver",
]
