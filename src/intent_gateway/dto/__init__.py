"""Data Transfer Objects for API contracts.

These Pydantic models define the external API contract.
They are used for request/response validation and serialization.

Internal domain logic should use entities from the entities package.
"""

from .requests import (
    AddKeyRequest,
    DeleteKeyRequest,
    IntentRequest,
    LoginRequest,
    LogoutRequest,
    ProxyRequest,
    SuggestionsRequest,
    TopKRequest,
    UpdateKeyRequest,
    ValidateAccessRequest,
)
from .responses import (
    AccessValidationResponse,
    AddKeyResponse,
    CacheEntryItem,
    CacheInspectResponse,
    ClearCacheResponse,
    DeleteKeyResponse,
    HealthCheckResponse,
    KeyListResponse,
    KeySummary,
    LoginResponse,
    MatchResponse,
    MessageResponse,
    NotificationsResponse,
    ProxyResponse,
    RankingResponse,
    SessionStatusResponse,
    SyncTtlResponse,
    TemplateMatchItem,
    UpdateKeyResponse,
)

__all__ = [
    "AccessValidationResponse",
    "AddKeyRequest",
    "AddKeyResponse",
    "CacheEntryItem",
    "CacheInspectResponse",
    "ClearCacheResponse",
    "DeleteKeyRequest",
    "DeleteKeyResponse",
    "HealthCheckResponse",
    "IntentRequest",
    "KeyListResponse",
    "KeySummary",
    "LoginRequest",
    "LoginResponse",
    "LogoutRequest",
    "MatchResponse",
    "MessageResponse",
    "NotificationsResponse",
    "ProxyRequest",
    "ProxyResponse",
    "RankingResponse",
    "SessionStatusResponse",
    "SuggestionsRequest",
    "SyncTtlResponse",
    "TemplateMatchItem",
    "TopKRequest",
    "UpdateKeyRequest",
    "UpdateKeyResponse",
    "ValidateAccessRequest",
]
