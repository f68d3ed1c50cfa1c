"""Response DTOs for API endpoints."""

from datetime import datetime
from typing import Any

from pydantic import BaseModel, Field

from intent_gateway.models import CredentialLimits, Notification, RetryPolicy, UsageCounters


class HealthCheckResponse(BaseModel):
    """Response DTO for health check."""

    status: str = Field(..., description="Health status: 'healthy' or 'unhealthy'")
    store_healthy: bool = Field(..., description="Whether the key-value store is reachable")
    embedding_healthy: bool = Field(..., description="Whether the embedding provider is available")
    embedding_model: str
    thresholds: dict[str, float] = Field(
        default_factory=dict, description="Similarity thresholds and cache size in effect"
    )


class MessageResponse(BaseModel):
    success: bool = True
    message: str


class LoginResponse(BaseModel):
    success: bool = True
    token: str = Field(..., description="Session token; also the key that encrypts credentials")
    expires_in: int = Field(..., description="Session TTL in seconds", ge=0)


class SessionStatusResponse(BaseModel):
    success: bool = True
    user_id: str
    active: bool
    remaining_time: int = Field(..., ge=0)
    activated_at: int | None = None


class TemplateMatchItem(BaseModel):
    """One template scored against an intent."""

    template: str
    confidence: float = Field(..., description="Raw cosine similarity")
    description: str


class MatchResponse(BaseModel):
    found: bool
    match: TemplateMatchItem | None = None
    has_conflict: bool = False
    conflicting_templates: list[TemplateMatchItem] = Field(default_factory=list)


class RankingResponse(BaseModel):
    """Threshold-free ranking of templates (top-k and suggestions)."""

    intent: str
    matches: list[TemplateMatchItem] = Field(default_factory=list)


class KeySummary(BaseModel):
    """Credential metadata. Never carries the secret."""

    template: str
    description: str
    limits: CredentialLimits
    usage: UsageCounters
    retry: RetryPolicy
    expiry_date: datetime | None = None
    allowed_origins: list[str] = Field(default_factory=list)
    scopes: list[str] = Field(default_factory=list)
    created_at: datetime
    last_modified: datetime
    ttl_seconds: int = Field(..., description="Remaining TTL; equals the session's remaining TTL")


class KeyListResponse(BaseModel):
    success: bool = True
    keys: list[KeySummary] = Field(default_factory=list)
    count: int = Field(..., ge=0)


class AddKeyResponse(BaseModel):
    success: bool = True
    message: str
    template: str
    description: str
    limits: CredentialLimits
    scopes: list[str] = Field(default_factory=list)
    created_at: datetime
    ttl_seconds: int


class UpdateKeyResponse(BaseModel):
    success: bool = True
    message: str
    template: str
    updated_fields: list[str] = Field(default_factory=list)
    limits: CredentialLimits
    scopes: list[str] = Field(default_factory=list)
    last_modified: datetime


class DeleteKeyResponse(BaseModel):
    success: bool = True
    message: str
    template: str


class SyncTtlResponse(BaseModel):
    success: bool = True
    synced_keys: int = Field(..., ge=0)


class ProxyResponse(BaseModel):
    """Response DTO for a routed request."""

    response: Any = None
    matched_template: str
    confidence: float
    cached: bool
    latency_ms: int = Field(0, ge=0)
    tokens_used: int = Field(0, ge=0)
    notices: list[str] = Field(default_factory=list)


class AccessValidationResponse(BaseModel):
    allowed: bool
    error: str | None = None
    warning: str | None = None
    retryable: bool = False


class CacheEntryItem(BaseModel):
    id: str
    intent: str
    payload_hash: str
    matched_template: str
    confidence: float
    timestamp: datetime


class CacheInspectResponse(BaseModel):
    success: bool = True
    entries: list[CacheEntryItem] = Field(default_factory=list)
    count: int = Field(..., ge=0)


class ClearCacheResponse(BaseModel):
    success: bool = True
    deleted_count: int = Field(..., ge=0)
    message: str


class NotificationsResponse(BaseModel):
    success: bool = True
    notifications: list[Notification] = Field(default_factory=list)
    count: int = Field(..., ge=0)
