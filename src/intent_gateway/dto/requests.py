"""Request DTOs for API endpoints."""

from datetime import datetime
from typing import Any

from pydantic import BaseModel, Field

IDENTIFIER_PATTERN = r"^[a-zA-Z0-9_-]+$"


class LoginRequest(BaseModel):
    """Request DTO for logging in a configured user."""

    user_id: str = Field(..., min_length=1, max_length=50, pattern=IDENTIFIER_PATTERN)
    password: str = Field(..., min_length=1)


class LogoutRequest(BaseModel):
    user_id: str = Field(..., min_length=1, max_length=50, pattern=IDENTIFIER_PATTERN)


class AddKeyRequest(BaseModel):
    """Request DTO for registering a credential (template).

    The handler will convert this to a CredentialService call; the secret is
    encrypted with the session token before it is stored.
    """

    template: str = Field(..., min_length=1, max_length=50, pattern=IDENTIFIER_PATTERN)
    api_key: str = Field(..., min_length=10, max_length=500, description="The upstream secret")
    description: str = Field(
        ..., min_length=5, max_length=200, description="Matched against intents to select this template"
    )
    max_requests_per_day: int = Field(1000, ge=1, le=100000)
    max_requests_per_week: int = Field(5000, ge=1, le=700000)
    max_tokens_per_day: int = Field(100000, ge=1, le=10000000)
    max_payload_kb: int = Field(1000, ge=1, le=100000)
    expiry_date: datetime | None = None
    allowed_origins: list[str] = Field(
        default_factory=list,
        description="Exact origins or *.domain wildcards",
    )
    scopes: list[str] = Field(default_factory=list)
    retry_enabled: bool = False
    max_retries: int = Field(3, ge=0, le=10)
    retry_backoff_ms: int = Field(3000, ge=100, le=30000)


class UpdateKeyRequest(BaseModel):
    """Request DTO for updating a credential. Only provided fields change."""

    template: str = Field(..., min_length=1, max_length=50, pattern=IDENTIFIER_PATTERN)
    description: str | None = Field(None, min_length=5, max_length=200)
    max_requests_per_day: int | None = Field(None, ge=1, le=100000)
    max_requests_per_week: int | None = Field(None, ge=1, le=700000)
    max_tokens_per_day: int | None = Field(None, ge=1, le=10000000)
    max_payload_kb: int | None = Field(None, ge=1, le=100000)
    expiry_date: datetime | None = None
    allowed_origins: list[str] | None = None
    scopes: list[str] | None = None
    retry_enabled: bool | None = None
    max_retries: int | None = Field(None, ge=0, le=10)
    retry_backoff_ms: int | None = Field(None, ge=100, le=30000)


class DeleteKeyRequest(BaseModel):
    template: str = Field(..., min_length=1, max_length=50, pattern=IDENTIFIER_PATTERN)
    confirm: bool = Field(False, description="Must be true to delete")


class ProxyRequest(BaseModel):
    """Request DTO for routing an intent to the best matching upstream."""

    token: str = Field(..., min_length=1, max_length=100)
    intent: str = Field(..., min_length=1, max_length=500)
    payload: dict[str, Any] = Field(default_factory=dict)
    origin: str | None = Field(None, description="Falls back to the Origin header")


class IntentRequest(BaseModel):
    intent: str = Field(..., min_length=1, max_length=500)


class TopKRequest(BaseModel):
    intent: str = Field(..., min_length=1, max_length=500)
    k: int = Field(3, ge=1, le=20)


class SuggestionsRequest(BaseModel):
    partial_intent: str = Field(..., min_length=1, max_length=500)
    limit: int = Field(5, ge=1, le=20)


class ValidateAccessRequest(BaseModel):
    template: str = Field(..., min_length=1, max_length=50, pattern=IDENTIFIER_PATTERN)
    payload: Any = None
    origin: str | None = None
