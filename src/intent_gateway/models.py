"""Persisted store documents.

These pydantic models are the only place where stored JSON is parsed and
defaulted. Credential documents carry a schema version; documents written
before versioning (flat limit/usage fields) are upgraded on read.
"""

from datetime import date, datetime, timezone
from typing import Any, Literal

from pydantic import BaseModel, Field, model_validator

CREDENTIAL_SCHEMA_VERSION = 1


def utc_now() -> datetime:
    """Current time as an aware UTC datetime."""
    return datetime.now(timezone.utc)


class SessionRecord(BaseModel):
    """Login session, stored under ``user:{caller}``."""

    status: Literal["active", "inactive"] = "active"
    token: str
    activated_at: int

    @property
    def is_active(self) -> bool:
        return self.status == "active"


class EncryptedSecret(BaseModel):
    """Ciphertext and IV, both hex encoded."""

    ciphertext: str
    iv: str


class UsageCounters(BaseModel):
    daily_usage: int = 0
    weekly_usage: int = 0
    daily_tokens_used: int = 0
    last_reset: date = Field(default_factory=lambda: utc_now().date())


class CredentialLimits(BaseModel):
    max_requests_per_day: int = 1000
    max_requests_per_week: int = 5000
    max_tokens_per_day: int = 100000
    max_payload_kb: int = 1000


class RetryPolicy(BaseModel):
    retry_enabled: bool = False
    max_retries: int = 3
    retry_backoff_ms: int = 3000


_LIMIT_FIELDS = tuple(CredentialLimits.model_fields)
_USAGE_FIELDS = tuple(UsageCounters.model_fields)
_RETRY_FIELDS = tuple(RetryPolicy.model_fields)


class CredentialRecord(BaseModel):
    """A caller-registered template: secret plus usage policy.

    Stored under ``user:{caller}:keys:{template}`` with the session's TTL.
    """

    schema_version: int = CREDENTIAL_SCHEMA_VERSION
    description: str
    encrypted_key: EncryptedSecret
    usage: UsageCounters = Field(default_factory=UsageCounters)
    limits: CredentialLimits = Field(default_factory=CredentialLimits)
    retry: RetryPolicy = Field(default_factory=RetryPolicy)
    expiry_date: datetime | None = None
    allowed_origins: list[str] = Field(default_factory=list)
    scopes: list[str] = Field(default_factory=list)
    created_at: datetime = Field(default_factory=utc_now)
    last_modified: datetime = Field(default_factory=utc_now)

    model_config = {"extra": "ignore"}

    @model_validator(mode="before")
    @classmethod
    def _upgrade_legacy(cls, data: Any) -> Any:
        """Fold a pre-versioning flat document into the nested layout."""
        if not isinstance(data, dict) or "schema_version" in data:
            return data

        upgraded = dict(data)
        for group, names in (
            ("limits", _LIMIT_FIELDS),
            ("usage", _USAGE_FIELDS),
            ("retry", _RETRY_FIELDS),
        ):
            values = {name: upgraded.pop(name) for name in names if name in upgraded}
            if values and group not in upgraded:
                upgraded[group] = values

        secret = upgraded.get("encrypted_key")
        if isinstance(secret, dict) and "encrypted" in secret:
            upgraded["encrypted_key"] = {"ciphertext": secret["encrypted"], "iv": secret.get("iv", "")}

        upgraded["schema_version"] = CREDENTIAL_SCHEMA_VERSION
        return upgraded


class CacheEntryRecord(BaseModel):
    """One semantic cache entry, stored as a field of ``cache_embeddings:{caller}``."""

    intent: str
    payload: Any = None
    payload_hash: str = ""
    response: Any = None
    matched_template: str
    confidence: float
    timestamp: datetime = Field(default_factory=utc_now)


class Notification(BaseModel):
    """A caller-facing notification, kept in ``notifications:{caller}``."""

    type: Literal["info", "warning", "error", "success"] = "info"
    message: str
    timestamp: int
    details: dict[str, Any] | None = None
