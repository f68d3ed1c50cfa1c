"""Token resolution domain entity."""

from dataclasses import dataclass


@dataclass(frozen=True)
class TokenResolution:
    """Result of resolving an opaque session token to a caller.

    Attributes:
        valid: Whether the token belongs to a live, active session
        caller_id: The caller identity (only when valid)
        remaining_ttl: Remaining session lifetime in seconds (only when valid)
        error: Human-readable reason (only when invalid)
    """

    valid: bool
    caller_id: str | None = None
    remaining_ttl: int | None = None
    error: str | None = None

    @classmethod
    def invalid(cls, error: str) -> "TokenResolution":
        return cls(valid=False, error=error)
