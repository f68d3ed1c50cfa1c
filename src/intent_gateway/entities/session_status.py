"""Session status domain entity."""

from dataclasses import dataclass


@dataclass(frozen=True)
class SessionStatus:
    """Whether a caller currently holds a live session.

    Attributes:
        caller_id: The caller identity
        active: True if the session is active and its TTL is positive
        remaining_ttl: Seconds left, 0 when inactive
        activated_at: Unix seconds of the login, if a record exists
    """

    caller_id: str
    active: bool
    remaining_ttl: int = 0
    activated_at: int | None = None
