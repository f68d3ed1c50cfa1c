"""Access decision domain entity."""

from dataclasses import dataclass
from enum import Enum


class DenialKind(str, Enum):
    """Why access was denied."""

    NOT_FOUND = "not_found"
    EXPIRED = "expired"
    PAYLOAD = "payload"
    ORIGIN = "origin"
    QUOTA = "quota"


@dataclass(frozen=True)
class AccessDecision:
    """Result of the access-control pipeline.

    Attributes:
        allowed: Whether the credential may be used
        error: The first tripped check (only when denied)
        warning: Accumulated non-fatal warnings joined with ", "
        denial: Category of the denial (only when denied)
    """

    allowed: bool
    error: str | None = None
    warning: str | None = None
    denial: DenialKind | None = None

    @property
    def retryable(self) -> bool:
        """Quota denials clear by themselves; structural ones need reconfiguration."""
        return self.denial is DenialKind.QUOTA

    @classmethod
    def deny(cls, kind: DenialKind, error: str) -> "AccessDecision":
        return cls(allowed=False, error=error, denial=kind)
