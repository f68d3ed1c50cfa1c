"""Outcome of a best-effort side effect."""

import logging
from dataclasses import dataclass


@dataclass(frozen=True)
class SideEffectOutcome:
    """Result of a write that must never fail the surrounding request.

    Cache writes, usage updates and notifications return this instead of
    raising. Callers that do not act on a failure call ``ignore`` with the
    reason, so the "may fail silently" contract stays visible.
    """

    ok: bool
    error: str | None = None

    @classmethod
    def success(cls) -> "SideEffectOutcome":
        return cls(ok=True)

    @classmethod
    def failure(cls, error: BaseException | str) -> "SideEffectOutcome":
        return cls(ok=False, error=str(error))

    def ignore(self, logger: logging.Logger, reason: str) -> None:
        """Record that a failure is deliberately not propagated."""
        if not self.ok:
            logger.warning("Ignoring failed side effect (%s): %s", reason, self.error)
