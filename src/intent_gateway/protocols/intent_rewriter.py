"""Intent rewriter protocol.

A rewriter turns a free-form intent into the text used for the semantic
cache and template matching. Implementations never raise: when rewriting
is not possible they return the original intent flagged as a fallback.
"""

from dataclasses import dataclass
from typing import Protocol, runtime_checkable


@dataclass(frozen=True)
class IntentRewrite:
    """Outcome of one rewrite.

    Attributes:
        original: The intent as the caller sent it
        rewritten: The intent to route with (the original on fallback)
        success: Whether the rewriter produced the intent
        fallback: Whether the original intent is used because rewriting failed
    """

    original: str
    rewritten: str
    success: bool
    fallback: bool = False

    @classmethod
    def fallback_to(cls, original: str) -> "IntentRewrite":
        return cls(original=original, rewritten=original, success=False, fallback=True)

    @property
    def changed(self) -> bool:
        return self.success and self.rewritten != self.original


@runtime_checkable
class IntentRewriter(Protocol):
    """Protocol for rewriting intents before routing."""

    async def rewrite(self, intent: str) -> IntentRewrite:
        """Rewrite an intent.

        Args:
            intent: The caller's intent

        Returns:
            IntentRewrite; ``fallback`` is set when the original is kept
        """
        ...
