"""Deterministic intent rewriter.

This is the default intent rewriter. It needs no model and no network, so
the same intent is always routed the same way.
"""

import logging

from intent_gateway.protocols import IntentRewrite
from intent_gateway.utils import normalize_intent

logger = logging.getLogger(__name__)


class RuleBasedIntentRewriter:
    """Synonym-normalising implementation of IntentRewriter."""

    @classmethod
    def create(cls) -> "RuleBasedIntentRewriter":
        return cls()

    async def rewrite(self, intent: str) -> IntentRewrite:
        rewritten = normalize_intent(intent)
        if not rewritten:
            logger.warning("Intent normalised to nothing, using original intent")
            return IntentRewrite.fallback_to(intent)

        if rewritten != intent:
            logger.debug("Intent rewritten: %r -> %r", intent[:50], rewritten[:50])
        return IntentRewrite(original=intent, rewritten=rewritten, success=True)
