"""Template matcher.

Scores a caller's registered credentials against an intent by comparing the
intent with each credential's description.
"""

import logging

from intent_gateway.config import settings
from intent_gateway.entities import MatchResult, TemplateMatch
from intent_gateway.models import CredentialRecord
from intent_gateway.protocols import EmbeddingProvider
from intent_gateway.repositories import CredentialRepository
from intent_gateway.utils import cosine_similarity

logger = logging.getLogger(__name__)


class TemplateMatcher:
    """Select the credential whose description best matches an intent.

    ``match`` applies the match threshold and flags ambiguity; ``suggest`` and
    ``top_k`` are threshold-free rankings for diagnostics. Store errors
    propagate.
    """

    def __init__(
        self,
        repository: CredentialRepository,
        embedding_provider: EmbeddingProvider,
        match_threshold: float | None = None,
        conflict_threshold: float | None = None,
        description_conflict_threshold: float | None = None,
    ) -> None:
        self._repository = repository
        self._embeddings = embedding_provider
        self._match_threshold = match_threshold if match_threshold is not None else settings.match_threshold
        self._conflict_threshold = (
            conflict_threshold if conflict_threshold is not None else settings.conflict_threshold
        )
        self._description_threshold = (
            description_conflict_threshold
            if description_conflict_threshold is not None
            else settings.description_conflict_threshold
        )

    def rank(self, text: str, credentials: list[tuple[str, CredentialRecord]]) -> list[TemplateMatch]:
        """Score every credential description against ``text``, highest first.

        The sort is stable, so templates seen first win ties.
        """
        vector = self._embeddings.encode(text)
        scored = [
            TemplateMatch(
                template=template,
                confidence=cosine_similarity(vector, self._embeddings.encode(record.description)),
                description=record.description,
            )
            for template, record in credentials
        ]
        scored.sort(key=lambda m: m.confidence, reverse=True)
        return scored

    async def match(self, caller_id: str, intent: str) -> MatchResult:
        """Find the best matching template for an intent.

        Args:
            caller_id: The caller identity
            intent: The intent to match

        Returns:
            MatchResult; ``found`` is False when no template clears the match threshold
        """
        credentials = await self._repository.list_credentials(caller_id)
        if not credentials:
            logger.info("No API keys found for user %s - may have expired with session", caller_id)
            return MatchResult(found=False)

        matches = [m for m in self.rank(intent, credentials) if m.confidence >= self._match_threshold]
        if not matches:
            logger.info("No matching templates found for intent: %s", intent[:50])
            return MatchResult(found=False)

        conflicting = [m for m in matches if m.confidence >= self._conflict_threshold]
        conflict = len(conflicting) > 1
        if conflict:
            logger.warning(
                "Multiple template conflicts found for intent: %s (user=%s, templates=%s)",
                intent[:50],
                caller_id,
                [m.template for m in conflicting],
            )

        best = matches[0]
        logger.info(
            "Template match found for user %s: template=%s confidence=%.3f conflict=%s",
            caller_id,
            best.template,
            best.confidence,
            conflict,
        )
        return MatchResult(
            found=True,
            best=best,
            conflict=conflict,
            conflicting=conflicting if conflict else [],
        )

    async def suggest(self, caller_id: str, partial_intent: str, limit: int = 5) -> list[TemplateMatch]:
        """Rank templates for a partial intent, without a threshold."""
        credentials = await self._repository.list_credentials(caller_id)
        return self.rank(partial_intent, credentials)[:limit]

    async def top_k(self, caller_id: str, intent: str, k: int = 3) -> list[TemplateMatch]:
        """Top ``k`` templates for an intent, each with its raw confidence."""
        credentials = await self._repository.list_credentials(caller_id)
        return self.rank(intent, credentials)[:k]

    async def find_similar_descriptions(
        self,
        caller_id: str,
        description: str,
        threshold: float | None = None,
        exclude: str | None = None,
    ) -> list[TemplateMatch]:
        """Existing templates whose description is at least ``threshold`` similar.

        Args:
            caller_id: The caller identity
            description: The candidate description
            threshold: Minimum similarity. Defaults to the description conflict threshold.
            exclude: Template to leave out (the one being updated)

        Returns:
            Similar templates, most similar first
        """
        threshold = threshold if threshold is not None else self._description_threshold
        credentials = [
            (template, record)
            for template, record in await self._repository.list_credentials(caller_id)
            if template != exclude
        ]
        return [m for m in self.rank(description, credentials) if m.confidence >= threshold]

    async def check_description_conflict(
        self,
        caller_id: str,
        description: str,
        exclude: str | None = None,
    ) -> TemplateMatch | None:
        """The most similar existing template if it conflicts, else None."""
        similar = await self.find_similar_descriptions(caller_id, description, exclude=exclude)
        return similar[0] if similar else None

    @property
    def match_threshold(self) -> float:
        return self._match_threshold

    @property
    def conflict_threshold(self) -> float:
        return self._conflict_threshold
