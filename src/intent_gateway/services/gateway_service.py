"""Gateway orchestration service.

Routes one request through the pipeline:

    token -> intent rewrite -> semantic cache -> template match -> access control
          -> decrypt -> upstream call -> cache write -> usage update

and exposes the remaining public operations (credential management,
diagnostics rankings, cache and access checks) behind token authentication.
"""

import logging
import time
from dataclasses import asdict
from datetime import datetime
from typing import Any

from intent_gateway.entities import (
    AccessDecision,
    CacheLookup,
    MatchResult,
    ProxyResult,
    SideEffectOutcome,
    TemplateMatch,
    TokenResolution,
)
from intent_gateway.exceptions import (
    AccessDeniedError,
    InvalidTokenError,
    TemplateNotFoundError,
    UpstreamError,
)
from intent_gateway.models import CacheEntryRecord, CredentialLimits, CredentialRecord, RetryPolicy
from intent_gateway.protocols import IntentRewrite, IntentRewriter, UpstreamCaller
from intent_gateway.repositories import RuleBasedIntentRewriter

from .access_control import AccessControlService
from .credential_service import CredentialService
from .notification_service import NotificationService
from .semantic_cache_service import SemanticCacheService
from .template_matcher import TemplateMatcher
from .token_resolver import TokenResolver

logger = logging.getLogger(__name__)

SUGGESTION_COUNT = 3


class GatewayService:
    """Request routing over the gateway services.

    Example:
        ```python
        gateway = GatewayService(resolver, cache, matcher, access, credentials, notifications, upstream)
        result = await gateway.proxy(token, "generate an image of a cat", {"prompt": "a cat"})
        ```
    """

    def __init__(
        self,
        resolver: TokenResolver,
        cache: SemanticCacheService,
        matcher: TemplateMatcher,
        access: AccessControlService,
        credentials: CredentialService,
        notifications: NotificationService,
        upstream: UpstreamCaller,
        rewriter: IntentRewriter | None = None,
    ) -> None:
        self._resolver = resolver
        self._cache = cache
        self._matcher = matcher
        self._access = access
        self._credentials = credentials
        self._notifications = notifications
        self._upstream = upstream
        self._rewriter = rewriter or RuleBasedIntentRewriter.create()

    async def proxy(
        self,
        token: str,
        intent: str,
        payload: Any,
        origin: str | None = None,
    ) -> ProxyResult:
        """Serve a request from the cache or the best matching upstream.

        Raises:
            InvalidTokenError: The token does not belong to a live session
            TemplateNotFoundError: No template clears the match threshold (carries suggestions)
            AccessDeniedError: Access control rejected the request (429 for quotas, 403 otherwise)
            DecryptionError: The session token does not decrypt the credential
            UpstreamError: The upstream call failed
        """
        started = time.perf_counter()
        caller_id = await self.authenticate(token)

        received = await self._notifications.publish(
            "received", {"event": "request:received", "user": caller_id, "intent": intent, "origin": origin}
        )
        received.ignore(logger, "request received event")

        rewrite = await self._rewrite(caller_id, intent)
        routed_intent = rewrite.rewritten

        lookup = await self._cache.lookup(caller_id, routed_intent, payload)
        if lookup.hit and lookup.entry is not None:
            latency_ms = _elapsed_ms(started)
            completed = await self._notifications.request_completed(
                caller_id, intent, lookup.entry.matched_template, lookup.confidence, True, latency_ms, 0
            )
            completed.ignore(logger, "request completed event")
            return ProxyResult(
                response=lookup.entry.response,
                matched_template=lookup.entry.matched_template,
                confidence=lookup.confidence,
                cached=True,
                latency_ms=latency_ms,
            )

        match = await self._matcher.match(caller_id, routed_intent)
        if not match.found or match.best is None:
            suggestions = await self._matcher.top_k(caller_id, routed_intent, SUGGESTION_COUNT)
            raise TemplateNotFoundError(suggestions=[asdict(s) for s in suggestions])

        template = match.best.template
        if match.conflict:
            notified = await self._notifications.notify_template_conflict(
                caller_id, routed_intent, [m.template for m in match.conflicting]
            )
            notified.ignore(logger, "template conflict notification")

        decision = await self._access.validate(caller_id, template, payload, origin)
        if not decision.allowed:
            raise AccessDeniedError(decision.error, decision.retryable, template=template)

        await self._credentials.ensure_ttl_consistent(caller_id, template)
        record = await self._credentials.get_credential(caller_id, template)
        secret = self._credentials.decrypt_secret(record, token)

        result = await self._upstream.call(template, secret, payload, record.retry)
        if not result.success:
            logger.warning("Upstream call failed for template %s: %s", template, result.error)
            raise UpstreamError(f"{template} API call failed", template=template, reason=result.error)

        confidence = match.best.confidence
        stored = await self._cache.store(caller_id, routed_intent, payload, result.data, template, confidence)
        stored.ignore(logger, "semantic cache write")
        counted = await self._access.update_usage(caller_id, template, result.tokens_used)
        counted.ignore(logger, "usage update")

        latency_ms = _elapsed_ms(started)
        completed = await self._notifications.request_completed(
            caller_id, intent, template, confidence, False, latency_ms, result.tokens_used
        )
        completed.ignore(logger, "request completed event")

        notices = [f"Rewritten intent: {routed_intent}"] if rewrite.changed else []
        if decision.warning:
            notices.append(decision.warning)

        return ProxyResult(
            response=result.data,
            matched_template=template,
            confidence=confidence,
            cached=False,
            latency_ms=latency_ms,
            tokens_used=result.tokens_used,
            notices=notices,
        )

    async def _rewrite(self, caller_id: str, intent: str) -> IntentRewrite:
        """Rewrite the intent and tell the caller when it changed or could not be rewritten."""
        rewrite = await self._rewriter.rewrite(intent)
        if rewrite.fallback:
            notified = await self._notifications.notify_rewrite_fallback(caller_id)
            notified.ignore(logger, "intent rewrite fallback notification")
        elif rewrite.changed:
            notified = await self._notifications.notify_intent_rewritten(caller_id, intent, rewrite.rewritten)
            notified.ignore(logger, "intent rewritten notification")
        return rewrite

    def thresholds(self) -> dict[str, float]:
        """Routing thresholds of the wired cache and matcher."""
        return {
            "cache_similarity": self._cache.threshold,
            "cache_max_entries": self._cache.max_entries,
            "match": self._matcher.match_threshold,
            "conflict": self._matcher.conflict_threshold,
        }

    # ---------- Identity ----------

    async def resolve_token(self, token: str | None) -> TokenResolution:
        return await self._resolver.resolve(token)

    async def authenticate(self, token: str | None) -> str:
        """Caller id for a token.

        Raises:
            InvalidTokenError: With the resolver's reason as message
        """
        resolution = await self._resolver.resolve(token)
        if not resolution.valid or resolution.caller_id is None:
            raise InvalidTokenError(resolution.error)
        return resolution.caller_id

    # ---------- Cache ----------

    async def lookup_cache(self, token: str, intent: str, payload: Any) -> CacheLookup:
        return await self._cache.lookup(await self.authenticate(token), intent, payload)

    async def store_cache(
        self,
        token: str,
        intent: str,
        payload: Any,
        response: Any,
        template: str,
        confidence: float,
    ) -> SideEffectOutcome:
        caller_id = await self.authenticate(token)
        return await self._cache.store(caller_id, intent, payload, response, template, confidence)

    async def inspect_cache(self, token: str) -> list[tuple[str, CacheEntryRecord]]:
        return await self._cache.inspect(await self.authenticate(token))

    async def clear_cache(self, token: str) -> int:
        return await self._cache.clear(await self.authenticate(token))

    # ---------- Templates ----------

    async def match_template(self, token: str, intent: str) -> MatchResult:
        return await self._matcher.match(await self.authenticate(token), intent)

    async def top_k(self, token: str, intent: str, k: int = 3) -> list[TemplateMatch]:
        return await self._matcher.top_k(await self.authenticate(token), intent, k)

    async def suggestions(self, token: str, partial_intent: str, limit: int = 5) -> list[TemplateMatch]:
        return await self._matcher.suggest(await self.authenticate(token), partial_intent, limit)

    # ---------- Access ----------

    async def validate_access(
        self, token: str, template: str, payload: Any, origin: str | None = None
    ) -> AccessDecision:
        return await self._access.validate(await self.authenticate(token), template, payload, origin)

    async def update_usage(self, token: str, template: str, tokens_used: int) -> SideEffectOutcome:
        return await self._access.update_usage(await self.authenticate(token), template, tokens_used)

    # ---------- Credentials ----------

    async def add_credential(
        self,
        token: str,
        template: str,
        api_key: str,
        description: str,
        limits: CredentialLimits | None = None,
        retry: RetryPolicy | None = None,
        expiry_date: datetime | None = None,
        allowed_origins: list[str] | None = None,
        scopes: list[str] | None = None,
    ) -> tuple[CredentialRecord, int]:
        caller_id = await self.authenticate(token)
        return await self._credentials.add_credential(
            caller_id,
            token,
            template,
            api_key,
            description,
            limits=limits,
            retry=retry,
            expiry_date=expiry_date,
            allowed_origins=allowed_origins,
            scopes=scopes,
        )

    async def update_credential(
        self, token: str, template: str, changes: dict[str, Any]
    ) -> tuple[CredentialRecord, list[str]]:
        return await self._credentials.update_credential(await self.authenticate(token), template, changes)

    async def delete_credential(self, token: str, template: str, confirm: bool = False) -> CredentialRecord:
        return await self._credentials.delete_credential(await self.authenticate(token), template, confirm)

    async def list_credentials(self, token: str) -> list[tuple[str, CredentialRecord, int]]:
        return await self._credentials.list_credentials(await self.authenticate(token))

    async def sync_credential_ttls(self, token: str) -> int:
        return await self._credentials.sync_credential_ttls(await self.authenticate(token))

    # ---------- Notifications ----------

    async def notifications(self, token: str, limit: int = 20):
        return await self._notifications.recent(await self.authenticate(token), limit)


def _elapsed_ms(started: float) -> int:
    return int((time.perf_counter() - started) * 1000)
