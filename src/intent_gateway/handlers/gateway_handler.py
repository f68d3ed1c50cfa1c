"""HTTP handlers for gateway operations.

Handlers convert between DTOs (API contracts) and service calls.
They handle HTTP concerns like status codes, validation, and error handling.
"""

import logging
from collections.abc import Iterator
from contextlib import contextmanager

from fastapi import HTTPException, status

from intent_gateway.dto import (
    AccessValidationResponse,
    AddKeyRequest,
    AddKeyResponse,
    CacheEntryItem,
    CacheInspectResponse,
    ClearCacheResponse,
    DeleteKeyRequest,
    DeleteKeyResponse,
    HealthCheckResponse,
    IntentRequest,
    KeyListResponse,
    KeySummary,
    LoginRequest,
    LoginResponse,
    LogoutRequest,
    MatchResponse,
    MessageResponse,
    NotificationsResponse,
    ProxyRequest,
    ProxyResponse,
    RankingResponse,
    SessionStatusResponse,
    SuggestionsRequest,
    SyncTtlResponse,
    TemplateMatchItem,
    TopKRequest,
    UpdateKeyRequest,
    UpdateKeyResponse,
    ValidateAccessRequest,
)
from intent_gateway.entities import TemplateMatch
from intent_gateway.exceptions import GatewayError
from intent_gateway.models import CredentialLimits, RetryPolicy
from intent_gateway.protocols import EmbeddingProvider, KeyValueStore
from intent_gateway.services import GatewayService, SessionService

logger = logging.getLogger(__name__)


@contextmanager
def http_errors(action: str) -> Iterator[None]:
    """Translate service exceptions into HTTPException.

    GatewayError subclasses keep their status code and JSON body; anything
    else becomes a 500.
    """
    try:
        yield
    except GatewayError as e:
        raise HTTPException(status_code=e.status_code, detail=e.to_dict()) from e
    except Exception as e:
        logger.exception("Failed to %s", action)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail={"success": False, "error": "Internal server error", "message": f"Failed to {action}"},
        ) from e


def _match_item(match: TemplateMatch) -> TemplateMatchItem:
    return TemplateMatchItem(template=match.template, confidence=match.confidence, description=match.description)


class GatewayHandler:
    """HTTP handlers for gateway operations.

    This handler delegates business logic to GatewayService and
    SessionService and handles HTTP-specific concerns like:
    - Converting entities to DTOs
    - Setting appropriate status codes
    - Error handling and responses

    Example:
        ```python
        handler = GatewayHandler(gateway=gateway, sessions=sessions, store=store, embedding_provider=provider)

        @app.post("/proxy", response_model=ProxyResponse)
        async def proxy(request: ProxyRequest):
            return await handler.proxy(request)
        ```
    """

    def __init__(
        self,
        gateway: GatewayService,
        sessions: SessionService,
        store: KeyValueStore,
        embedding_provider: EmbeddingProvider,
    ) -> None:
        """Initialize the handler.

        Args:
            gateway: Request routing and credential operations (required).
            sessions: Login/logout (required).
            store: Key-value store, used for health checks.
            embedding_provider: Embedding provider, used for health checks.
        """
        self._gateway = gateway
        self._sessions = sessions
        self._store = store
        self._embeddings = embedding_provider

    # ---------- Sessions ----------

    async def login(self, request: LoginRequest) -> LoginResponse:
        """Handle POST /auth/login requests."""
        with http_errors("log in"):
            record = await self._sessions.login(request.user_id, request.password)
        return LoginResponse(token=record.token, expires_in=self._sessions.session_ttl)

    async def logout(self, request: LogoutRequest) -> MessageResponse:
        with http_errors("log out"):
            await self._sessions.logout(request.user_id)
        return MessageResponse(message="Logout successful")

    async def session_status(self, user_id: str) -> SessionStatusResponse:
        with http_errors("check user status"):
            session = await self._sessions.status(user_id)
        return SessionStatusResponse(
            user_id=session.caller_id,
            active=session.active,
            remaining_time=session.remaining_ttl,
            activated_at=session.activated_at,
        )

    # ---------- Credentials ----------

    async def list_keys(self, token: str | None) -> KeyListResponse:
        """Handle GET /keys requests."""
        with http_errors("list API keys"):
            credentials = await self._gateway.list_credentials(token)

        keys = [
            KeySummary(
                template=template,
                description=record.description,
                limits=record.limits,
                usage=record.usage,
                retry=record.retry,
                expiry_date=record.expiry_date,
                allowed_origins=record.allowed_origins,
                scopes=record.scopes,
                created_at=record.created_at,
                last_modified=record.last_modified,
                ttl_seconds=ttl,
            )
            for template, record, ttl in credentials
        ]
        return KeyListResponse(keys=keys, count=len(keys))

    async def add_key(self, token: str | None, request: AddKeyRequest) -> AddKeyResponse:
        """Handle POST /keys requests.

        Raises:
            HTTPException: 409 for a duplicate template or a semantic conflict,
                401 without a live session
        """
        with http_errors("save the API key"):
            record, ttl = await self._gateway.add_credential(
                token,
                request.template,
                request.api_key,
                request.description,
                limits=CredentialLimits(
                    max_requests_per_day=request.max_requests_per_day,
                    max_requests_per_week=request.max_requests_per_week,
                    max_tokens_per_day=request.max_tokens_per_day,
                    max_payload_kb=request.max_payload_kb,
                ),
                retry=RetryPolicy(
                    retry_enabled=request.retry_enabled,
                    max_retries=request.max_retries,
                    retry_backoff_ms=request.retry_backoff_ms,
                ),
                expiry_date=request.expiry_date,
                allowed_origins=request.allowed_origins,
                scopes=request.scopes,
            )

        return AddKeyResponse(
            message="API key saved and encrypted successfully",
            template=request.template,
            description=record.description,
            limits=record.limits,
            scopes=record.scopes,
            created_at=record.created_at,
            ttl_seconds=ttl,
        )

    async def update_key(self, token: str | None, request: UpdateKeyRequest) -> UpdateKeyResponse:
        changes = request.model_dump(exclude_unset=True, exclude={"template"})
        with http_errors("update the API key"):
            record, updated_fields = await self._gateway.update_credential(token, request.template, changes)

        return UpdateKeyResponse(
            message="API key updated successfully",
            template=request.template,
            updated_fields=updated_fields,
            limits=record.limits,
            scopes=record.scopes,
            last_modified=record.last_modified,
        )

    async def delete_key(self, token: str | None, request: DeleteKeyRequest) -> DeleteKeyResponse:
        with http_errors("delete the API key"):
            await self._gateway.delete_credential(token, request.template, request.confirm)
        return DeleteKeyResponse(message="API key deleted successfully", template=request.template)

    async def sync_ttl(self, token: str | None) -> SyncTtlResponse:
        with http_errors("sync API key TTLs"):
            synced = await self._gateway.sync_credential_ttls(token)
        return SyncTtlResponse(synced_keys=synced)

    # ---------- Routing ----------

    async def proxy(self, request: ProxyRequest, origin_header: str | None = None) -> ProxyResponse:
        """Handle POST /proxy requests.

        Args:
            request: The proxy request DTO (token in the body)
            origin_header: The Origin header, used when the body has no origin

        Returns:
            ProxyResponse with the upstream or cached response
        """
        with http_errors("process the request"):
            result = await self._gateway.proxy(
                request.token,
                request.intent,
                request.payload,
                request.origin or origin_header,
            )

        return ProxyResponse(
            response=result.response,
            matched_template=result.matched_template,
            confidence=result.confidence,
            cached=result.cached,
            latency_ms=result.latency_ms,
            tokens_used=result.tokens_used,
            notices=result.notices,
        )

    async def match_template(self, token: str | None, request: IntentRequest) -> MatchResponse:
        with http_errors("match templates"):
            result = await self._gateway.match_template(token, request.intent)

        return MatchResponse(
            found=result.found,
            match=_match_item(result.best) if result.best else None,
            has_conflict=result.conflict,
            conflicting_templates=[_match_item(m) for m in result.conflicting],
        )

    async def top_k(self, token: str | None, request: TopKRequest) -> RankingResponse:
        with http_errors("rank templates"):
            matches = await self._gateway.top_k(token, request.intent, request.k)
        return RankingResponse(intent=request.intent, matches=[_match_item(m) for m in matches])

    async def suggestions(self, token: str | None, request: SuggestionsRequest) -> RankingResponse:
        with http_errors("get template suggestions"):
            matches = await self._gateway.suggestions(token, request.partial_intent, request.limit)
        return RankingResponse(intent=request.partial_intent, matches=[_match_item(m) for m in matches])

    async def validate_access(self, token: str | None, request: ValidateAccessRequest) -> AccessValidationResponse:
        with http_errors("validate access"):
            decision = await self._gateway.validate_access(token, request.template, request.payload, request.origin)
        return AccessValidationResponse(
            allowed=decision.allowed,
            error=decision.error,
            warning=decision.warning,
            retryable=decision.retryable,
        )

    # ---------- Cache & notifications ----------

    async def inspect_cache(self, token: str | None) -> CacheInspectResponse:
        """Handle GET /cache requests (newest first)."""
        with http_errors("inspect the cache"):
            entries = await self._gateway.inspect_cache(token)

        items = [
            CacheEntryItem(
                id=entry_id,
                intent=entry.intent,
                payload_hash=entry.payload_hash,
                matched_template=entry.matched_template,
                confidence=entry.confidence,
                timestamp=entry.timestamp,
            )
            for entry_id, entry in entries
        ]
        return CacheInspectResponse(entries=items, count=len(items))

    async def clear_cache(self, token: str | None) -> ClearCacheResponse:
        with http_errors("clear the cache"):
            deleted = await self._gateway.clear_cache(token)
        return ClearCacheResponse(deleted_count=deleted, message="Cache cleared successfully")

    async def notifications(self, token: str | None, limit: int = 20) -> NotificationsResponse:
        with http_errors("get notifications"):
            items = await self._gateway.notifications(token, limit)
        return NotificationsResponse(notifications=items, count=len(items))

    async def health_check(self) -> HealthCheckResponse:
        """Handle GET /health requests."""
        try:
            store_healthy = bool(await self._store.ping())
        except Exception:
            logger.warning("Store health check failed", exc_info=True)
            store_healthy = False

        embedding_healthy = self._embeddings.is_available()
        return HealthCheckResponse(
            status="healthy" if store_healthy and embedding_healthy else "unhealthy",
            store_healthy=store_healthy,
            embedding_healthy=embedding_healthy,
            embedding_model=self._embeddings.model_name,
            thresholds=self._gateway.thresholds(),
        )
