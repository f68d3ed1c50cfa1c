from typing import Annotated, Any

from fastapi import FastAPI, Header, HTTPException, Query, Request, status
from fastapi.responses import JSONResponse

from intent_gateway.api.dependencies import HandlerDep, TokenDep, lifespan
from intent_gateway.config import settings
from intent_gateway.dto import (
    AccessValidationResponse,
    AddKeyRequest,
    AddKeyResponse,
    CacheInspectResponse,
    ClearCacheResponse,
    DeleteKeyRequest,
    DeleteKeyResponse,
    HealthCheckResponse,
    IntentRequest,
    KeyListResponse,
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
    TopKRequest,
    UpdateKeyRequest,
    UpdateKeyResponse,
    ValidateAccessRequest,
)

app = FastAPI(
    title="Intent Gateway API",
    description="Routes natural-language intents to session-bound upstream credentials with semantic caching",
    version="0.1.0",
    lifespan=lifespan,
)


@app.exception_handler(HTTPException)
async def gateway_error_body(_request: Request, exc: HTTPException) -> JSONResponse:
    """Return structured error details as the response body itself."""
    if isinstance(exc.detail, dict):
        return JSONResponse(status_code=exc.status_code, content=exc.detail, headers=exc.headers)
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.detail}, headers=exc.headers)


@app.get("/")
async def root() -> dict[str, Any]:
    """Root endpoint with API information."""
    return {
        "name": "Intent Gateway API",
        "version": "0.1.0",
        "description": "Routes natural-language intents to session-bound upstream credentials",
        "endpoints": {
            "auth": "/auth",
            "keys": "/keys",
            "proxy": "/proxy",
            "templates": "/templates",
            "cache": "/cache",
            "health": "/health",
            "docs": "/docs",
        },
    }


@app.get("/health", response_model=HealthCheckResponse)
async def health(handler: HandlerDep) -> HealthCheckResponse:
    return await handler.health_check()


# ---------- Auth ----------


@app.post("/auth/login", response_model=LoginResponse)
async def login(request: LoginRequest, handler: HandlerDep) -> LoginResponse:
    """Start a session; credentials of the caller are re-bound to it."""
    return await handler.login(request)


@app.post("/auth/logout", response_model=MessageResponse)
async def logout(request: LogoutRequest, handler: HandlerDep) -> MessageResponse:
    return await handler.logout(request)


@app.get("/auth/status/{user_id}", response_model=SessionStatusResponse)
async def session_status(user_id: str, handler: HandlerDep) -> SessionStatusResponse:
    return await handler.session_status(user_id)


# ---------- Keys ----------


@app.get("/keys", response_model=KeyListResponse)
async def list_keys(handler: HandlerDep, token: TokenDep) -> KeyListResponse:
    return await handler.list_keys(token)


@app.post("/keys", response_model=AddKeyResponse, status_code=status.HTTP_201_CREATED)
async def add_key(request: AddKeyRequest, handler: HandlerDep, token: TokenDep) -> AddKeyResponse:
    """Register a credential; it expires together with the session."""
    return await handler.add_key(token, request)


@app.put("/keys", response_model=UpdateKeyResponse)
async def update_key(request: UpdateKeyRequest, handler: HandlerDep, token: TokenDep) -> UpdateKeyResponse:
    return await handler.update_key(token, request)


@app.delete("/keys", response_model=DeleteKeyResponse)
async def delete_key(request: DeleteKeyRequest, handler: HandlerDep, token: TokenDep) -> DeleteKeyResponse:
    return await handler.delete_key(token, request)


@app.post("/keys/sync-ttl", response_model=SyncTtlResponse)
async def sync_ttl(handler: HandlerDep, token: TokenDep) -> SyncTtlResponse:
    """Repair pass: align every credential's TTL with the session."""
    return await handler.sync_ttl(token)


# ---------- Routing ----------


@app.post("/proxy", response_model=ProxyResponse)
async def proxy(
    request: ProxyRequest,
    handler: HandlerDep,
    origin: Annotated[str | None, Header()] = None,
) -> ProxyResponse:
    """
    Route an intent to the best matching credential.

    Served from the semantic cache when an equivalent request was answered
    recently; otherwise matched, access-checked and forwarded upstream.
    """
    return await handler.proxy(request, origin_header=origin)


@app.post("/templates/match", response_model=MatchResponse)
async def match_template(request: IntentRequest, handler: HandlerDep, token: TokenDep) -> MatchResponse:
    return await handler.match_template(token, request)


@app.post("/templates/top-k", response_model=RankingResponse)
async def top_k(request: TopKRequest, handler: HandlerDep, token: TokenDep) -> RankingResponse:
    return await handler.top_k(token, request)


@app.post("/templates/suggestions", response_model=RankingResponse)
async def suggestions(request: SuggestionsRequest, handler: HandlerDep, token: TokenDep) -> RankingResponse:
    return await handler.suggestions(token, request)


@app.post("/access/validate", response_model=AccessValidationResponse)
async def validate_access(
    request: ValidateAccessRequest, handler: HandlerDep, token: TokenDep
) -> AccessValidationResponse:
    """Dry-run the access-control checks without calling upstream."""
    return await handler.validate_access(token, request)


# ---------- Cache & notifications ----------


@app.get("/cache", response_model=CacheInspectResponse)
async def inspect_cache(handler: HandlerDep, token: TokenDep) -> CacheInspectResponse:
    return await handler.inspect_cache(token)


@app.delete("/cache", response_model=ClearCacheResponse)
async def clear_cache(handler: HandlerDep, token: TokenDep) -> ClearCacheResponse:
    return await handler.clear_cache(token)


@app.get("/notifications", response_model=NotificationsResponse)
async def notifications(
    handler: HandlerDep,
    token: TokenDep,
    limit: Annotated[int, Query(ge=1, le=50)] = 20,
) -> NotificationsResponse:
    return await handler.notifications(token, limit)


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "intent_gateway.api.app:app",
        host=settings.api_host,
        port=settings.api_port,
        reload=settings.api_reload,
    )
