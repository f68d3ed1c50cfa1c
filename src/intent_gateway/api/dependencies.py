"""Dependency injection configuration for FastAPI app.

Uses FastAPI's app.state pattern for storing service instances.

Pattern:
    - Services stored in app.state during lifespan
    - Dependency functions retrieve from request.app.state
    - Clean separation, no global mutable state
"""

import logging
from contextlib import asynccontextmanager
from typing import Annotated

from fastapi import Depends, FastAPI, Header, Request

from intent_gateway.config import settings
from intent_gateway.handlers import GatewayHandler
from intent_gateway.logging_config import configure_logging
from intent_gateway.protocols import EmbeddingProvider, KeyValueStore, UpstreamCaller
from intent_gateway.repositories import (
    AesCredentialCipher,
    CredentialRepository,
    HttpUpstreamCaller,
    KeywordEmbeddingProvider,
    RedisKeyValueStore,
)
from intent_gateway.services import (
    AccessControlService,
    CredentialService,
    GatewayService,
    NotificationService,
    SemanticCacheService,
    SessionService,
    TemplateMatcher,
    TokenResolver,
)

logger = logging.getLogger(__name__)


def build_handler(
    store: KeyValueStore,
    embedding_provider: EmbeddingProvider,
    upstream: UpstreamCaller,
    users: dict[str, str] | None = None,
) -> GatewayHandler:
    """Wire repositories, services and the handler around one store.

    Args:
        store: Shared key-value store
        embedding_provider: Embedding recipe for cache and template matching
        upstream: Upstream caller
        users: Login users (user id -> password). Defaults to settings.

    Returns:
        The GatewayHandler serving every route
    """
    repository = CredentialRepository(store)
    matcher = TemplateMatcher(repository, embedding_provider)
    gateway = GatewayService(
        resolver=TokenResolver(repository),
        cache=SemanticCacheService.create(store=store, embedding_provider=embedding_provider),
        matcher=matcher,
        access=AccessControlService(repository),
        credentials=CredentialService(repository, AesCredentialCipher(), matcher),
        notifications=NotificationService(store),
        upstream=upstream,
    )
    sessions = SessionService(repository, users=users)
    return GatewayHandler(gateway=gateway, sessions=sessions, store=store, embedding_provider=embedding_provider)


def get_handler(request: Request) -> GatewayHandler:
    """Dependency injection for GatewayHandler from app.state.

    Args:
        request: FastAPI Request object

    Returns:
        The GatewayHandler instance from app.state

    Raises:
        RuntimeError: If handler is not initialized
    """
    handler = getattr(request.app.state, "gateway_handler", None)
    if handler is None:
        raise RuntimeError("GatewayHandler not initialized. Check lifespan setup.")
    return handler


def get_bearer_token(authorization: Annotated[str | None, Header()] = None) -> str | None:
    """Session token from an ``Authorization: Bearer <token>`` header.

    A missing or malformed header yields None; the token resolver rejects it.
    """
    if not authorization:
        return None
    scheme, _, token = authorization.partition(" ")
    if scheme.lower() != "bearer":
        return None
    return token.strip() or None


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Lifespan context manager for FastAPI app.

    Initializes all layers and stores them in app.state:
    1. Store, embedding provider and upstream caller
    2. Services, wired by build_handler
    3. Handler (HTTP endpoints) - stored in app.state.gateway_handler

    Cleanup:
        Closes the upstream client and the Redis connection pool
    """
    configure_logging()

    store = RedisKeyValueStore.create()
    embedding_provider = KeywordEmbeddingProvider.create()
    upstream = HttpUpstreamCaller.create()

    app.state.store = store
    app.state.upstream = upstream
    app.state.gateway_handler = build_handler(store, embedding_provider, upstream)

    logger.info("Intent gateway initialized (redis=%s, embedding=%s)", settings.redis_url, embedding_provider.model_name)
    logger.info(
        "Thresholds: cache=%.2f match=%.2f conflict=%.2f",
        settings.cache_similarity_threshold,
        settings.match_threshold,
        settings.conflict_threshold,
    )

    yield

    await upstream.aclose()
    await store.close()
    del app.state.gateway_handler
    del app.state.upstream
    del app.state.store
    logger.info("Intent gateway shut down")


# Type aliases for cleaner dependency injection
HandlerDep = Annotated[GatewayHandler, Depends(get_handler)]
TokenDep = Annotated[str | None, Depends(get_bearer_token)]
