from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator

import redis.asyncio as aioredis
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from comms_service.api.middleware.correlation_id import CorrelationIdMiddleware
from comms_service.api.middleware.timing import RequestTimingMiddleware
from comms_service.api.v1.routers import (
    admin_realtime,
    conversations,
    health,
    messages,
    notifications,
    ws,
)
from comms_service.application.exceptions import (
    AuthorizationError,
    NotFoundError,
    PersistenceFailure,
    ValidationError,
)
from comms_service.application.uow import UoWFactory
from comms_service.config import settings
from comms_service.infrastructure.ws.manager import ConnectionManager
from comms_service.infrastructure.ws.offline_queue import OfflineMessageQueue
from comms_service.infrastructure.ws.presence import PresenceRegistry
from comms_service.infrastructure.ws.rate_limit import ConnectionRateLimiter
from comms_service.workers.platform_events_consumer import PlatformEventHandler, build_consumer

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Startup / shutdown lifecycle."""
    app.state.redis = aioredis.from_url(
        settings.REDIS_URL,
        decode_responses=True,
    )
    logger.info("Redis connection pool created")

    manager: ConnectionManager = app.state.manager
    await manager.start()

    consumer = None
    if settings.EVENTS_CONSUMER_ENABLED:
        handler = PlatformEventHandler(
            app.state.uow_factory, manager.presence, manager, app.state.offline_queue,
        )
        consumer = build_consumer(app.state.redis, handler)
        await consumer.start()

    yield

    if consumer is not None:
        await consumer.stop()
    await manager.stop()
    await app.state.redis.aclose()
    logger.info("Redis connection pool closed")


def _default_uow_factory() -> UoWFactory:
    from comms_service.infrastructure.db.session import AsyncSessionLocal
    from comms_service.infrastructure.db.uow import uow_factory

    return uow_factory(AsyncSessionLocal)


def create_app(uow_factory: UoWFactory | None = None) -> FastAPI:
    app = FastAPI(
        title="Realtime Communication Service",
        version="0.1.0",
        lifespan=lifespan,
    )

    presence = PresenceRegistry(
        away_after_seconds=settings.PRESENCE_AWAY_AFTER_SECONDS,
        offline_after_seconds=settings.PRESENCE_OFFLINE_AFTER_SECONDS,
    )
    queue = OfflineMessageQueue()
    manager = ConnectionManager(
        presence,
        queue,
        sweep_interval=settings.PRESENCE_SWEEP_INTERVAL_SECONDS,
    )
    app.state.uow_factory = uow_factory or _default_uow_factory()
    app.state.offline_queue = queue
    app.state.manager = manager
    app.state.rate_limiter = ConnectionRateLimiter(
        settings.WS_CONNECT_RATE_LIMIT, settings.WS_CONNECT_RATE_WINDOW_SECONDS,
    )
    ws.WsHandlers(manager, queue, app.state.uow_factory).register()

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.add_middleware(RequestTimingMiddleware)
    app.add_middleware(CorrelationIdMiddleware)

    _register_exception_handlers(app)

    app.include_router(health.router)
    app.include_router(conversations.router)
    app.include_router(messages.router)
    app.include_router(notifications.router)
    app.include_router(admin_realtime.router)
    app.include_router(ws.router)

    return app


def _register_exception_handlers(app: FastAPI) -> None:
    @app.exception_handler(NotFoundError)
    async def _not_found(_req: Request, exc: NotFoundError) -> JSONResponse:
        return JSONResponse(status_code=404, content={"detail": exc.detail})

    @app.exception_handler(AuthorizationError)
    async def _forbidden(_req: Request, exc: AuthorizationError) -> JSONResponse:
        return JSONResponse(status_code=403, content={"detail": exc.detail})

    @app.exception_handler(ValidationError)
    async def _validation(_req: Request, exc: ValidationError) -> JSONResponse:
        return JSONResponse(status_code=422, content={"detail": exc.detail})

    @app.exception_handler(PersistenceFailure)
    async def _persistence(_req: Request, exc: PersistenceFailure) -> JSONResponse:
        return JSONResponse(
            status_code=503,
            content={"detail": exc.detail},
            headers={"Retry-After": "5"},
        )
