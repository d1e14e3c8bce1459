from __future__ import annotations

import logging
import uuid
from contextlib import asynccontextmanager
from typing import AsyncIterator

import redis.asyncio as aioredis
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from recruit_chat.api.middleware.correlation_id import (
    REQUEST_ID_HEADER,
    CorrelationIdMiddleware,
    current_request_id,
)
from recruit_chat.api.middleware.metrics import RequestTimingMiddleware
from recruit_chat.api.v1.routers import chat, credits, health, ws
from recruit_chat.api.v1.schemas.common import ErrorResponse
from recruit_chat.application.exceptions import (
    AppError,
    AuthenticationError,
    ConflictError,
    ForbiddenError,
    InsufficientBalanceError,
    NotFoundError,
    UnlockInconsistentError,
    ValidationError,
)
from recruit_chat.config import settings
from recruit_chat.infrastructure.bus.redis_pubsub import (
    RedisPubSubPublisher,
    RedisPubSubSubscriber,
)
from recruit_chat.infrastructure.presence.registry import RedisPresenceRegistry

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Startup / shutdown lifecycle."""
    app.state.redis = aioredis.from_url(
        settings.REDIS_URL,
        decode_responses=True,
    )
    logger.info("Redis connection pool created")

    instance_id = uuid.uuid4().hex
    app.state.presence = RedisPresenceRegistry(app.state.redis, settings.REDIS_PRESENCE_KEY)
    app.state.publisher = RedisPubSubPublisher(
        app.state.redis, settings.REDIS_PUBSUB_CHANNEL, instance_id,
    )

    subscriber = RedisPubSubSubscriber(
        app.state.redis,
        settings.REDIS_PUBSUB_CHANNEL,
        ws.dispatch_bus_event,
        origin=instance_id,
    )
    await subscriber.start()
    app.state.pubsub_subscriber = subscriber

    yield

    await subscriber.stop()
    await app.state.redis.aclose()
    logger.info("Redis connection pool closed")


def create_app() -> FastAPI:
    app = FastAPI(
        title="Recruit Chat Service",
        version="0.1.0",
        lifespan=lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
        expose_headers=[REQUEST_ID_HEADER],
    )
    app.add_middleware(RequestTimingMiddleware)
    # Added last so it wraps the timing middleware and the id is set for it.
    app.add_middleware(CorrelationIdMiddleware)

    _register_exception_handlers(app)

    app.include_router(health.router)
    app.include_router(credits.router)
    app.include_router(chat.router)
    app.include_router(ws.router)

    return app


def _error(status_code: int, exc: AppError) -> JSONResponse:
    body = ErrorResponse(detail=exc.detail, code=exc.code)
    return JSONResponse(status_code=status_code, content=body.model_dump())


def _register_exception_handlers(app: FastAPI) -> None:
    @app.exception_handler(NotFoundError)
    async def _not_found(_req: Request, exc: NotFoundError) -> JSONResponse:
        return _error(404, exc)

    @app.exception_handler(ForbiddenError)
    async def _forbidden(_req: Request, exc: ForbiddenError) -> JSONResponse:
        return _error(403, exc)

    @app.exception_handler(ConflictError)
    async def _conflict(_req: Request, exc: ConflictError) -> JSONResponse:
        return _error(409, exc)

    @app.exception_handler(ValidationError)
    async def _validation(_req: Request, exc: ValidationError) -> JSONResponse:
        return _error(422, exc)

    @app.exception_handler(AuthenticationError)
    async def _unauthenticated(_req: Request, exc: AuthenticationError) -> JSONResponse:
        return _error(401, exc)

    @app.exception_handler(InsufficientBalanceError)
    async def _insufficient(_req: Request, exc: InsufficientBalanceError) -> JSONResponse:
        return _error(402, exc)

    @app.exception_handler(UnlockInconsistentError)
    async def _inconsistent(_req: Request, exc: UnlockInconsistentError) -> JSONResponse:
        logger.error(
            "Unlock inconsistency reported to client: %s (request_id=%s)",
            exc.detail, current_request_id(),
        )
        return _error(500, exc)
