from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator

import redis.asyncio as aioredis
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from chat_relay.api.middleware.correlation_id import CorrelationIdMiddleware
from chat_relay.api.v1.routers import health, messages, users, ws
from chat_relay.application.exceptions import (
    ConflictError,
    NotFoundError,
    ValidationError,
)
from chat_relay.application.ports.bus import EventFanout
from chat_relay.application.uow import UoWFactory
from chat_relay.config import settings
from chat_relay.infrastructure.bus.redis_pubsub import RedisPubSubPublisher, RedisPubSubSubscriber
from chat_relay.infrastructure.db.uow import open_uow
from chat_relay.infrastructure.ws.manager import ConnectionManager
from chat_relay.services.hub import build_hub

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Startup / shutdown lifecycle."""
    if settings.DB_CREATE_SCHEMA:
        from chat_relay.infrastructure.db.session import create_schema

        await create_schema()
        logger.info("Database schema ensured")

    subscriber: RedisPubSubSubscriber | None = None
    redis: aioredis.Redis | None = getattr(app.state, "redis", None)
    if redis is not None:
        connections: ConnectionManager = app.state.connections

        async def _relay(event_type: str, data: Any, targets: list[str] | None) -> None:
            await connections.publish(event_type, data, targets=targets)

        subscriber = RedisPubSubSubscriber(redis, settings.REDIS_PUBSUB_CHANNEL, _relay)
        await subscriber.start()

    yield

    if subscriber is not None:
        await subscriber.stop()
    if redis is not None:
        await redis.aclose()
        logger.info("Redis connection pool closed")


def create_app(uow_factory: UoWFactory | None = None) -> FastAPI:
    app = FastAPI(
        title="Chat Relay",
        version="0.1.0",
        lifespan=lifespan,
    )

    app.state.connections = ConnectionManager()
    fanout: EventFanout = app.state.connections
    if settings.FANOUT_BACKEND == "redis":
        app.state.redis = aioredis.from_url(settings.REDIS_URL, decode_responses=True)
        fanout = RedisPubSubPublisher(app.state.redis, settings.REDIS_PUBSUB_CHANNEL)
        logger.info("Using Redis fan-out on channel=%s", settings.REDIS_PUBSUB_CHANNEL)

    app.state.hub = build_hub(
        fanout,
        uow_factory or open_uow,
        anonymous_name=settings.ANONYMOUS_SENDER_NAME,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.add_middleware(CorrelationIdMiddleware)

    _register_exception_handlers(app)

    app.include_router(health.router)
    app.include_router(messages.router)
    app.include_router(users.router)
    app.include_router(ws.router)

    return app


def _register_exception_handlers(app: FastAPI) -> None:
    @app.exception_handler(NotFoundError)
    async def _not_found(_req: Request, exc: NotFoundError) -> JSONResponse:
        return JSONResponse(status_code=404, content={"detail": exc.detail})

    @app.exception_handler(ConflictError)
    async def _conflict(_req: Request, exc: ConflictError) -> JSONResponse:
        return JSONResponse(status_code=409, content={"detail": exc.detail})

    @app.exception_handler(ValidationError)
    async def _validation(_req: Request, exc: ValidationError) -> JSONResponse:
        return JSONResponse(status_code=422, content={"detail": exc.detail})
