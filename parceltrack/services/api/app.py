# parceltrack/services/api/app.py
"""
FastAPI application of the shipment service.

REST endpoints live under API_PREFIX (default /api), the realtime socket at
/ws and the health check at /health.
"""

from __future__ import annotations

from contextlib import asynccontextmanager
from dataclasses import dataclass
from typing import AsyncGenerator, Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from parceltrack import __version__
from parceltrack.common.constants import TypeMsg
from parceltrack.common.logger import log_info, log_warning, setup_logging
from parceltrack.config.loader import Settings
from parceltrack.core.location import TokenBucketLimiter
from parceltrack.core.realtime import ConnectionManager, RealtimeNotifier, RedisSubscriber
from parceltrack.core.registry import ServiceRegistry, build_registry
from parceltrack.infra.database import DatabaseManager, close_db, init_db
from parceltrack.infra.redis_client import RedisClient, close_redis, init_redis
from parceltrack.services.api.dependencies import cleanup_dependencies, init_dependencies
from parceltrack.services.api.errors import register_exception_handlers
from parceltrack.services.api.routes import (
    drivers_router,
    realtime_router,
    shipments_router,
    users_router,
)
from parceltrack.shared.models import HealthStatus


@dataclass
class Runtime:
    """Resources opened by the lifespan."""
    registry: ServiceRegistry
    db: Optional[DatabaseManager] = None
    redis: Optional[RedisClient] = None
    subscriber: Optional[RedisSubscriber] = None


async def startup(app_settings: Settings, registry: Optional[ServiceRegistry] = None) -> Runtime:
    """
    Opens storage and realtime resources and builds the services.

    Args:
        app_settings: Application settings
        registry: Prebuilt services (tests); storage is left untouched then
    """
    if not app_settings.auth.AUTH_TOKEN_SECRET:
        await log_warning("AUTH_TOKEN_SECRET is empty, every authenticated request will be rejected")

    if registry is not None:
        runtime = Runtime(registry=registry)
    else:
        db = None
        if app_settings.storage.STORAGE_BACKEND == "postgres":
            db = await init_db()

        redis = None
        notifier = None
        if app_settings.redis.REALTIME_REDIS_BRIDGE:
            redis = await init_redis()
            notifier = RealtimeNotifier(ConnectionManager(), redis=redis)

        runtime = Runtime(
            registry=build_registry(app_settings, db=db, notifier=notifier),
            db=db,
            redis=redis,
        )

        if redis is not None:
            runtime.subscriber = RedisSubscriber(
                redis.client,
                runtime.registry.notifier.relay,
                pattern=redis.make_key(RealtimeNotifier.channel_for("*")),
            )
            await runtime.subscriber.start()

    limiter = None
    if app_settings.location.LOCATION_RATE_LIMIT_ENABLED:
        limiter = TokenBucketLimiter(
            capacity=app_settings.location.LOCATION_RATE_LIMIT_CAPACITY,
            refill_seconds=app_settings.location.LOCATION_RATE_LIMIT_REFILL_SECONDS,
        )

    init_dependencies(
        runtime.registry,
        public_reads=app_settings.auth.PUBLIC_SHIPMENT_READS,
        location_limiter=limiter,
    )

    await log_info(
        f"Shipment service started (storage={app_settings.storage.STORAGE_BACKEND}, "
        f"redis_bridge={runtime.redis is not None})",
        type_msg=TypeMsg.INFO,
    )
    return runtime


async def shutdown(runtime: Runtime) -> None:
    cleanup_dependencies()
    if runtime.subscriber is not None:
        await runtime.subscriber.stop()
    await runtime.registry.notifier.close()
    if runtime.redis is not None:
        await close_redis()
    if runtime.db is not None:
        await close_db()
    await log_info("Shipment service stopped", type_msg=TypeMsg.INFO)


def create_app(
    app_settings: Optional[Settings] = None,
    registry: Optional[ServiceRegistry] = None,
) -> FastAPI:
    """
    Builds the application.

    Args:
        app_settings: Settings (the process-wide settings when None)
        registry: Prebuilt services, used by tests with the memory backend
    """
    if app_settings is None:
        from parceltrack.config import settings as app_settings

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
        setup_logging()
        app.state.runtime = await startup(app_settings, registry)
        yield
        await shutdown(app.state.runtime)

    app = FastAPI(
        title="ParcelTrack Shipment Service",
        description="Shipment lifecycle, driver assignment and live tracking.",
        version=__version__,
        lifespan=lifespan,
        docs_url="/docs",
        redoc_url="/redoc",
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=app_settings.deployment.CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    register_exception_handlers(app)

    prefix = app_settings.deployment.API_PREFIX
    app.include_router(shipments_router, prefix=prefix)
    app.include_router(users_router, prefix=prefix)
    app.include_router(drivers_router, prefix=prefix)
    app.include_router(realtime_router)

    @app.get("/health", response_model=HealthStatus, tags=["Health"])
    async def health_check() -> HealthStatus:
        runtime: Runtime = app.state.runtime
        dependencies = {"storage": app_settings.storage.STORAGE_BACKEND}

        status = "healthy"
        if runtime.db is not None:
            db_ok = await runtime.db.health_check()
            dependencies["storage"] = "healthy" if db_ok else "unhealthy"
            if not db_ok:
                status = "unhealthy"
        if runtime.redis is not None:
            redis_ok = await runtime.redis.health_check()
            dependencies["realtime"] = "healthy" if redis_ok else "unhealthy"
            if not redis_ok and status == "healthy":
                status = "degraded"

        return HealthStatus(
            service=app_settings.system.PROJECT_NAME,
            status=status,
            version=__version__,
            dependencies=dependencies,
        )

    return app


app = create_app()
