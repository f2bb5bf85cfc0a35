"""
Main FastAPI application for the LockFlow API.
Serves health, public resources, unlock sessions, creator dashboard and metrics.
"""
import logging
from contextlib import asynccontextmanager

import redis
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from lockflow.api.deps import Services
from lockflow.api.routes import dashboard, health, resources, unlock
from lockflow.core.config import settings
from lockflow.core.logging import configure_logging
from lockflow.services.circuit_breaker import get_circuit_breaker
from lockflow.services.idempotency import IdempotencyStore
from lockflow.services.identity.client import SupabaseIdentityProvider
from lockflow.services.resources.counter import CeleryUnlockCounter, DatabaseUnlockCounter
from lockflow.services.storage import SupabaseStorage
from lockflow.unlock.config import (
    UnlockTimings,
    get_max_sessions,
    get_session_ttl_seconds,
    get_signed_url_ttl_seconds,
)
from lockflow.unlock.errors import (
    CollaboratorUnavailable,
    DataIntegrityError,
    ResourceNotFound,
    SessionNotFound,
    UnlockError,
    UnlockValidationError,
)
from lockflow.unlock.grant import ResourceAccessGrant
from lockflow.unlock.registry import UnlockSessionRegistry
from lockflow.utils.metrics import router as metrics_router

logger = logging.getLogger(__name__)


def build_services() -> Services:
    """Construct collaborator handles once; their lifecycle is owned by the app lifespan."""
    redis_client = redis.Redis.from_url(settings.redis_url, decode_responses=True)
    identity = SupabaseIdentityProvider(
        settings.supabase_url,
        settings.supabase_key,
        timeout=settings.http_client_timeout,
    )
    storage = SupabaseStorage(
        settings.supabase_url,
        settings.supabase_key,
        settings.storage_bucket,
        breaker=get_circuit_breaker("storage"),
        timeout=settings.http_client_timeout,
    )
    if settings.unlock_counter_backend == "database":
        counter = DatabaseUnlockCounter()
    else:
        counter = CeleryUnlockCounter()
    grant = ResourceAccessGrant(
        storage,
        counter,
        idempotency=IdempotencyStore(client=redis_client),
        signed_url_ttl_seconds=get_signed_url_ttl_seconds(),
    )
    registry = UnlockSessionRegistry(
        grant,
        secret=settings.unlock_session_secret,
        ttl_seconds=get_session_ttl_seconds(),
        max_sessions=get_max_sessions(),
        timings=UnlockTimings.from_settings(),
    )
    return Services(
        identity=identity,
        storage=storage,
        grant=grant,
        registry=registry,
        redis=redis_client,
    )


def _log_auth_change(event: str, user) -> None:
    logger.info("auth_change", extra={"event": event, "user_id": getattr(user, "id", None)})


def create_app(services: Services | None = None) -> FastAPI:
    @asynccontextmanager
    async def lifespan(app: FastAPI):
        configure_logging()
        handles = services or build_services()
        unsubscribe = handles.identity.on_auth_change(_log_auth_change)
        app.state.services = handles
        try:
            yield
        finally:
            unsubscribe()
            handles.registry.shutdown()
            await handles.grant.drain()
            handles.identity.close()
            handles.storage.close()
            if handles.redis is not None:
                handles.redis.close()

    app = FastAPI(
        title="LockFlow API",
        description="Locked creator resources: unlock sessions, downloads and creator dashboard",
        version="1.0.0",
        lifespan=lifespan,
    )

    # CORS
    origins = settings.cors_origins_list
    if not origins:
        origins = ["http://localhost:3000", "http://127.0.0.1:3000", "http://localhost:5173"]
    app.add_middleware(
        CORSMiddleware,
        allow_origins=origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Unlock errors -> HTTP
    status_by_error: list[tuple[type[UnlockError], int]] = [
        (ResourceNotFound, 404),
        (SessionNotFound, 404),
        (UnlockValidationError, 422),
        (DataIntegrityError, 409),
        (CollaboratorUnavailable, 503),
    ]

    @app.exception_handler(UnlockError)
    async def unlock_error_handler(request: Request, exc: UnlockError) -> JSONResponse:
        status_code = next((code for cls, code in status_by_error if isinstance(exc, cls)), 400)
        return JSONResponse(status_code=status_code, content={"detail": str(exc)})

    # Routers
    app.include_router(health.router, tags=["health"])
    app.include_router(resources.router)
    app.include_router(unlock.router)
    app.include_router(dashboard.router)
    app.include_router(metrics_router)
    return app


app = create_app()
