"""Main FastAPI application."""
import asyncio
import logging
import time
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from starlette.exceptions import HTTPException as StarletteHTTPException
from starlette.middleware.base import BaseHTTPMiddleware

from hustlrs.settings import settings
from hustlrs.api.auth import router as auth_router
from hustlrs.api.chats import router as chats_router
from hustlrs.api.envelope import error_response
from hustlrs.api.notifications import router as notifications_router
from hustlrs.api.realtime import router as realtime_router
from hustlrs.api.tasks import router as tasks_router
from hustlrs.api.users import router as users_router
from hustlrs.domain.common.errors import DomainError
from hustlrs.infra.db import base
from hustlrs.infra.db.base import Base
# Import all models to ensure they're registered with Base
from hustlrs.infra.db.models import (  # noqa: F401
    UserModel,
    TaskModel,
    ChatModel,
    ChatMemberModel,
    MessageModel,
    NotificationModel,
    ReviewModel,
    VerificationCodeModel,
    DeviceModel,
)
from hustlrs.infra.messaging.redis_bus import redis_bus
from hustlrs.infra.realtime.delivery import delivery
from hustlrs.infra.realtime.gateway import REALTIME_EVENTS_CHANNEL, gateway

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan events."""
    # Startup
    if base.engine is not None:
        try:
            async with base.engine.begin() as conn:
                await conn.run_sync(Base.metadata.create_all)
        except Exception as e:
            # Database might not be ready yet; requests will surface 503s until it is
            logger.warning("Could not connect to database during startup: %s", e)

    # Redis subscriber so realtime events published by any instance reach local sockets
    subscriber_task = None
    if settings.realtime_redis_fanout:
        try:
            await redis_bus.connect()
            subscriber_task = asyncio.create_task(
                redis_bus.subscribe_forever(REALTIME_EVENTS_CHANNEL, gateway.handle_bus_message)
            )
            logger.info("Realtime Redis subscriber started")
        except Exception as e:
            logger.warning("Could not connect to Redis during startup: %s. Realtime events stay local.", e)

    yield

    # Shutdown
    try:
        await delivery.drain()
        if subscriber_task is not None:
            subscriber_task.cancel()
            try:
                await subscriber_task
            except asyncio.CancelledError:
                pass
        await redis_bus.disconnect()
        if base.engine is not None:
            await base.engine.dispose()
    except asyncio.CancelledError:
        logger.info("Lifespan shutdown cancelled (e.g. Ctrl+C); cleanup attempted.")
        raise


app = FastAPI(
    title=settings.app_name,
    version=settings.app_version,
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"],
    allow_headers=["*"],
    max_age=3600,
)


class LoggingMiddleware(BaseHTTPMiddleware):
    """Log every request with its status and duration."""

    async def dispatch(self, request: Request, call_next):
        start_time = time.time()
        logger.debug("Query params: %s", dict(request.query_params))
        response = await call_next(request)
        process_time = time.time() - start_time
        logger.info(
            "%s %s - %s (%.3fs)",
            request.method,
            request.url.path,
            response.status_code,
            process_time,
        )
        return response


# Add logging middleware AFTER CORS (CORS must be first)
app.add_middleware(LoggingMiddleware)


@app.exception_handler(DomainError)
async def domain_error_handler(request: Request, exc: DomainError):
    """Render domain errors with the status they carry."""
    if exc.status_code >= 500:
        logger.error("%s %s failed: %s", request.method, request.url.path, exc.message)
    return error_response(exc.status_code, exc.message, exc.errors)


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    return error_response(exc.status_code, str(exc.detail), headers=getattr(exc, "headers", None))


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    """Request body or query failed schema validation."""
    errors = [
        {"field": ".".join(str(p) for p in err.get("loc", ()) if p != "body"), "message": err.get("msg")}
        for err in exc.errors()
    ]
    logger.info("Validation failed on %s %s: %s", request.method, request.url.path, errors)
    return error_response(400, "Validation failed", errors)


@app.exception_handler(Exception)
async def unhandled_exception_handler(request: Request, exc: Exception):
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    return error_response(500, "Internal server error")


# Health check (root and under /v1 so GET /v1/health works behind a /v1 proxy)
@app.get("/health")
@app.get(f"{settings.api_v1_prefix}/health")
async def health_check():
    """Health check endpoint."""
    return {"status": "ok", "version": settings.app_version}


# API v1 routes
app.include_router(auth_router, prefix=settings.api_v1_prefix)
app.include_router(tasks_router, prefix=settings.api_v1_prefix)
app.include_router(chats_router, prefix=settings.api_v1_prefix)
app.include_router(notifications_router, prefix=settings.api_v1_prefix)
app.include_router(users_router, prefix=settings.api_v1_prefix)
app.include_router(realtime_router, prefix=settings.api_v1_prefix)
