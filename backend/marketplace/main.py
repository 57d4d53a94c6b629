"""Main FastAPI application."""
import asyncio
import logging
import time
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.exc import DBAPIError
from starlette.exceptions import HTTPException as StarletteHTTPException
from starlette.middleware.base import BaseHTTPMiddleware

from marketplace.settings import settings
from marketplace.api.auth import router as auth_router
from marketplace.api.users import router as users_router
from marketplace.api.tokens import router as tokens_router
from marketplace.api.bookings import router as bookings_router
from marketplace.api.chat import router as chat_router
from marketplace.api.disputes import router as disputes_router
from marketplace.api.templates import router as templates_router
from marketplace.api.notifications import router as notifications_router
from marketplace.api.admin import router as admin_router
from marketplace.domain.common.errors import (
    AgeVerificationError,
    AuthorizationError,
    ConflictError,
    DomainError,
    InsufficientFundsError,
    InvalidTransitionError,
    MessagingNotAllowedError,
    MissingVariablesError,
    NotFoundError,
    ServerError,
    ValidationError,
)
from marketplace.infra.db import base
# Import all models to ensure they're registered with Base
from marketplace.infra.db import models  # noqa: F401
from marketplace.infra.messaging.redis_bus import redis_bus
from marketplace.infra.realtime.booking_ws_manager import BOOKING_EVENTS_CHANNEL, booking_ws_manager
from marketplace.infra.realtime.ws_manager import USER_EVENTS_CHANNEL, ws_manager
from marketplace.services.realtime_events import drain_pending

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
                await conn.run_sync(base.Base.metadata.create_all)
        except Exception as e:
            # Database might not be ready yet; /ready reports it
            logger.warning("Could not create tables during startup: %s", e)

    # Connect Redis and subscribe so room and user events reach every instance
    subscriber_tasks = []
    try:
        await redis_bus.connect()
        if redis_bus.is_connected:

            async def _booking_events_handler(data: dict) -> None:
                await booking_ws_manager.broadcast_local(data["room"], data["message"])

            async def _user_events_handler(data: dict) -> None:
                await ws_manager.send_local(data["user_id"], data["message"])

            subscriber_tasks = [
                asyncio.create_task(redis_bus.subscribe_forever(BOOKING_EVENTS_CHANNEL, _booking_events_handler)),
                asyncio.create_task(redis_bus.subscribe_forever(USER_EVENTS_CHANNEL, _user_events_handler)),
            ]
            logger.info("Realtime Redis subscribers started")
    except Exception as e:
        logger.warning("Could not connect to Redis during startup, broadcasting locally: %s", e)

    yield

    # Shutdown
    try:
        await drain_pending()
        for task in subscriber_tasks:
            task.cancel()
        await asyncio.gather(*subscriber_tasks, return_exceptions=True)
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
    allow_origin_regex=r".*",
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "PATCH", "DELETE", "OPTIONS", "HEAD"],
    allow_headers=["*"],
    max_age=3600,
)


class LoggingMiddleware(BaseHTTPMiddleware):
    """Middleware to log all requests and responses."""

    async def dispatch(self, request: Request, call_next):
        start_time = time.time()
        logger.debug("Request %s %s query=%s", request.method, request.url.path, dict(request.query_params))
        response = await call_next(request)
        process_time = time.time() - start_time
        logger.info(
            "%s %s - %s (%.3fs)", request.method, request.url.path, response.status_code, process_time
        )
        return response


# Add logging middleware AFTER CORS (CORS must be first)
app.add_middleware(LoggingMiddleware)


def error_response(status_code: int, code: str, message: str, **extra) -> JSONResponse:
    """Every error leaves the API as {success: false, code, message}."""
    content = {"success": False, "code": code, "message": message}
    content.update({k: v for k, v in extra.items() if v is not None})
    return JSONResponse(status_code=status_code, content=content)


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    """Request-shape errors: 422 with field details."""
    errors = exc.errors()
    logger.warning("Validation error on %s %s: %s", request.method, request.url.path, errors)
    details = [
        {"field": ".".join(str(p) for p in error.get("loc", ()) if p != "body"), "message": error.get("msg")}
        for error in errors
    ]
    return error_response(422, "VALIDATION", "Validation failed", details=details)


_HTTP_CODES = {401: "UNAUTHORIZED", 403: "ACCESS_DENIED", 404: "NOT_FOUND", 405: "METHOD_NOT_ALLOWED"}


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    response = error_response(exc.status_code, _HTTP_CODES.get(exc.status_code, "HTTP_ERROR"), str(exc.detail))
    if exc.headers:
        response.headers.update(exc.headers)
    return response


# Domain error handlers: map domain exceptions to the HTTP status for their class
def _domain_handler(status_code: int, log_level: int = logging.INFO):
    async def handler(request: Request, exc: DomainError):
        logger.log(log_level, "%s on %s %s: %s", exc.code, request.method, request.url.path, exc.message)
        extra = {}
        if isinstance(exc, ValidationError) and exc.field:
            extra["details"] = [{"field": exc.field, "message": exc.message}]
        if isinstance(exc, MissingVariablesError):
            extra["missing"] = exc.missing
        return error_response(status_code, exc.code, exc.message, **extra)

    return handler


for error_cls, status_code in (
    (ValidationError, 422),
    (AgeVerificationError, 403),
    (AuthorizationError, 403),
    (InvalidTransitionError, 400),
    (MessagingNotAllowedError, 400),
    (InsufficientFundsError, 400),
    (MissingVariablesError, 400),
    (NotFoundError, 404),
    (ConflictError, 409),
):
    app.add_exception_handler(error_cls, _domain_handler(status_code))
app.add_exception_handler(ServerError, _domain_handler(500, logging.ERROR))
app.add_exception_handler(DomainError, _domain_handler(400, logging.WARNING))


@app.exception_handler(DBAPIError)
async def database_exception_handler(request: Request, exc: DBAPIError):
    """Driver errors raised outside a run_atomic boundary (reads, inbox updates)."""
    logger.error("Database error on %s %s: %s", request.method, request.url.path, exc)
    return error_response(500, ServerError.code, "Internal server error")


# Health check (root and under /v1 so GET /v1/health works behind a /v1 proxy prefix)
@app.get("/health")
@app.get(f"{settings.api_v1_prefix}/health")
async def health_check():
    """Health check endpoint."""
    return {"status": "ok", "version": settings.app_version}


@app.get("/ready")
@app.get(f"{settings.api_v1_prefix}/ready")
async def readiness():
    """Readiness endpoint: run all checks and return 200 if ready, 503 otherwise."""
    from marketplace.readiness import run_all_checks_async, is_ready
    checks = await run_all_checks_async()
    ready, summary = is_ready(checks)
    if ready:
        return {"ready": True, "checks": summary}
    return JSONResponse(status_code=503, content={"ready": False, "checks": summary})


# API v1 routes
app.include_router(auth_router, prefix=settings.api_v1_prefix)
app.include_router(users_router, prefix=settings.api_v1_prefix)
app.include_router(tokens_router, prefix=settings.api_v1_prefix)
app.include_router(bookings_router, prefix=settings.api_v1_prefix)
app.include_router(chat_router, prefix=settings.api_v1_prefix)
app.include_router(disputes_router, prefix=settings.api_v1_prefix)
app.include_router(templates_router, prefix=settings.api_v1_prefix)
app.include_router(notifications_router, prefix=settings.api_v1_prefix)
app.include_router(admin_router, prefix=settings.api_v1_prefix)


if __name__ == "__main__":
    import uvicorn

    uvicorn.run("marketplace.main:app", host="0.0.0.0", port=8000, reload=True)
