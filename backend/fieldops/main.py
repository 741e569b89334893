"""Main FastAPI application."""
import asyncio
import json
import logging
import time
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware

from fieldops.api.admin import router as admin_router
from fieldops.api.calls import router as calls_router
from fieldops.api.checklist import router as checklist_router
from fieldops.api.coach import router as coach_router
from fieldops.domain.common.errors import (
    ConflictError,
    InvalidReorderError,
    NotFoundError,
    StaleSnapshotError,
    ValidationError,
)
from fieldops.infra.db.base import Base, engine
# Import all models to ensure they're registered with Base
from fieldops.infra.db.models import (  # noqa: F401
    CallSessionModel,
    ChecklistCoverageModel,
    ChecklistItemModel,
    CoachingPromptModel,
    TranscriptSegmentModel,
)
from fieldops.infra.messaging.redis_bus import redis_bus
from fieldops.settings import settings

# Configure logging
logging.basicConfig(
    level=logging.DEBUG if settings.debug else logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan events."""
    # Startup
    try:
        async with engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)
    except Exception as e:
        # Don't fail startup; the database might not be ready yet
        logger.warning("Could not connect to database during startup: %s", e)

    if settings.coach_publish_updates:
        try:
            await redis_bus.connect()
            logger.info("Coaching updates published on Redis channel %s", settings.coach_updates_channel)
        except Exception as e:
            await redis_bus.disconnect()
            logger.warning("Could not connect to Redis during startup: %s. Coaching updates will not be published.", e)

    yield

    # Shutdown
    try:
        await redis_bus.disconnect()
        await engine.dispose()
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
        logger.info("[REQUEST] %s %s", request.method, request.url.path)
        logger.debug("   Query params: %s", dict(request.query_params))

        response = await call_next(request)

        process_time = time.time() - start_time
        logger.info(
            "[RESPONSE] %s %s - %s (%.3fs)",
            request.method, request.url.path, response.status_code, process_time,
        )
        return response


# Add logging middleware AFTER CORS (CORS must be first)
app.add_middleware(LoggingMiddleware)


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    """Handle validation errors with detailed logging."""
    logger.error("[VALIDATION ERROR] %s %s", request.method, request.url.path)
    if getattr(exc, "body", None):
        body = exc.body.decode("utf-8", errors="replace") if isinstance(exc.body, bytes) else str(exc.body)
        logger.error("   Request body: %s", body)

    errors = exc.errors()
    logger.error("   Validation errors (%s):", len(errors))
    for i, error in enumerate(errors, 1):
        logger.error("   Error %s: %s", i, json.dumps(error, indent=2, default=str))

    return JSONResponse(
        status_code=422,
        content={"detail": json.loads(json.dumps(errors, default=str))},
    )


# Domain error handlers: map domain exceptions to correct HTTP status
@app.exception_handler(NotFoundError)
async def domain_not_found_handler(request: Request, exc: NotFoundError):
    """Return 404 when a resource is not found."""
    return JSONResponse(status_code=404, content={"detail": str(exc)})


@app.exception_handler(InvalidReorderError)
async def domain_reorder_handler(request: Request, exc: InvalidReorderError):
    """Return 422 with the ids that made a reorder request invalid."""
    return JSONResponse(
        status_code=422,
        content={"detail": exc.message, "missing": exc.missing, "unexpected": exc.unexpected},
    )


@app.exception_handler(ValidationError)
async def domain_validation_handler(request: Request, exc: ValidationError):
    """Return 422 for domain validation errors."""
    return JSONResponse(status_code=422, content={"detail": exc.message})


@app.exception_handler(ConflictError)
async def domain_conflict_handler(request: Request, exc: ConflictError):
    """Return 409 for conflict errors."""
    return JSONResponse(status_code=409, content={"detail": exc.message})


@app.exception_handler(StaleSnapshotError)
async def stale_snapshot_handler(request: Request, exc: StaleSnapshotError):
    """Return 503 when no consistent snapshot could be read; the client retries on its next tick."""
    logger.warning("Stale snapshot for call %s: %s", exc.call_id, exc.message)
    return JSONResponse(status_code=503, content={"detail": exc.message})


# Health check (root and under /v1 so GET /v1/health works behind a /v1 proxy prefix)
@app.get("/health")
@app.get(f"{settings.api_v1_prefix}/health")
async def health_check():
    """Health check endpoint."""
    return {"status": "ok", "version": settings.app_version}


# Readiness: config, packages, DB, Redis
@app.get("/ready")
async def readiness():
    """Readiness endpoint: run all checks and return 200 if ready, 503 otherwise."""
    from fieldops.readiness import is_ready, run_all_checks_async
    checks = await run_all_checks_async()
    ready, summary = is_ready(checks)
    if ready:
        return {"ready": True, "checks": summary}
    return JSONResponse(
        status_code=503,
        content={"ready": False, "checks": summary},
    )


# API v1 routes
app.include_router(checklist_router, prefix=settings.api_v1_prefix)
app.include_router(calls_router, prefix=settings.api_v1_prefix)
app.include_router(coach_router, prefix=settings.api_v1_prefix)
app.include_router(admin_router, prefix=settings.api_v1_prefix)


if __name__ == "__main__":
    import uvicorn

    uvicorn.run("fieldops.main:app", host="0.0.0.0", port=8000, reload=True)
