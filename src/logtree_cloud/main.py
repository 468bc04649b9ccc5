"""FastAPI application entrypoint for Logtree Cloud."""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from collections.abc import AsyncGenerator

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from logtree_cloud import __version__
from logtree_cloud.config import settings
from logtree_cloud.database import dispose_engine, init_db
from logtree_cloud.errors import ConflictError, NotFoundError, QuotaExceededError

logger = logging.getLogger("logtree_cloud")


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Startup / shutdown lifecycle handler."""
    logging.basicConfig(level=settings.log_level)
    logger.info("Logtree Cloud %s starting (env=%s)", __version__, settings.environment)

    if settings.environment == "dev":
        await init_db()
        logger.info("Dev mode: tables created via init_db()")

    yield

    await dispose_engine()
    logger.info("Logtree Cloud shut down.")


app = FastAPI(
    title="Logtree Cloud",
    version=__version__,
    description="Multi-tenant log ingestion: folders, search, usage limits, alert rules, and stats.",
    lifespan=lifespan,
)

# ---------------------------------------------------------------------------
# Include API routers
# ---------------------------------------------------------------------------
from logtree_cloud.api.logs import router as logs_router  # noqa: E402
from logtree_cloud.api.monitors import router as monitors_router  # noqa: E402
from logtree_cloud.api.stats import router as stats_router  # noqa: E402

app.include_router(logs_router)
app.include_router(monitors_router)
app.include_router(stats_router)


# ---------------------------------------------------------------------------
# Health check
# ---------------------------------------------------------------------------
@app.get("/health", tags=["meta"])
async def health_check() -> dict:
    return {
        "status": "ok",
        "version": __version__,
        "environment": settings.environment,
    }


# ---------------------------------------------------------------------------
# Exception handlers
# ---------------------------------------------------------------------------
@app.exception_handler(ValueError)
async def value_error_handler(request: Request, exc: ValueError) -> JSONResponse:
    return JSONResponse(status_code=422, content={"detail": str(exc)})


@app.exception_handler(PermissionError)
async def permission_error_handler(request: Request, exc: PermissionError) -> JSONResponse:
    return JSONResponse(status_code=403, content={"detail": str(exc)})


@app.exception_handler(NotFoundError)
async def not_found_error_handler(request: Request, exc: NotFoundError) -> JSONResponse:
    return JSONResponse(status_code=404, content={"detail": str(exc)})


@app.exception_handler(ConflictError)
async def conflict_error_handler(request: Request, exc: ConflictError) -> JSONResponse:
    return JSONResponse(status_code=409, content={"detail": str(exc)})


@app.exception_handler(QuotaExceededError)
async def quota_exceeded_handler(request: Request, exc: QuotaExceededError) -> JSONResponse:
    return JSONResponse(status_code=429, content={"detail": str(exc)})
