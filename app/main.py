"""MSYNC — FastAPI Application Entry Point.

Metrics-to-Sheets synchronizer.
"""

import os
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from app.api.deps import close_services, get_sync_service
from app.api.monitoring_routes import router as monitoring_router
from app.api.sheets_routes import router as sheets_router
from app.config import settings
from app.core.errors import ConfigurationError, PermanentInputError, SyncError
from app.core.logging import get_logger
from app.database import db_url, test_connection
from app.scheduler.jobs import SyncScheduler

logger = get_logger("main")


IS_SERVERLESS = bool(
    os.environ.get("VERCEL") or os.environ.get("AWS_LAMBDA_FUNCTION_NAME")
)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup and shutdown lifecycle."""
    logger.info("🚀 MSYNC starting up...")
    logger.info(f"🌍 Environment: {'SERVERLESS' if IS_SERVERLESS else 'LOCAL'}")
    if not test_connection():
        logger.error("❌ Database NOT connected — sync and monitoring will fail")

    scheduler = SyncScheduler(get_sync_service)
    app.state.scheduler = scheduler
    if settings.scheduler_autostart and not IS_SERVERLESS:
        try:
            scheduler.start()
        except Exception as e:
            logger.error(f"❌ Scheduler failed to start: {e}")
    try:
        yield
    finally:
        scheduler.stop()
        await close_services()
        logger.info("MSYNC shut down")


app = FastAPI(
    title="MSYNC",
    description="Metrics-to-Sheets synchronizer — pull daily aggregates from PostgreSQL and keep Google Sheets reports current.",
    version="1.0.0",
    lifespan=lifespan,
)

# CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Routers
app.include_router(sheets_router)
app.include_router(monitoring_router)


# ── Error mapping ──


def _error_body(exc: Exception) -> dict:
    return {"status": "error", "error": type(exc).__name__, "detail": str(exc)}


@app.exception_handler(ConfigurationError)
async def configuration_error_handler(request: Request, exc: ConfigurationError):
    logger.error(f"Configuration error on {request.url.path}: {exc}")
    return JSONResponse(status_code=503, content=_error_body(exc))


@app.exception_handler(PermanentInputError)
async def input_error_handler(request: Request, exc: PermanentInputError):
    return JSONResponse(status_code=400, content=_error_body(exc))


@app.exception_handler(SyncError)
async def sync_error_handler(request: Request, exc: SyncError):
    logger.error(f"Sync error on {request.url.path}: {exc}")
    return JSONResponse(status_code=502, content=_error_body(exc))


# ── System ──


@app.get("/health", tags=["System"])
async def health_check():
    """Health check endpoint."""
    scheduler = getattr(app.state, "scheduler", None)
    return {
        "status": "healthy",
        "service": "msync",
        "version": "1.0.0",
        "scheduler_running": bool(scheduler and scheduler.running),
    }


@app.get("/debug/db", tags=["System"])
async def debug_db():
    """Debug endpoint — check database connectivity."""
    from app.database import _mask_url

    error = None
    connected = False
    try:
        connected = test_connection()
    except Exception as e:
        error = str(e)

    backend = "postgresql" if db_url.startswith("postgresql") else "sqlite"
    return {
        "connected": connected,
        "backend": backend,
        "url": _mask_url(db_url),
        "environment": "serverless" if IS_SERVERLESS else "local",
        "error": error,
    }
