"""
main.py — Session recorder FastAPI application entry point.

Start with: uvicorn recorder.main:app --port 8080
       or: python -m recorder.main   (honours PORT)
"""
import logging
import os
import subprocess
import sys
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

import uvicorn
from fastapi import FastAPI, HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import FileResponse, JSONResponse
from sqlalchemy.exc import SQLAlchemyError
from starlette.exceptions import HTTPException as StarletteHTTPException

from recorder.config import settings
from recorder.database import async_engine
from recorder.ingest.schemas import ErrorBody, ErrorDetail, ErrorResponse
from recorder.locks import SessionLocks, create_session_locks

# ---------------------------------------------------------------------------
# Logging — configured before anything else
# ---------------------------------------------------------------------------
logging.basicConfig(
    level=logging.DEBUG if settings.debug else logging.INFO,
    format="%(asctime)s %(levelname)s %(name)s — %(message)s",
)
logger = logging.getLogger(__name__)


def run_migrations() -> None:
    """Apply Alembic migrations (alembic.ini lives next to this file)."""
    recorder_dir = os.path.dirname(os.path.abspath(__file__))
    result = subprocess.run(
        [sys.executable, "-m", "alembic", "upgrade", "head"],
        capture_output=True,
        text=True,
        cwd=recorder_dir,
    )
    if result.returncode != 0:
        logger.error("Alembic migration failed:\n%s", result.stderr)
        raise RuntimeError(f"Alembic migration failed: {result.stderr}")
    msg = result.stdout.strip() or "No pending migrations"
    logger.info("Alembic: %s", msg)


# ---------------------------------------------------------------------------
# Lifespan — startup & shutdown hooks
# ---------------------------------------------------------------------------
@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Startup:
      1. Run Alembic migrations (when AUTO_MIGRATE is on)
      2. Pick the per-session append lock backend (Redis if REDIS_URL is set)
      3. Warn loudly about default admin credentials
    Shutdown:
      1. Close Redis client, dispose the engine
    """
    if settings.auto_migrate:
        run_migrations()

    app.state.session_locks, redis_client = await create_session_locks()

    if settings.uses_default_password:
        logger.warning(
            "BASIC_AUTH_PASS not set; admin interface is using the default password"
        )

    logger.info("Session recorder v%s starting up", settings.app_version)
    logger.info("Admin interface: http://localhost:%d", settings.port)
    yield

    # --- Shutdown ---
    if redis_client is not None:
        await redis_client.aclose()
        logger.info("Redis connection closed")
    await async_engine.dispose()
    logger.info("Session recorder shutting down")


# ---------------------------------------------------------------------------
# FastAPI application instance
# ---------------------------------------------------------------------------
app = FastAPI(
    title="Session Recorder API",
    version=settings.app_version,
    description="Ingests batched page-interaction events and serves them back for replay.",
    lifespan=lifespan,
    docs_url="/api/docs",
    redoc_url="/api/redoc",
    openapi_url="/api/openapi.json",
)
# Replaced in lifespan when REDIS_URL is configured
app.state.session_locks = SessionLocks()

# ---------------------------------------------------------------------------
# CORS middleware — recorder snippet is embedded on arbitrary origins
# ---------------------------------------------------------------------------
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins_list,
    allow_credentials=False,
    allow_methods=["GET", "POST", "OPTIONS"],
    allow_headers=["Content-Type"],
)


# ---------------------------------------------------------------------------
# Error response helper
# ---------------------------------------------------------------------------
def _make_error_response(
    code: str,
    message: str,
    details: list[dict[str, Any]] | None = None,
    status_code: int = 500,
    headers: dict[str, str] | None = None,
) -> JSONResponse:
    """Build a standard {error: {code, message, details}} response."""
    body = ErrorResponse(
        error=ErrorBody(
            code=code,
            message=message,
            details=[ErrorDetail(**d) for d in details or []],
        )
    )
    return JSONResponse(status_code=status_code, content=body.model_dump(), headers=headers)


# ---------------------------------------------------------------------------
# Global exception handlers — registered BEFORE routers
# ---------------------------------------------------------------------------
@app.exception_handler(RequestValidationError)
async def validation_exception_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    """
    Unparseable JSON → 400 BAD_REQUEST.
    Well-formed JSON that breaks the message schema → 422 VALIDATION_ERROR,
    with ALL field violations in one response.
    """
    errors = exc.errors()
    if any(error.get("type") == "json_invalid" for error in errors):
        return _make_error_response(
            code="BAD_REQUEST",
            message="Invalid JSON",
            status_code=400,
        )
    details = []
    for error in errors:
        # Build dot-notation field path, excluding the top-level 'body' loc
        field = ".".join(str(loc) for loc in error["loc"] if loc != "body")
        details.append({"field": field or None, "issue": error["msg"]})
    return _make_error_response(
        code="VALIDATION_ERROR",
        message="Request validation failed",
        details=details,
        status_code=422,
    )


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(
    request: Request, exc: StarletteHTTPException
) -> JSONResponse:
    """
    Converts HTTPException to standard error format with semantic code.
    Headers are forwarded so the 401 keeps its WWW-Authenticate challenge.
    """
    code_map = {
        400: "BAD_REQUEST",
        401: "UNAUTHORIZED",
        404: "NOT_FOUND",
        405: "METHOD_NOT_ALLOWED",
        422: "VALIDATION_ERROR",
    }
    code = code_map.get(exc.status_code, f"HTTP_{exc.status_code}")
    return _make_error_response(
        code=code,
        message=str(exc.detail),
        status_code=exc.status_code,
        headers=getattr(exc, "headers", None),
    )


@app.exception_handler(SQLAlchemyError)
async def storage_error_handler(
    request: Request, exc: SQLAlchemyError
) -> JSONResponse:
    """Datastore failure: logged server-side and surfaced as 500."""
    logger.error(
        "Storage error on %s %s",
        request.method,
        request.url.path,
        exc_info=exc,
    )
    return _make_error_response(
        code="STORAGE_ERROR",
        message="Internal server error",
        status_code=500,
    )


@app.exception_handler(Exception)
async def unhandled_exception_handler(
    request: Request, exc: Exception
) -> JSONResponse:
    """
    Catch-all for unexpected errors.
    DEBUG=true  → includes exception type & message in details (dev only).
    DEBUG=false → generic message; full traceback logged server-side only.
    """
    logger.error(
        "Unhandled exception on %s %s",
        request.method,
        request.url.path,
        exc_info=exc,
    )
    if settings.debug:
        details = [{"issue": f"{type(exc).__name__}: {exc}"}]
        message = "An unexpected error occurred (debug details included)"
    else:
        details = []
        message = "An unexpected error occurred"
    return _make_error_response(
        code="INTERNAL_ERROR",
        message=message,
        details=details,
        status_code=500,
    )


# ---------------------------------------------------------------------------
# Health endpoint (no auth required)
# ---------------------------------------------------------------------------
@app.get("/api/health", tags=["System"])
async def health_check() -> dict:
    """Returns service health status for load balancers and container probes."""
    return {
        "status": "ok",
        "version": settings.app_version,
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }


# ---------------------------------------------------------------------------
# Static assets — capture engine, recorder snippet, replay player (no auth)
# ---------------------------------------------------------------------------
def _asset_route(filename: str):
    async def serve_asset() -> FileResponse:
        path = Path(settings.assets_dir) / filename
        if not path.is_file():
            raise HTTPException(status_code=404, detail=f"{filename} not found")
        return FileResponse(path)

    return serve_asset


STATIC_ASSETS = (
    settings.recorder_js_name,
    settings.rrweb_js_name,
    "rrweb-player.js",
    "rrweb-player.css",
)
for _asset in STATIC_ASSETS:
    app.add_api_route(
        f"/{_asset}",
        _asset_route(_asset),
        methods=["GET"],
        tags=["Static"],
        include_in_schema=False,
    )


# ---------------------------------------------------------------------------
# Routers — ingestion (open) before admin (Basic auth)
# ---------------------------------------------------------------------------
from recorder.ingest.routes import router as ingest_router  # noqa: E402
from recorder.admin.routes import router as admin_router  # noqa: E402

app.include_router(ingest_router)
app.include_router(admin_router)


def run() -> None:
    uvicorn.run("recorder.main:app", host="0.0.0.0", port=settings.port)


if __name__ == "__main__":
    run()
