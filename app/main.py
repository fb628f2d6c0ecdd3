# app/main.py
"""
FastAPI application entry point.
Wires middleware (CORS, optional API key, request timing), the check-in
error mapping, and every router under /api.
"""

from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse
from fastapi.middleware.cors import CORSMiddleware
from starlette.middleware.base import BaseHTTPMiddleware
from app.routers import checkin, health, qrscans, stats, visitors
from app.database import create_tables
from app.config import settings
from app.services.checkin_service import CheckInError, CheckInErrorCode
from app.utils.logger import get_logger
import time

logger = get_logger(__name__)

# Workflow error → HTTP status. Lookup failures are transient (store unreachable).
CHECKIN_ERROR_STATUS = {
    CheckInErrorCode.INVALID_CODE: status.HTTP_400_BAD_REQUEST,
    CheckInErrorCode.INVALID_CODE_FORMAT: status.HTTP_400_BAD_REQUEST,
    CheckInErrorCode.VISITOR_NOT_FOUND: status.HTTP_404_NOT_FOUND,
    CheckInErrorCode.LOOKUP_FAILED: status.HTTP_503_SERVICE_UNAVAILABLE,
    CheckInErrorCode.SCAN_WRITE_FAILED: status.HTTP_500_INTERNAL_SERVER_ERROR,
    CheckInErrorCode.VISITOR_UPDATE_FAILED: status.HTTP_500_INTERNAL_SERVER_ERROR,
}

OPEN_PATHS = {"/api/health", "/docs", "/redoc", "/openapi.json"}

app = FastAPI(
    title="Visitrack API",
    description="Event registration and visitor check-in: QR / manual scans, scan log, reporting.",
    version="1.0.0",
    docs_url="/docs",
    redoc_url="/redoc",
)

# ── CORS (scanner stations and the admin UI are served from other hosts) ─────
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# ── API Key ──────────────────────────────────────────────────────────────────
class APIKeyMiddleware(BaseHTTPMiddleware):
    """Stations send X-API-Key (or ?api_key=). Only registered when API_KEY is set."""

    async def dispatch(self, request: Request, call_next):
        if request.method == "OPTIONS" or request.url.path in OPEN_PATHS:
            return await call_next(request)
        supplied = request.headers.get("X-API-Key") or request.query_params.get("api_key")
        if supplied != settings.API_KEY:
            logger.warning(f"Rejected {request.method} {request.url.path}: bad API key")
            return JSONResponse(
                status_code=status.HTTP_401_UNAUTHORIZED,
                content={"message": "Invalid or missing API key"},
            )
        return await call_next(request)


if settings.API_KEY:
    app.add_middleware(APIKeyMiddleware)


# ── Request Timing ───────────────────────────────────────────────────────────
@app.middleware("http")
async def time_requests(request: Request, call_next):
    started = time.perf_counter()
    response = await call_next(request)
    elapsed_ms = (time.perf_counter() - started) * 1000
    # A check-in slower than one store timeout means a store is struggling
    level = "warning" if elapsed_ms > settings.STORE_TIMEOUT_SECONDS * 1000 else "debug"
    getattr(logger, level)(
        f"{request.method} {request.url.path} → {response.status_code} ({elapsed_ms:.1f}ms)"
    )
    return response


# ── Error Handlers ───────────────────────────────────────────────────────────
@app.exception_handler(CheckInError)
async def checkin_error_handler(request: Request, exc: CheckInError):
    return JSONResponse(
        status_code=CHECKIN_ERROR_STATUS.get(exc.code, status.HTTP_500_INTERNAL_SERVER_ERROR),
        content={
            "status": "error",
            "code": exc.code.value,
            "message": exc.message,
            "retryable": exc.retryable,
        },
    )


@app.exception_handler(Exception)
async def unhandled_error_handler(request: Request, exc: Exception):
    logger.error(f"Unhandled exception on {request.method} {request.url.path}: {exc}", exc_info=True)
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"message": "Internal server error", "error": str(exc)},
    )


# ── Routers ──────────────────────────────────────────────────────────────────
for module, tag in (
    (checkin, "Check-in"),
    (qrscans, "Scan Log"),
    (visitors, "Visitors"),
    (stats, "Reports"),
    (health, "Health"),
):
    app.include_router(module.router, prefix="/api", tags=[tag])


# ── Lifecycle ────────────────────────────────────────────────────────────────
@app.on_event("startup")
async def startup():
    logger.info("🚀 Visitrack backend starting up...")
    create_tables()
    logger.info(f"✅ Tables ready on {settings.DATABASE_URL.split('://', 1)[0]}")
    logger.info(
        f"🌐 http://{settings.BACKEND_IP}:{settings.BACKEND_PORT} "
        f"(auth {'on' if settings.API_KEY else 'off'}, store timeout {settings.STORE_TIMEOUT_SECONDS}s)"
    )


@app.on_event("shutdown")
async def shutdown():
    logger.info("🛑 Visitrack backend shutting down...")
