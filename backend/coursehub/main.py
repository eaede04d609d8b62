"""
CourseHub Marketplace — FastAPI Application Entry Point

Aggregates all routers, configures logging and middleware, maps domain
errors to HTTP responses, and runs the maintenance sweep in the background.
"""
import asyncio
import logging
import os
import time
from contextlib import asynccontextmanager
from datetime import datetime

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy import text

from coursehub.config import get_settings
from coursehub.database import SessionLocal, init_db
from coursehub.errors import AppError
from coursehub.routes import (
    auth_router, courses_router, pdfs_router, videos_router,
    categories_router, payment_router, admin_router,
)
from coursehub.services.cleanup import cleanup_loop
from coursehub.services.gateway import PayUGateway

settings = get_settings()
logger = logging.getLogger(__name__)

BOOT_TIME = time.time()


def configure_logging():
    """Console plus ``LOG_DIR/server.log``; a no-op if the root logger is already set up."""
    os.makedirs(settings.LOG_DIR, exist_ok=True)
    logging.basicConfig(
        level=settings.LOG_LEVEL.upper(),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        handlers=[
            logging.StreamHandler(),
            logging.FileHandler(os.path.join(settings.LOG_DIR, "server.log"), encoding="utf-8"),
        ],
    )


# ─── Lifespan ────────────────────────────────────────────────────────

@asynccontextmanager
async def lifespan(app: FastAPI):
    configure_logging()
    init_db()

    gateway = PayUGateway.from_settings(settings)
    logger.info(
        "\n%s\n  %s v%s\n  TIME: %s\n  DATABASE: %s\n  PAYMENT GATEWAY: %s\n  ENVIRONMENT: %s\n%s",
        "=" * 60,
        settings.APP_NAME, settings.APP_VERSION,
        datetime.now().isoformat(),
        settings.DATABASE_URL.split("@")[-1],
        "[OK] Configured" if gateway.is_configured else "[!] Missing credentials",
        settings.ENVIRONMENT,
        "=" * 60,
    )

    task = asyncio.create_task(cleanup_loop(SessionLocal))

    yield

    task.cancel()


# ─── Application Instance ───────────────────────────────────────────
app = FastAPI(
    title=settings.APP_NAME,
    version=settings.APP_VERSION,
    description=(
        "Backend for a course and PDF marketplace: OTP and password login, "
        "course catalog, PayU checkout with idempotent payments, and "
        "watermarked downloads for entitled students."
    ),
    docs_url="/docs",
    redoc_url="/redoc",
    lifespan=lifespan,
)


# ─── Middleware ──────────────────────────────────────────────────────
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.middleware("http")
async def log_requests(request: Request, call_next):
    """Log every API request with timing."""
    start = time.time()
    response = await call_next(request)
    duration = round((time.time() - start) * 1000, 1)

    if request.url.path.startswith("/api"):
        logger.info("%s %s -> %s (%sms)", request.method, request.url.path, response.status_code, duration)

    return response


# ─── Error Handlers ──────────────────────────────────────────────────

@app.exception_handler(AppError)
async def app_error_handler(request: Request, exc: AppError):
    if exc.status_code >= 500:
        logger.error("%s on %s %s: %s", exc.error_code, request.method, request.url.path, exc.detail)
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError):
    errors = []
    for err in exc.errors():
        loc = [str(part) for part in err.get("loc", ()) if part not in ("body", "query", "path", "header", "form")]
        errors.append({"field": ".".join(loc) or "body", "message": err.get("msg", "Invalid value")})
    return JSONResponse(
        status_code=400,
        content={"detail": "Validation failed", "error_code": "VALIDATION_ERROR", "errors": errors},
    )


# ─── API Routers ─────────────────────────────────────────────────────
app.include_router(auth_router)
app.include_router(courses_router)
app.include_router(pdfs_router)
app.include_router(videos_router)
app.include_router(categories_router)
app.include_router(payment_router)
app.include_router(admin_router)


@app.get("/health", tags=["Health"])
def deep_health():
    """Health check including database and gateway status."""
    db_ok = False
    db = SessionLocal()
    try:
        db.execute(text("SELECT 1"))
        db_ok = True
    except Exception:
        logger.exception("Health check: database unreachable")
    finally:
        db.close()

    return {
        "status": "healthy" if db_ok else "degraded",
        "database": "connected" if db_ok else "disconnected",
        "gateway": "configured" if PayUGateway.from_settings(settings).is_configured else "unconfigured",
        "version": settings.APP_VERSION,
        "uptime_seconds": round(time.time() - BOOT_TIME, 1),
    }
