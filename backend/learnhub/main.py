"""FastAPI application entry point."""

import logging
import os

# Configure logging based on ENV environment variable
# ENV=dev: INFO level with detailed format (default)
# ENV=prod/staging: WARNING level, minimal logs
_env = os.getenv("ENV", "dev").lower()
_is_dev = _env == "dev"
_log_level = logging.INFO if _is_dev else logging.WARNING

logging.basicConfig(
    level=_log_level,
    format=(
        "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s"
        if _is_dev
        else "%(levelname)s | %(message)s"
    ),
    datefmt="%H:%M:%S",
)

# Enable request/exception loggers in dev mode only
if _is_dev:
    logging.getLogger("learnhub.request").setLevel(logging.INFO)
    logging.getLogger("learnhub.exception").setLevel(logging.INFO)

from fastapi import FastAPI, HTTPException
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.staticfiles import StaticFiles

from learnhub.api import admin, courses, health, payments, users
from learnhub.config import settings
from learnhub.middleware.exception_handlers import (
    app_error_handler,
    general_exception_handler,
    http_exception_handler,
    validation_exception_handler,
)
from learnhub.middleware.request_logging import RequestLoggingMiddleware
from learnhub.paths import UPLOADS_DIR, UPLOADS_URL_PREFIX, ensure_data_dirs
from learnhub.services.exceptions import AppError
from learnhub.utils.prometheus_metrics import setup_prometheus

logger = logging.getLogger(__name__)

app = FastAPI(
    title="LearnHub API",
    description="Course marketplace API: accounts, catalogue, checkout",
    version=settings.APP_VERSION,
    docs_url="/api/docs",
    redoc_url="/api/redoc",
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Trace middleware for request logging and correlation
app.add_middleware(RequestLoggingMiddleware)

# Register global exception handlers
app.add_exception_handler(AppError, app_error_handler)
app.add_exception_handler(HTTPException, http_exception_handler)
app.add_exception_handler(RequestValidationError, validation_exception_handler)
app.add_exception_handler(Exception, general_exception_handler)

app.include_router(health.router, prefix="/api", tags=["Health"])
app.include_router(admin.router, prefix="/api")
app.include_router(users.router, prefix="/api")
app.include_router(courses.router, prefix="/api")
app.include_router(payments.router, prefix="/api")

setup_prometheus(app)

ensure_data_dirs()
app.mount(UPLOADS_URL_PREFIX, StaticFiles(directory=str(UPLOADS_DIR)), name="uploads")


@app.get("/")
async def root():
    """Root endpoint."""
    return {
        "message": "LearnHub API",
        "version": settings.APP_VERSION,
        "docs": "/api/docs",
    }


@app.on_event("startup")
async def startup_event():
    """Application startup tasks."""
    # Ensure MongoDB indexes exist
    try:
        from learnhub.database.ensure_indexes import ensure_indexes
        from learnhub.database.mongo import get_database

        db = get_database()
        ensure_indexes(db)
    except Exception as e:
        logger.warning(f"Failed to ensure database indexes: {e}")


@app.on_event("shutdown")
async def shutdown_event():
    from learnhub.database.mongo import close_client
    from learnhub.services.payment_provider import get_payment_provider

    get_payment_provider().close()
    close_client()
