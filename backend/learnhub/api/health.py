"""Liveness and readiness endpoint."""

import logging

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse
from pymongo.database import Database
from pymongo.errors import PyMongoError

from learnhub.config import settings
from learnhub.database.mongo import get_db

router = APIRouter()
logger = logging.getLogger(__name__)


@router.get("/health")
def health_check(db: Database = Depends(get_db)):
    """Report service status and whether MongoDB answers a ping."""
    try:
        db.command("ping")
        database = "ok"
    except PyMongoError as e:
        logger.warning("Health check: MongoDB ping failed: %s", e)
        database = "unavailable"

    body = {
        "status": "ok" if database == "ok" else "degraded",
        "database": database,
        "version": settings.APP_VERSION,
    }
    return JSONResponse(status_code=200 if database == "ok" else 503, content=body)
