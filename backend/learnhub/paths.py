"""
Centralized path definitions for data storage.

All paths are relative to settings.DATA_DIR as the root.
"""

import logging
from pathlib import Path

from learnhub.config import settings

logger = logging.getLogger(__name__)

# Base data directory (absolute)
DATA_DIR = Path(settings.DATA_DIR).resolve()

# Uploaded course images, served under /uploads
UPLOADS_DIR = DATA_DIR / "uploads"

# Public URL prefix for uploaded files
UPLOADS_URL_PREFIX = "/uploads"


def ensure_data_dirs() -> None:
    """Create all required data directories if they don't exist."""
    for d in [DATA_DIR, UPLOADS_DIR]:
        d.mkdir(parents=True, exist_ok=True)


def get_upload_path(filename: str) -> Path:
    """Get the on-disk path of an uploaded file."""
    return UPLOADS_DIR / filename


def get_upload_url(filename: str) -> str:
    """Get the public URL path of an uploaded file."""
    return f"{UPLOADS_URL_PREFIX}/{filename}"
