"""Persist uploaded course images under the data directory."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import BinaryIO, Optional
from uuid import uuid4

from learnhub.config import settings
from learnhub.paths import UPLOADS_DIR, get_upload_path, get_upload_url
from learnhub.services.exceptions import BadRequest, PayloadTooLarge

logger = logging.getLogger(__name__)

ALLOWED_IMAGE_EXTENSIONS = {".jpg", ".jpeg", ".png", ".gif", ".webp"}
CHUNK_SIZE = 1024 * 1024


def save_image(upload_file: BinaryIO, filename: Optional[str]) -> str:
    """Stream an uploaded image to disk under a random name.

    Returns:
        Public URL path of the stored file

    Raises:
        BadRequest: extension is not an image type
        PayloadTooLarge: file exceeds UPLOAD_MAX_SIZE_MB
    """
    suffix = Path(filename or "").suffix.lower()
    if suffix not in ALLOWED_IMAGE_EXTENSIONS:
        raise BadRequest("Only image files (jpg, jpeg, png, gif, webp) are allowed")

    max_bytes = settings.UPLOAD_MAX_SIZE_MB * 1024 * 1024
    UPLOADS_DIR.mkdir(parents=True, exist_ok=True)
    stored_name = f"{uuid4().hex}{suffix}"
    target = get_upload_path(stored_name)
    size_bytes = 0

    try:
        with target.open("wb") as out_f:
            while True:
                chunk = upload_file.read(CHUNK_SIZE)
                if not chunk:
                    break
                size_bytes += len(chunk)
                if size_bytes > max_bytes:
                    raise PayloadTooLarge(
                        f"Image exceeds the {settings.UPLOAD_MAX_SIZE_MB}MB limit"
                    )
                out_f.write(chunk)
    except Exception:
        target.unlink(missing_ok=True)
        raise

    logger.info("Stored upload %s (%d bytes)", stored_name, size_bytes)
    return get_upload_url(stored_name)
