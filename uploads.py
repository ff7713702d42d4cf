"""Validation and storage of uploaded game cover images."""
import logging
import os
import secrets
import time
from typing import Optional

from fastapi import UploadFile

from config import get_settings
from errors import InvalidArgument

logger = logging.getLogger(__name__)

UPLOAD_URL_PREFIX = "/uploads"

ALLOWED_IMAGE_TYPES = {
    ".jpg": "image/jpeg",
    ".jpeg": "image/jpeg",
    ".png": "image/png",
    ".webp": "image/webp",
}

# Generic clients label any binary part this way; the extension decides then.
GENERIC_CONTENT_TYPE = "application/octet-stream"


def check_image(filename: str, content_type: Optional[str], size: int) -> str:
    """Validate an image upload and return its normalised extension."""
    ext = os.path.splitext(filename or "")[1].lower()
    expected_type = ALLOWED_IMAGE_TYPES.get(ext)
    content_type = (content_type or "").split(";")[0].strip().lower()
    if expected_type is None or content_type not in ("", GENERIC_CONTENT_TYPE, expected_type):
        raise InvalidArgument("Only images are allowed")
    if size > get_settings().max_upload_bytes:
        raise InvalidArgument("File exceeds size limit")
    return ext


def read_upload(upload: UploadFile) -> bytes:
    """Read an upload into memory, stopping just past the size ceiling."""
    limit = get_settings().max_upload_bytes
    return upload.file.read(limit + 1)


def save_image(data: bytes, ext: str) -> str:
    """Write image bytes to UPLOAD_DIR and return the public URL."""
    upload_dir = get_settings().upload_dir
    os.makedirs(upload_dir, exist_ok=True)
    name = f"{int(time.time() * 1000)}-{secrets.token_hex(4)}{ext}"
    with open(os.path.join(upload_dir, name), "wb") as fh:
        fh.write(data)
    logger.info("Stored upload %s (%d bytes)", name, len(data))
    return f"{UPLOAD_URL_PREFIX}/{name}"
