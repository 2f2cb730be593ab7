"""
storage.py — Vehicle image storage on the local media directory

Business Rules:
- Only real images are stored (magic-byte check, not the extension)
- Files are named by content hash, so re-uploading the same photo reuses it
- Stored files are served under settings.media_url_prefix; the returned
  URL is absolute (app_url + prefix) so it can be sent to the gateway

Called by: routers/uploads.py
Depends on: utils/file_validation, config
"""

import logging
from pathlib import Path

from ..config import settings
from ..utils.file_validation import IMAGE_TYPES, file_hash, validate_file

log = logging.getLogger("autoquote.storage")

VEHICLE_IMAGE_DIR = "vehicles"


def media_root() -> Path:
    return Path(settings.media_dir)


def save_vehicle_image(content: bytes, filename: str, user_id: int) -> str:
    """Store one image and return its public URL. Raises ValueError when rejected."""
    check = validate_file(content, filename, IMAGE_TYPES)
    if not check["valid"]:
        raise ValueError(check["reason"])

    name = f"{file_hash(content)[:32]}.{check['file_type']}"
    folder = media_root() / VEHICLE_IMAGE_DIR / str(user_id)
    folder.mkdir(parents=True, exist_ok=True)
    path = folder / name
    if not path.exists():
        path.write_bytes(content)
        log.info(f"Stored vehicle image {path} ({check['size']} bytes)")

    prefix = settings.media_url_prefix.rstrip("/")
    return f"{settings.app_url.rstrip('/')}{prefix}/{VEHICLE_IMAGE_DIR}/{user_id}/{name}"
