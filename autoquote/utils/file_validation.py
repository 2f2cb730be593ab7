"""File validation — magic-byte type checking for uploads.

Uses the `filetype` library so an upload's declared extension is never
trusted: vehicle photos must really be images and vehicle documents must
really be PDFs.
"""
import hashlib
import logging

import filetype

from ..config import settings

log = logging.getLogger("autoquote.file_validation")

IMAGE_TYPES = {
    "image/jpeg": "jpg",
    "image/png": "png",
    "image/webp": "webp",
    "image/gif": "gif",
}

PDF_TYPES = {"application/pdf": "pdf"}


def max_upload_bytes() -> int:
    return settings.max_upload_size_mb * 1024 * 1024


def validate_file(content: bytes, filename: str, allowed: dict[str, str]) -> dict:
    """Validate a file's actual type against an allow-list of MIME types.

    Returns:
        {
            "valid": bool,
            "file_type": extension for the detected type, or None,
            "mime": detected MIME type, or None,
            "reason": why invalid, or None,
            "size": int,
        }
    """
    result = {
        "valid": False,
        "file_type": None,
        "mime": None,
        "reason": None,
        "size": len(content),
    }

    if len(content) == 0:
        result["reason"] = "Empty file"
        return result

    limit = max_upload_bytes()
    if len(content) > limit:
        result["reason"] = f"File too large ({len(content)} bytes, max {limit})"
        return result

    kind = filetype.guess(content)
    if kind is None:
        result["reason"] = f"Could not detect file type of {filename or 'upload'}"
        return result

    result["mime"] = kind.mime
    if kind.mime not in allowed:
        result["reason"] = f"{filename or 'upload'} detected as {kind.mime}, which is not accepted"
        return result

    result["valid"] = True
    result["file_type"] = allowed[kind.mime]
    return result


def file_hash(content: bytes) -> str:
    """SHA-256 of the content, used to name stored uploads."""
    return hashlib.sha256(content).hexdigest()
