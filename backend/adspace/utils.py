"""
Shared utility functions.
"""

import logging
from typing import Any, Optional
from datetime import datetime, timezone

logger = logging.getLogger(__name__)


def envelope(data: Any = None, message: Optional[str] = None) -> dict:
    """Success body shared by every endpoint: {success, data, message?}."""
    body = {"success": True, "data": data}
    if message:
        body["message"] = message
    return body


def error_body(message: str, **extra) -> dict:
    body = {"success": False, "message": message}
    body.update({k: v for k, v in extra.items() if v is not None})
    return body


def internal_error_detail(exc: Exception) -> str:
    """
    Log the real exception server-side and return the cause string that
    the 500 body echoes.
    """
    logger.error(f"Unhandled error: {exc}", exc_info=exc)
    return str(exc) or exc.__class__.__name__


def utcnow() -> datetime:
    """
    Return the current UTC time as a naive datetime (no tzinfo).
    Naive datetimes are used because our DB columns are TIMESTAMP WITHOUT TIME ZONE.
    """
    return datetime.now(timezone.utc).replace(tzinfo=None)
