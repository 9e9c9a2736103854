"""Mapping of fulfillment errors to HTTP responses."""
import logging

from fastapi import HTTPException

from app.core.errors import OrderError

logger = logging.getLogger(__name__)


def to_http_exception(error: OrderError, tag: str) -> HTTPException:
    """Convert a typed fulfillment error into an HTTPException carrying its payload."""
    logger.info(f"[{tag}] {error.code}: {error.message}")
    return HTTPException(status_code=error.status_code, detail=error.to_dict())
