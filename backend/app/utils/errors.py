from typing import Dict, Optional
from fastapi import HTTPException, status
import logging

logger = logging.getLogger(__name__)


def error_detail(message: str, field_errors: Optional[Dict[str, str]] = None) -> dict:
    """Return the ``detail`` envelope shared by every error the API emits."""
    return {"message": message, "field_errors": dict(field_errors or {})}


def error_response(
    message: str,
    field_errors: Dict[str, str],
    code: int = status.HTTP_422_UNPROCESSABLE_ENTITY,
) -> HTTPException:
    """Return an HTTPException with a consistent structure and log details."""
    logger.error("%s %s", message, field_errors)
    return HTTPException(status_code=code, detail=error_detail(message, field_errors))
