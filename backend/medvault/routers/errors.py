"""
Translation of vault errors into HTTP responses.
"""

import logging
from typing import Optional

from fastapi import HTTPException, status

from medvault.exceptions import AccessDenied, Conflict, InvalidInput, NotFound, StorageFailure, VaultError

logger = logging.getLogger(__name__)


def to_http_exception(
    error: Exception,
    action: str,
    masked_document_id: Optional[str] = None
) -> HTTPException:
    """
    Map a service error to an HTTPException.

    Args:
        error: Raised exception
        action: What was attempted, used in 500 responses
        masked_document_id: When set, AccessDenied is reported as the same 404
            a missing document with this id would produce

    Returns:
        HTTPException to raise
    """
    if isinstance(error, AccessDenied):
        if masked_document_id is not None:
            return HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail=f"Document {masked_document_id} not found"
            )
        return HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=error.message)

    if isinstance(error, InvalidInput):
        return HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=error.message)

    if isinstance(error, NotFound):
        return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=error.message)

    if isinstance(error, Conflict):
        return HTTPException(status_code=status.HTTP_409_CONFLICT, detail=error.message)

    if isinstance(error, StorageFailure):
        logger.error(f"Storage failure while trying to {action}: {error.message}")
        return HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"Failed to {action}: {error.message}"
        )

    if isinstance(error, VaultError):
        message = error.message
    else:
        logger.exception(f"Unexpected error while trying to {action}")
        message = str(error)

    return HTTPException(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        detail=f"Failed to {action}: {message}"
    )
