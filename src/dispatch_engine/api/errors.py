"""Translate service exceptions into HTTP errors."""

from __future__ import annotations

import logging
from typing import NoReturn

from fastapi import HTTPException, status

from ..errors import (
    AssignmentNotFoundError,
    DuplicateActiveAssignmentError,
    InvalidInputError,
    StoreUnavailableError,
)

logger = logging.getLogger(__name__)


def raise_http_error(exc: Exception, action: str) -> NoReturn:
    if isinstance(exc, HTTPException):
        raise exc
    if isinstance(exc, InvalidInputError):
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc
    if isinstance(exc, AssignmentNotFoundError):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc
    if isinstance(exc, DuplicateActiveAssignmentError):
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(exc)) from exc
    if isinstance(exc, StoreUnavailableError):
        logger.error(f"Failed to {action}: {exc}")
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail=f"Failed to {action}: storage unavailable",
        ) from exc
    logger.exception(f"Error trying to {action}: {exc}")
    raise HTTPException(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        detail=f"Failed to {action}: {str(exc)}",
    ) from exc
