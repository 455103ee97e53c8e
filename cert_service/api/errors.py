"""Translate domain errors into HTTP responses.

Routers catch ``CertificateError`` and re-raise ``to_http_exception(e)``.
Messages for 404 and 503 are fixed strings so store internals and the
difference between "absent" and "revoked" never reach the client.
"""

from __future__ import annotations

import logging

from fastapi import HTTPException, status

from cert_service.core.errors import (
    AuthorizationError,
    CertificateError,
    ExhaustionError,
    InvalidInput,
    NotFound,
    TransientError,
    TransitionError,
    ValidationError,
)
from cert_service.services.verification import NOT_VALID_MESSAGE

logger = logging.getLogger(__name__)

UNAVAILABLE_MESSAGE = "Service temporarily unavailable, please retry"


def to_http_exception(exc: CertificateError) -> HTTPException:
    if isinstance(exc, ValidationError):
        return HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_CONTENT,
            detail={"errors": exc.violations},
        )
    if isinstance(exc, InvalidInput):
        return HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc))
    if isinstance(exc, NotFound):
        return HTTPException(
            status_code=status.HTTP_404_NOT_FOUND, detail=NOT_VALID_MESSAGE
        )
    if isinstance(exc, TransientError):
        logger.warning("Store unavailable: %s", exc)
        return HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail=UNAVAILABLE_MESSAGE,
            headers={"Retry-After": "1"},
        )
    if isinstance(exc, AuthorizationError):
        return HTTPException(
            status_code=status.HTTP_403_FORBIDDEN, detail="Insufficient permissions"
        )
    if isinstance(exc, TransitionError):
        return HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(exc))
    if isinstance(exc, ExhaustionError):
        logger.error("Certificate id space exhausted: %s", exc)
        return HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Certificate id could not be allocated, please retry",
        )
    logger.error("Unmapped domain error %s: %s", type(exc).__name__, exc)
    return HTTPException(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        detail="Internal server error",
    )
