"""Translate domain exceptions into HTTP errors"""

import logging

from fastapi import HTTPException

from biblioteca_gateway.domain.exceptions import (
    DomainException,
    ForbiddenError,
    NotFoundError,
    ValidationError,
)
from biblioteca_gateway.infrastructure.observability.metrics import domain_error_counter


def to_http_error(e: Exception, request_id: str) -> HTTPException:
    if isinstance(e, ForbiddenError):
        domain_error_counter.labels(kind="forbidden").inc()
        logging.warning(f"Forbidden: {e}", extra={"request_id": request_id})
        return HTTPException(status_code=403, detail=str(e))

    if isinstance(e, NotFoundError):
        domain_error_counter.labels(kind="not_found").inc()
        logging.warning(f"Not found: {e}", extra={"request_id": request_id})
        return HTTPException(status_code=404, detail=str(e))

    if isinstance(e, ValidationError):
        domain_error_counter.labels(kind="validation").inc()
        logging.warning(f"Validation failed: {e}", extra={"request_id": request_id})
        return HTTPException(status_code=422, detail=str(e))

    if isinstance(e, DomainException):
        logging.error(f"Domain error: {e}", extra={"request_id": request_id})
        return HTTPException(status_code=503, detail="Dependent service unavailable")

    logging.error(f"Unexpected error: {e}", extra={"request_id": request_id})
    return HTTPException(status_code=500, detail="Internal server error")
