"""Domain error to HTTP response mapping"""

import logging

from fastapi import Request
from fastapi.responses import JSONResponse

from treasury_engine.api.dependencies import get_request_id
from treasury_engine.domain.exceptions import (
    AmountMismatchError,
    ConflictError,
    CrossEntityViolationError,
    DomainException,
    GovernanceViolationError,
    InvalidArgumentError,
    InvalidStateTransitionError,
    NotFoundError,
)

logger = logging.getLogger(__name__)

_STATUS_CODES = (
    (InvalidArgumentError, 422),
    (AmountMismatchError, 422),
    (NotFoundError, 404),
    (ConflictError, 409),
    (InvalidStateTransitionError, 409),
    (GovernanceViolationError, 409),
    (CrossEntityViolationError, 409),
)


def status_code_for(exc: DomainException) -> int:
    for error_type, status_code in _STATUS_CODES:
        if isinstance(exc, error_type):
            return status_code
    return 400


def error_body(exc: DomainException) -> dict:
    body = {"error": type(exc).__name__, "detail": exc.message, "field": exc.field}
    # Conflicts are expected on retries; clients may treat them as no-ops
    if isinstance(exc, ConflictError):
        body["idempotent"] = True
    return body


async def domain_exception_handler(request: Request, exc: DomainException) -> JSONResponse:
    status_code = status_code_for(exc)
    logger.warning(
        "Request rejected: %s",
        type(exc).__name__,
        extra={"request_id": get_request_id(request), "status": status_code, "field": exc.field},
    )
    return JSONResponse(status_code=status_code, content=error_body(exc))


async def unexpected_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.error(f"Unexpected error: {exc}", extra={"request_id": get_request_id(request)})
    return JSONResponse(status_code=500, content={"detail": "Internal server error"})
