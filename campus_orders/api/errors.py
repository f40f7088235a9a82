# campus_orders/api/errors.py
from fastapi import HTTPException

from campus_orders.domain.errors import (
    CatalogUnavailable,
    Conflict,
    InvalidTransition,
    NotEligible,
    NotFound,
    OrderingError,
    ValidationError,
)

_STATUS_CODES = [
    (ValidationError, 400),
    (NotFound, 404),
    (Conflict, 409),
    (InvalidTransition, 409),
    (NotEligible, 422),
    (CatalogUnavailable, 502),
]


def http_error(exc: Exception) -> HTTPException:
    if isinstance(exc, PermissionError):
        return HTTPException(status_code=403, detail=str(exc))

    for exc_type, status_code in _STATUS_CODES:
        if isinstance(exc, exc_type):
            return HTTPException(status_code=status_code, detail=str(exc))

    return HTTPException(status_code=500, detail="Internal error")


__all__ = ["OrderingError", "http_error"]
