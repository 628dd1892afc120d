from __future__ import annotations

from fastapi import HTTPException, status

from devicecheck.core.exceptions import (
    ConflictError,
    DependencyError,
    DeviceCheckError,
    NotFoundError,
    ValidationError,
)

_STATUS_CODES: list[tuple[type[DeviceCheckError], int]] = [
    (ValidationError, status.HTTP_400_BAD_REQUEST),
    (NotFoundError, status.HTTP_404_NOT_FOUND),
    (ConflictError, status.HTTP_409_CONFLICT),
    (DependencyError, status.HTTP_503_SERVICE_UNAVAILABLE),
]


def http_error(err: DeviceCheckError) -> HTTPException:
    for error_type, status_code in _STATUS_CODES:
        if isinstance(err, error_type):
            return HTTPException(status_code=status_code, detail=str(err))
    return HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=str(err))
