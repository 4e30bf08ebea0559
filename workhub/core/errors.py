"""Error taxonomy shared by services and the HTTP layer."""

from __future__ import annotations

from enum import Enum

from fastapi import HTTPException, status


class ErrorKind(str, Enum):
    UNAUTHENTICATED = "unauthenticated"
    NOT_FOUND = "not_found"
    FORBIDDEN = "forbidden"
    INVALID_INPUT = "invalid_input"
    CONFLICT = "conflict"
    INTERNAL = "internal"


STATUS_BY_KIND: dict[ErrorKind, int] = {
    ErrorKind.UNAUTHENTICATED: status.HTTP_401_UNAUTHORIZED,
    ErrorKind.NOT_FOUND: status.HTTP_404_NOT_FOUND,
    ErrorKind.FORBIDDEN: status.HTTP_403_FORBIDDEN,
    ErrorKind.INVALID_INPUT: status.HTTP_400_BAD_REQUEST,
    ErrorKind.CONFLICT: status.HTTP_409_CONFLICT,
    ErrorKind.INTERNAL: status.HTTP_500_INTERNAL_SERVER_ERROR,
}

INTERNAL_ERROR_MESSAGE = "Internal server error"


def api_error(kind: ErrorKind, message: str) -> HTTPException:
    return HTTPException(status_code=STATUS_BY_KIND[kind], detail=message)


def kind_for_status(status_code: int) -> ErrorKind:
    for kind, code in STATUS_BY_KIND.items():
        if code == status_code:
            return kind
    if status_code >= 500:
        return ErrorKind.INTERNAL
    return ErrorKind.INVALID_INPUT
