"""Exceptions raised by the API client."""

from __future__ import annotations

HTTP_UNAUTHORIZED = 401
HTTP_FORBIDDEN = 403
HTTP_NOT_FOUND = 404


class ClientError(RuntimeError):
    """Base exception for client-side failures."""


class NotAuthenticatedError(ClientError):
    """Raised before any request when an action needs a logged-in user."""


class QueryRemovedError(ClientError):
    """The cache entry being loaded was removed before any data arrived."""


class ApiError(ClientError):
    """The API answered with an error status, or could not be reached."""

    def __init__(self, message: str, *, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.detail = message


class TransportError(ApiError):
    """Network failure or timeout; no response was received."""


class UnauthorizedError(ApiError):
    """401 from the API."""


class ForbiddenError(ApiError):
    """403 from the API."""


class NotFoundError(ApiError):
    """404 from the API."""


_ERRORS_BY_STATUS: dict[int, type[ApiError]] = {
    HTTP_UNAUTHORIZED: UnauthorizedError,
    HTTP_FORBIDDEN: ForbiddenError,
    HTTP_NOT_FOUND: NotFoundError,
}


def error_for_status(status_code: int, detail: str) -> ApiError:
    """Build the exception matching an HTTP error status."""
    error_cls = _ERRORS_BY_STATUS.get(status_code, ApiError)
    return error_cls(detail, status_code=status_code)
