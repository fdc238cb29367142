"""
Normalized error taxonomy for backend calls.

Every failure that leaves the HTTP layer is one of these, so pages only ever
need `error.message` for the banner and `error.kind` for branching.
"""

from typing import Optional


class ApiError(Exception):
    """Base error carrying a kind, user-facing message and HTTP status."""

    kind = "api"
    default_message = "Request failed. Please try again."

    def __init__(
        self,
        message: Optional[str] = None,
        status: Optional[int] = None,
        raw_message: Optional[str] = None,
    ):
        self.message = message or self.default_message
        self.status = status
        self.raw_message = raw_message or self.message
        super().__init__(self.message)

    def to_dict(self) -> dict:
        return {"kind": self.kind, "message": self.message, "status": self.status}

    def __repr__(self) -> str:
        return f"{type(self).__name__}(kind={self.kind!r}, status={self.status!r}, message={self.message!r})"


class ConnectivityError(ApiError):
    kind = "connectivity"
    default_message = "Cannot reach the backend. Is it running?"


class AuthError(ApiError):
    kind = "auth"
    default_message = "Unauthorized. Please login again."


class ValidationError(ApiError):
    kind = "validation"
    default_message = "Invalid input or file format."


class NotFoundError(ApiError):
    kind = "not_found"
    default_message = "Backend endpoint not found. Check your API configuration."


class ServerError(ApiError):
    kind = "server"
    default_message = "Server error. Please check backend logs."


def error_for_status(
    status: int,
    backend_message: Optional[str] = None,
    raw_message: Optional[str] = None,
) -> ApiError:
    """Map an HTTP status to the matching error type."""
    if status in (401, 403):
        cls = AuthError
    elif status == 404:
        cls = NotFoundError
    elif status in (400, 409, 422):
        cls = ValidationError
    else:
        cls = ServerError

    if cls is ServerError and backend_message:
        message = f"Server error: {backend_message}"
    else:
        message = backend_message
    return cls(message, status=status, raw_message=raw_message)
