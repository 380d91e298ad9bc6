from __future__ import annotations


class AppError(Exception):
    """Base application error."""

    code = "error"

    def __init__(self, detail: str = "") -> None:
        self.detail = detail
        super().__init__(detail)


class NotFoundError(AppError):
    code = "not_found"


class AuthorizationError(AppError):
    """Acting on a resource owned by another user."""

    code = "forbidden"


class ValidationError(AppError):
    """Malformed input or a sender outside the conversation. Nothing is persisted."""

    code = "validation_error"


class PersistenceFailure(AppError):
    """The store could not complete the operation; the caller may retry."""

    code = "persistence_failure"


class TransportUnavailable(AppError):
    """Push target has no usable connection. Callers fall back to queuing."""

    code = "transport_unavailable"
