"""Domain errors raised by services and mapped to HTTP responses in ``app.main``."""

from __future__ import annotations


class AppError(Exception):
    status_code: int = 400

    def __init__(self, detail: str) -> None:
        super().__init__(detail)
        self.detail = detail


class BusinessRuleError(AppError):
    """Malformed input or a violated business rule (share caps, invalid status)."""

    status_code = 400


class NotFoundError(AppError):
    """Entity absent, or the caller has no standing relationship to it."""

    status_code = 404


class AuthorizationError(AppError):
    """Caller is known but not allowed to perform the mutation."""

    status_code = 403
