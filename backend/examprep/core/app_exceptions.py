"""Application-specific exceptions for consistent error handling.

Every failure the engine reports to a caller is an ``AppError`` subclass with a
stable ``code``. Services raise these directly; the handlers in
``examprep.core.errors`` render them into the standard error envelope.
"""

from typing import Any

from fastapi import HTTPException, status


class AppError(HTTPException):
    """Application error with standardized error code."""

    status_code_default: int = status.HTTP_400_BAD_REQUEST
    code_default: str = "APP_ERROR"

    def __init__(
        self,
        message: str,
        details: dict[str, Any] | list[Any] | None = None,
        *,
        status_code: int | None = None,
        code: str | None = None,
    ):
        """Initialize application error."""
        status_code = status_code or self.status_code_default
        code = code or self.code_default
        super().__init__(
            status_code=status_code,
            detail={
                "code": code,
                "message": message,
                "details": details,
            },
        )
        self.code = code
        self.message = message
        self.details = details


class Unauthorized(AppError):
    """No valid caller identity."""

    status_code_default = status.HTTP_401_UNAUTHORIZED
    code_default = "UNAUTHORIZED"


class AccessDenied(AppError):
    """Valid identity, but not the owner of the resource."""

    status_code_default = status.HTTP_403_FORBIDDEN
    code_default = "ACCESS_DENIED"


class NotFound(AppError):
    """Resource does not resolve for this caller.

    Also used for resources owned by someone else on read paths, so their
    existence is not leaked.
    """

    status_code_default = status.HTTP_404_NOT_FOUND
    code_default = "NOT_FOUND"


class ValidationFailed(AppError):
    """Malformed or incomplete request body."""

    code_default = "VALIDATION_ERROR"


class InvalidConfiguration(AppError):
    """Session configuration failed validation."""

    code_default = "INVALID_CONFIGURATION"


class InvalidTransition(AppError):
    """Lifecycle operation attempted from a state that forbids it."""

    code_default = "INVALID_TRANSITION"

    def __init__(self, message: str, current_status: str):
        super().__init__(message, {"current_status": current_status})
        self.current_status = current_status


class NoQuestionsAvailable(AppError):
    """Composition found zero eligible questions."""

    code_default = "NO_QUESTIONS_AVAILABLE"
