"""
Custom Exception Classes for the Chatter 2FA service

This module defines custom exceptions for consistent error responses.
Wrong codes are NOT exceptions: they are reported as ``valid=False`` results
by the service layer. Only setup, integrity and infrastructure problems are
raised.
"""

from enum import Enum
from typing import Any

from fastapi import status


class ErrorCode(str, Enum):
    """Machine-readable error codes returned in the ``error_code`` field."""

    UNKNOWN_ERROR = "UNKNOWN_ERROR"
    INTERNAL_ERROR = "INTERNAL_ERROR"
    SERVICE_UNAVAILABLE = "SERVICE_UNAVAILABLE"

    AUTH_FAILED = "AUTH_FAILED"
    AUTH_INVALID_TOKEN = "AUTH_INVALID_TOKEN"
    AUTH_TOKEN_EXPIRED = "AUTH_TOKEN_EXPIRED"
    AUTH_PERMISSION_DENIED = "AUTH_PERMISSION_DENIED"

    VALIDATION_FAILED = "VALIDATION_FAILED"
    RESOURCE_NOT_FOUND = "RESOURCE_NOT_FOUND"
    RATE_LIMIT_EXCEEDED = "RATE_LIMIT_EXCEEDED"

    TWO_FACTOR_NOT_SET_UP = "TWO_FACTOR_NOT_SET_UP"
    TWO_FACTOR_NOT_ENABLED = "TWO_FACTOR_NOT_ENABLED"
    TWO_FACTOR_MALFORMED_SECRET = "TWO_FACTOR_MALFORMED_SECRET"
    PERSISTENCE_FAILURE = "PERSISTENCE_FAILURE"


class ChatterError(Exception):
    """Base exception class for all service exceptions"""

    def __init__(
        self,
        message: str,
        status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR,
        error_code: ErrorCode = ErrorCode.INTERNAL_ERROR,
        details: dict[str, Any] | None = None,
    ):
        self.message = message
        self.status_code = status_code
        self.error_code = error_code
        self.details = details or {}
        super().__init__(self.message)


# ============================================================================
# Authentication Exceptions
# ============================================================================


class AuthenticationError(ChatterError):
    """Raised when session authentication fails"""

    def __init__(
        self,
        message: str = "Could not validate credentials",
        error_code: ErrorCode = ErrorCode.AUTH_FAILED,
    ):
        super().__init__(message=message, status_code=status.HTTP_401_UNAUTHORIZED, error_code=error_code)


class TokenExpiredError(AuthenticationError):
    """Raised when the session token has expired"""

    def __init__(self, message: str = "Token has expired"):
        super().__init__(message=message, error_code=ErrorCode.AUTH_TOKEN_EXPIRED)


class InvalidTokenError(AuthenticationError):
    """Raised when the session token is invalid"""

    def __init__(self, message: str = "Invalid or malformed token"):
        super().__init__(message=message, error_code=ErrorCode.AUTH_INVALID_TOKEN)


# ============================================================================
# Two-Factor Exceptions
# ============================================================================


class NotSetUpError(ChatterError):
    """Raised when verify is called before setup"""

    def __init__(self, message: str = "2FA has not been set up. Call setup first."):
        super().__init__(
            message=message,
            status_code=status.HTTP_400_BAD_REQUEST,
            error_code=ErrorCode.TWO_FACTOR_NOT_SET_UP,
        )


class TwoFactorNotEnabledError(ChatterError):
    """Raised when validate/disable hit a record that is missing or not enabled"""

    def __init__(self, message: str = "2FA is not enabled for this user"):
        super().__init__(
            message=message,
            status_code=status.HTTP_400_BAD_REQUEST,
            error_code=ErrorCode.TWO_FACTOR_NOT_ENABLED,
        )


class MalformedSecretError(ChatterError):
    """
    Raised when a stored secret is not valid Base32.

    This is a data integrity problem, not a user error: the caller must not
    retry with a different code.
    """

    def __init__(self, message: str = "Stored 2FA secret is malformed", details: dict[str, Any] | None = None):
        super().__init__(
            message=message,
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            error_code=ErrorCode.TWO_FACTOR_MALFORMED_SECRET,
            details=details,
        )


# ============================================================================
# Persistence Exceptions
# ============================================================================


class PersistenceError(ChatterError):
    """Raised when the record store is unreachable or a write keeps conflicting (retryable)"""

    def __init__(self, message: str = "2FA storage is temporarily unavailable", operation: str | None = None):
        details = {"operation": operation, "retryable": True} if operation else {"retryable": True}
        super().__init__(
            message=message,
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            error_code=ErrorCode.PERSISTENCE_FAILURE,
            details=details,
        )
