"""
Error handling utilities for Lambda functions.

Provides standardized error responses with error codes.
"""

from typing import Any, Dict, Optional


class AppError(Exception):
    """
    Application error with error code and message.

    Used to return structured errors to API clients.
    """

    def __init__(self, error_code: str, message: str, details: Optional[Dict[str, Any]] = None):
        self.error_code = error_code
        self.message = message
        self.details = details or {}
        super().__init__(message)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for the response body."""
        return {
            "errorCode": self.error_code,
            "message": self.message,
            **self.details,
        }


# Common error codes
class ErrorCode:
    """Standard error codes for the application."""

    # Authorization errors
    FORBIDDEN = "FORBIDDEN"
    UNAUTHORIZED = "UNAUTHORIZED"

    # Resource errors
    NOT_FOUND = "NOT_FOUND"
    ALREADY_EXISTS = "ALREADY_EXISTS"

    # Validation errors
    INVALID_INPUT = "INVALID_INPUT"
    INVALID_RANK = "INVALID_RANK"

    # Business logic errors
    ORDER_ALREADY_CLAIMED = "ORDER_ALREADY_CLAIMED"
    ORDER_NOT_AVAILABLE = "ORDER_NOT_AVAILABLE"
    ACTIVE_ORDER_EXISTS = "ACTIVE_ORDER_EXISTS"
    INVALID_STATUS_TRANSITION = "INVALID_STATUS_TRANSITION"

    # Upstream errors
    PAYMENT_ERROR = "PAYMENT_ERROR"
    NOTIFICATION_ERROR = "NOTIFICATION_ERROR"

    # System errors
    INTERNAL_ERROR = "INTERNAL_ERROR"
    DATABASE_ERROR = "DATABASE_ERROR"


_HTTP_STATUS = {
    ErrorCode.INVALID_INPUT: 400,
    ErrorCode.INVALID_RANK: 400,
    ErrorCode.UNAUTHORIZED: 401,
    ErrorCode.FORBIDDEN: 403,
    ErrorCode.NOT_FOUND: 404,
    ErrorCode.ALREADY_EXISTS: 409,
    ErrorCode.ORDER_ALREADY_CLAIMED: 409,
    ErrorCode.ORDER_NOT_AVAILABLE: 409,
    ErrorCode.ACTIVE_ORDER_EXISTS: 409,
    ErrorCode.INVALID_STATUS_TRANSITION: 409,
    ErrorCode.PAYMENT_ERROR: 502,
    ErrorCode.NOTIFICATION_ERROR: 502,
}


def http_status_for(error_code: str) -> int:
    """Map an error code to the HTTP status returned through API Gateway."""
    return _HTTP_STATUS.get(error_code, 500)


def handle_error(error: Exception) -> Dict[str, Any]:
    """
    Convert exception to standardized error response.

    Args:
        error: Exception to handle

    Returns:
        Error dictionary for the response body
    """
    if isinstance(error, AppError):
        return error.to_dict()

    # Unexpected error - return generic message
    return {
        "errorCode": ErrorCode.INTERNAL_ERROR,
        "message": "An unexpected error occurred. Please try again.",
    }
