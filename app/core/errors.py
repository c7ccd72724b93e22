"""
Standardized Error Message Catalog for Hextok.

Centralizes all error messages so that authentication failures never leak
which individual check rejected a request.
"""
from enum import Enum
from typing import Dict, Optional


class ErrorCode(str, Enum):
    """Standardized error codes for API responses."""

    # Authentication Errors (AUTH_*)
    AUTH_REQUIRED = "AUTH_001"
    AUTH_INVALID_SESSION = "AUTH_002"
    AUTH_INVALID_STATE = "AUTH_003"
    AUTH_INVALID_HANDOFF_TOKEN = "AUTH_004"
    AUTH_OAUTH_ERROR = "AUTH_005"

    # Validation Errors (VAL_*)
    VAL_INVALID_INPUT = "VAL_001"
    VAL_MISSING_REQUIRED_FIELD = "VAL_002"
    VAL_INVALID_REDIRECT_URI = "VAL_003"
    VAL_MALFORMED_TOKEN = "VAL_004"

    # Resource Errors (RES_*)
    RES_NOT_FOUND = "RES_001"

    # System Errors (SYS_*)
    SYS_INTERNAL_ERROR = "SYS_001"
    SYS_DATABASE_ERROR = "SYS_002"
    SYS_EXTERNAL_SERVICE_ERROR = "SYS_003"


class ErrorMessages:
    """Centralized error message definitions."""

    _messages: Dict[ErrorCode, str] = {
        # Authentication Errors
        ErrorCode.AUTH_REQUIRED: "Authentication required",
        ErrorCode.AUTH_INVALID_SESSION: "Invalid or expired session",
        ErrorCode.AUTH_INVALID_STATE: "Invalid state",
        ErrorCode.AUTH_INVALID_HANDOFF_TOKEN: "Invalid or expired token",
        ErrorCode.AUTH_OAUTH_ERROR: "OAuth authentication failed",

        # Validation Errors
        ErrorCode.VAL_INVALID_INPUT: "Invalid input provided",
        ErrorCode.VAL_MISSING_REQUIRED_FIELD: "Required field is missing",
        ErrorCode.VAL_INVALID_REDIRECT_URI: "Invalid redirect URI",
        ErrorCode.VAL_MALFORMED_TOKEN: "Malformed token",

        # Resource Errors
        ErrorCode.RES_NOT_FOUND: "Resource not found",

        # System Errors
        ErrorCode.SYS_INTERNAL_ERROR: "An internal error occurred",
        ErrorCode.SYS_DATABASE_ERROR: "A database error occurred",
        ErrorCode.SYS_EXTERNAL_SERVICE_ERROR: "Identity provider request failed",
    }

    @classmethod
    def get(cls, code: ErrorCode, **kwargs) -> str:
        """
        Get error message for a given error code.

        Args:
            code: Error code
            **kwargs: Additional context for formatting

        Returns:
            Formatted error message
        """
        base_message = cls._messages.get(code, "An error occurred")

        if kwargs:
            try:
                return base_message.format(**kwargs)
            except KeyError:
                return base_message

        return base_message


class ErrorResponse:
    """Standardized error response structure."""

    def __init__(
        self,
        code: ErrorCode,
        message: Optional[str] = None,
        field: Optional[str] = None,
    ):
        self.code = code
        self.message = message or ErrorMessages.get(code)
        self.field = field

    def to_dict(self) -> Dict:
        """Convert to dictionary for API response."""
        response = {
            "error": {
                "code": self.code.value,
                "message": self.message,
            }
        }

        if self.field:
            response["error"]["field"] = self.field

        return response
