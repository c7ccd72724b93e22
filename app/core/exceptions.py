"""
Custom exceptions for the application.

Every exception carries an HTTP status and an ``ErrorCode`` whose catalogue
message is the only text a client ever sees.
"""
from typing import Optional

from app.core.errors import ErrorCode, ErrorMessages, ErrorResponse


class HextokException(Exception):
    """Base exception for all Hextok exceptions."""

    status_code: int = 500
    code: ErrorCode = ErrorCode.SYS_INTERNAL_ERROR
    # set by the login flow to the step that failed
    login_step: Optional[str] = None

    def __init__(
        self,
        message: Optional[str] = None,
        status_code: Optional[int] = None,
        code: Optional[ErrorCode] = None,
        field: Optional[str] = None,
    ):
        if status_code is not None:
            self.status_code = status_code
        if code is not None:
            self.code = code
        self.field = field
        # internal detail for logs; clients get the catalogue message
        self.message = message or ErrorMessages.get(self.code)
        super().__init__(self.message)

    @property
    def public_message(self) -> str:
        return ErrorMessages.get(self.code)

    def to_response(self) -> ErrorResponse:
        return ErrorResponse(code=self.code, message=self.public_message, field=self.field)


class ClientInputError(HextokException):
    """Missing or malformed request input."""

    status_code = 400
    code = ErrorCode.VAL_INVALID_INPUT


class NotFoundError(HextokException):
    """Requested resource does not exist."""

    status_code = 404
    code = ErrorCode.RES_NOT_FOUND


class AuthenticationError(HextokException):
    """Invalid state, session or handoff token."""

    status_code = 401
    code = ErrorCode.AUTH_INVALID_SESSION


class InvalidStateError(AuthenticationError):
    """OAuth state failed verification."""

    status_code = 403
    code = ErrorCode.AUTH_INVALID_STATE


class UpstreamProviderError(HextokException):
    """Identity provider unreachable or returned a non-success status."""

    status_code = 502
    code = ErrorCode.SYS_EXTERNAL_SERVICE_ERROR

    def __init__(self, operation: str, message: Optional[str] = None):
        self.operation = operation
        super().__init__(message or f"{operation} failed")


class PersistenceError(HextokException):
    """Repository call failed."""

    status_code = 500
    code = ErrorCode.SYS_DATABASE_ERROR

    def __init__(self, message: str = "Repository operation failed", operation: Optional[str] = None):
        self.operation = operation
        super().__init__(message)


class IdentityConflictError(PersistenceError):
    """Unique constraint on (provider, provider_user_id) was violated."""

    def __init__(self, message: str = "Provider identity already exists"):
        super().__init__(message, operation="create_identity")


class EncodingError(HextokException):
    """
    Malformed bearer or handoff token.

    Reported as 400 before any authentication context exists and as 401
    once the token is being used to authenticate.
    """

    status_code = 400
    code = ErrorCode.VAL_MALFORMED_TOKEN

    def __init__(self, message: str = "Malformed token", authenticating: bool = False):
        if authenticating:
            super().__init__(message, status_code=401, code=ErrorCode.AUTH_INVALID_SESSION)
        else:
            super().__init__(message)
