"""
Application Exceptions
Uniform error taxonomy surfaced to API callers
"""

from enum import Enum
from typing import Any, Dict, Optional
from fastapi import HTTPException, status


class ErrorCode(str, Enum):
    """Error codes returned in the response body"""
    NOT_FOUND = "NOT_FOUND"
    FORBIDDEN = "FORBIDDEN"
    BAD_REQUEST = "BAD_REQUEST"
    CONFLICT = "CONFLICT"
    UNAUTHORIZED = "UNAUTHORIZED"
    VALIDATION_ERROR = "VALIDATION_ERROR"
    DUPLICATE_ENTRY = "DUPLICATE_ENTRY"
    FOREIGN_KEY_ERROR = "FOREIGN_KEY_ERROR"
    DATABASE_ERROR = "DATABASE_ERROR"
    INTERNAL_ERROR = "INTERNAL_ERROR"


class AppException(HTTPException):
    """
    Base exception for business rule failures

    Subclasses fix the HTTP status and error code; the message is
    returned to the caller unchanged.
    """

    status_code_default = status.HTTP_500_INTERNAL_SERVER_ERROR
    error_code = ErrorCode.INTERNAL_ERROR

    def __init__(
        self,
        message: str,
        details: Optional[Dict[str, Any]] = None,
        headers: Optional[Dict[str, str]] = None
    ):
        super().__init__(status_code=self.status_code_default, detail=message, headers=headers)
        self.message = message
        self.details = details or {}

    def to_dict(self) -> Dict[str, Any]:
        """Convert exception to response body"""
        body = {
            "success": False,
            "code": self.error_code.value,
            "message": self.message
        }
        if self.details:
            body["details"] = self.details
        return body

    def __str__(self) -> str:
        return f"{self.error_code.value}: {self.message}"


class NotFoundError(AppException):
    status_code_default = status.HTTP_404_NOT_FOUND
    error_code = ErrorCode.NOT_FOUND


class ForbiddenError(AppException):
    status_code_default = status.HTTP_403_FORBIDDEN
    error_code = ErrorCode.FORBIDDEN


class BadRequestError(AppException):
    status_code_default = status.HTTP_400_BAD_REQUEST
    error_code = ErrorCode.BAD_REQUEST


class ConflictError(AppException):
    status_code_default = status.HTTP_409_CONFLICT
    error_code = ErrorCode.CONFLICT


class UnauthorizedError(AppException):
    status_code_default = status.HTTP_401_UNAUTHORIZED
    error_code = ErrorCode.UNAUTHORIZED

    def __init__(self, message: str = "Could not validate credentials", details: Optional[Dict[str, Any]] = None):
        super().__init__(message, details, headers={"WWW-Authenticate": "Bearer"})


def classify_integrity_error(exc: Exception) -> ErrorCode:
    """
    Map a database integrity error to an error code

    Args:
        exc: IntegrityError raised by the driver

    Returns:
        ErrorCode: DUPLICATE_ENTRY, FOREIGN_KEY_ERROR or DATABASE_ERROR
    """
    text = str(getattr(exc, "orig", exc)).lower()
    if "unique" in text or "duplicate" in text:
        return ErrorCode.DUPLICATE_ENTRY
    if "foreign key" in text:
        return ErrorCode.FOREIGN_KEY_ERROR
    return ErrorCode.DATABASE_ERROR
