"""Error types for the zakat chat system."""

from enum import Enum
from typing import Any, Dict, Optional


class ErrorType(Enum):
    """Enumeration of failure kinds."""

    VALIDATION = "VALIDATION"
    UNAUTHORIZED = "UNAUTHORIZED"
    FORBIDDEN = "FORBIDDEN"
    NOT_FOUND = "NOT_FOUND"
    CONFLICT = "CONFLICT"
    ORACLE_FAILURE = "ORACLE_FAILURE"


class ZakatChatError(Exception):
    """
    Base exception for all zakat chat errors.

    Attributes:
        error_type: Kind of failure from ErrorType
        message: Human-readable message, safe to show to the operator
        recoverable: Whether the current flow can continue after this error
        details: Optional additional error details
        original_exception: Optional exception that caused this error
    """

    error_type: ErrorType
    recoverable: bool = False

    def __init__(
        self,
        message: str,
        details: Optional[Dict[str, Any]] = None,
        original_exception: Optional[Exception] = None,
    ):
        self.message = message
        self.details = details or {}
        self.original_exception = original_exception
        super().__init__(message)

    def __str__(self) -> str:
        return self.message

    def to_dict(self) -> Dict[str, Any]:
        """
        Convert error to dictionary for logging.

        Returns:
            Dictionary representation of the error
        """
        return {
            "error_type": self.error_type.value,
            "message": self.message,
            "recoverable": self.recoverable,
            "details": self.details,
            "original_exception": str(self.original_exception) if self.original_exception else None,
        }


class StoreError(ZakatChatError):
    """Failure raised by a record store operation."""


class ValidationError(StoreError):
    """Malformed or missing field. Slot-filling re-prompts on this."""

    error_type = ErrorType.VALIDATION
    recoverable = True


class Unauthorized(StoreError):
    """No authenticated identity."""

    error_type = ErrorType.UNAUTHORIZED


class Forbidden(StoreError):
    """Identity lacks the role or ownership required."""

    error_type = ErrorType.FORBIDDEN


class NotFound(StoreError):
    """Referenced record does not exist."""

    error_type = ErrorType.NOT_FOUND


class Conflict(StoreError):
    """Duplicate key on create."""

    error_type = ErrorType.CONFLICT


class OracleFailure(ZakatChatError):
    """The intent oracle call itself failed."""

    error_type = ErrorType.ORACLE_FAILURE
