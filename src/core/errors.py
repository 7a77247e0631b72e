"""
Error taxonomy surfaced to callers.
Each error carries a machine-readable code; the HTTP layer maps codes to status codes.
"""

from typing import Any, Dict, Optional


class CommandError(Exception):
    """Base class for every error a command can end with."""

    code = "INTERNAL"
    status_code = 500
    retryable = False

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def to_dict(self) -> Dict[str, Any]:
        return {
            "error_type": self.code,
            "message": self.message,
            "retryable": self.retryable,
            "details": self.details,
        }


class UnauthenticatedError(CommandError):
    code = "UNAUTHENTICATED"
    status_code = 401


class PermissionDeniedError(CommandError):
    code = "PERMISSION_DENIED"
    status_code = 403

    def __init__(self, message: str, reason: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message, {**(details or {}), "reason": reason})
        self.reason = reason


class InvalidArgumentError(CommandError):
    code = "INVALID_ARGUMENT"
    status_code = 400


class OracleUnavailableError(CommandError):
    """The generative oracle timed out or failed. The whole command may be retried."""

    code = "ORACLE_UNAVAILABLE"
    status_code = 503
    retryable = True


class InternalError(CommandError):
    """Unexpected collaborator failure. Message is opaque; internals stay in the logs."""

    code = "INTERNAL"
    status_code = 500

    def __init__(self, message: str = "The request could not be completed.", details: Optional[Dict[str, Any]] = None):
        super().__init__(message, details)
