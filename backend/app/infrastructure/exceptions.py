"""
Custom Exceptions for EventTria

Hierarchical exception classes for proper error handling across layers.
"""

from typing import Optional, Dict, Any


class EventTriaError(Exception):
    """Base exception for all EventTria errors."""

    def __init__(
        self,
        message: str,
        details: Optional[Dict[str, Any]] = None,
        original_error: Optional[Exception] = None
    ):
        super().__init__(message)
        self.message = message
        self.details = details or {}
        self.original_error = original_error

    def to_dict(self) -> Dict[str, Any]:
        """Convert exception to dictionary for API responses."""
        return {
            "error": self.__class__.__name__,
            "message": self.message,
            "details": self.details
        }


class ValidationError(EventTriaError):
    """Raised when input validation fails."""
    pass


class DatabaseError(EventTriaError):
    """Raised when database operations fail."""

    def __init__(
        self,
        message: str,
        operation: Optional[str] = None,
        table: Optional[str] = None,
        original_error: Optional[Exception] = None
    ):
        details = {}
        if operation:
            details["operation"] = operation
        if table:
            details["table"] = table
        super().__init__(message, details, original_error)


class NotFoundError(DatabaseError):
    """Raised when a requested resource is not found."""
    pass


class SubscriptionProvisioningError(DatabaseError):
    """Raised when a default subscription could not be guaranteed."""
    pass


class TrialNotAvailableError(EventTriaError):
    """Raised when a user asks for a trial they are not eligible for."""

    def __init__(self, user_id: str, reason: str = "Trial already used"):
        super().__init__(reason, details={"user_id": user_id})


class ConfigurationError(EventTriaError):
    """Raised when configuration is missing or invalid."""

    def __init__(self, message: str, missing_keys: Optional[list] = None):
        details = {"missing_keys": missing_keys} if missing_keys else {}
        super().__init__(message, details)
