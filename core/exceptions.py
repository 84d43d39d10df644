"""
Custom exception hierarchy for Token Reducer.
Provides structured error handling with proper context.
"""

from typing import Optional, Dict, Any


class TokenReducerException(Exception):
    """Base exception for all Token Reducer errors."""

    def __init__(
        self,
        message: str,
        error_code: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        """
        Initialize exception with message and optional context.

        Args:
            message: Human-readable error message
            error_code: Machine-readable error code
            context: Additional context information
        """
        super().__init__(message)
        self.message = message
        self.error_code = error_code or self.__class__.__name__
        self.context = context or {}

    def to_dict(self) -> Dict[str, Any]:
        """Convert exception to dictionary for logging/API responses."""
        return {
            "error": self.error_code,
            "message": self.message,
            "context": self.context,
        }


# ==================== Validation Exceptions ====================


class ValidationException(TokenReducerException):
    """Base exception for validation errors."""

    pass


class RangeError(ValidationException):
    """Raised when a message index or range is invalid or out of bounds."""

    def __init__(self, reason: str, start: Optional[int] = None, end: Optional[int] = None):
        super().__init__(
            message=f"Invalid message range: {reason}",
            error_code="INVALID_RANGE",
            context={"start": start, "end": end},
        )


class EmptyRangeError(ValidationException):
    """Raised when a range holds no summarizable (visible) messages."""

    def __init__(self, start: int, end: int):
        super().__init__(
            message=f"No visible messages in range {start}-{end}",
            error_code="EMPTY_RANGE",
            context={"start": start, "end": end},
        )


class InvalidInputError(ValidationException, ValueError):
    """Raised when input validation fails."""

    def __init__(self, field: str, reason: str):
        super().__init__(
            message=f"Invalid input: {field} - {reason}",
            error_code="INVALID_INPUT",
            context={"field": field, "reason": reason},
        )


class ConfigurationError(ValidationException):
    """Raised when configuration is invalid."""

    def __init__(self, setting: str, reason: str):
        super().__init__(
            message=f"Invalid configuration: {setting} - {reason}",
            error_code="CONFIGURATION_ERROR",
            context={"setting": setting, "reason": reason},
        )


# ==================== External Service Exceptions ====================


class ExternalServiceException(TokenReducerException):
    """Base exception for external service errors."""

    pass


class GenerationError(ExternalServiceException):
    """Raised when the text generator is unavailable, misconfigured or fails."""

    def __init__(self, reason: str, details: Optional[str] = None):
        super().__init__(
            message=f"Generation failed: {reason}",
            error_code="GENERATION_ERROR",
            context={"details": details} if details else {},
        )


class StorageError(ExternalServiceException):
    """Raised when the persisted-memory store is unreachable or malformed."""

    def __init__(self, reason: str, store: Optional[str] = None):
        super().__init__(
            message=f"Memory storage failed: {reason}",
            error_code="STORAGE_ERROR",
            context={"store": store} if store else {},
        )
