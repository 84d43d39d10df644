"""
Core utilities and infrastructure for Token Reducer.
"""

from core.exceptions import (
    TokenReducerException,
    ValidationException,
    RangeError,
    EmptyRangeError,
    InvalidInputError,
    ConfigurationError,
    ExternalServiceException,
    GenerationError,
    StorageError,
)
from core.logging_config import configure_logging, get_logger

__all__ = [
    "TokenReducerException",
    "ValidationException",
    "RangeError",
    "EmptyRangeError",
    "InvalidInputError",
    "ConfigurationError",
    "ExternalServiceException",
    "GenerationError",
    "StorageError",
    "configure_logging",
    "get_logger",
]
