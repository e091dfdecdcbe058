"""
Core Module

Settings, logging setup and the shared exception taxonomy.
"""

from .config import Settings, get_settings
from .exceptions import (
    CancelledException,
    GenerationFailureException,
    PersistenceWarning,
    TimeoutException,
    TokenLimitException,
    TypeMismatchException,
    ValidationException,
    WindowChainException,
)
from .logging import configure_logging

__all__ = [
    "Settings",
    "get_settings",
    "configure_logging",
    "WindowChainException",
    "ValidationException",
    "TypeMismatchException",
    "TimeoutException",
    "CancelledException",
    "GenerationFailureException",
    "TokenLimitException",
    "PersistenceWarning",
]
