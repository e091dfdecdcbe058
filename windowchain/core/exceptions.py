"""
windowchain Exceptions

Error taxonomy shared by the cache, pipeline and generation layers.
Every error carries a stable error code and a details mapping so callers
can branch on kind without parsing messages.
"""

from typing import Any, Dict, Optional


class WindowChainException(Exception):
    """Base exception for all library errors."""

    def __init__(
        self,
        message: str,
        error_code: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        self.message = message
        self.error_code = error_code
        self.details = details or {}
        super().__init__(self.message)


class ValidationException(WindowChainException):
    """Raised when a template value is missing or fails schema validation."""

    def __init__(self, message: str, field: Optional[str] = None):
        details = {}
        if field:
            details["field"] = field

        super().__init__(
            message=message, error_code="VALIDATION_ERROR", details=details
        )


class TypeMismatchException(WindowChainException):
    """Raised when an array-only step receives a non-array input."""

    def __init__(self, operation: str, received: Any):
        super().__init__(
            message=f"{operation} requires array input",
            error_code="TYPE_MISMATCH",
            details={"operation": operation, "received_type": type(received).__name__},
        )


class TimeoutException(WindowChainException, TimeoutError):
    """Raised when a step does not finish before its deadline."""

    def __init__(self, timeout_seconds: float, step: Optional[str] = None):
        details: Dict[str, Any] = {"timeout_seconds": timeout_seconds}
        if step:
            details["step"] = step

        super().__init__(
            message=f"Operation timed out after {timeout_seconds}s",
            error_code="TIMEOUT",
            details=details,
        )


class CancelledException(WindowChainException):
    """Raised when a cooperative cancellation signal fires.

    Never retried and never wrapped into another error type.
    """

    def __init__(self, message: str = "Operation was cancelled"):
        super().__init__(message=message, error_code="CANCELLED")


class GenerationFailureException(WindowChainException):
    """Raised when the generation collaborator fails for any other reason."""

    def __init__(self, message: str, original_error: Optional[Exception] = None):
        details = {}
        if original_error:
            details["original_error"] = str(original_error)
            details["original_error_type"] = type(original_error).__name__

        super().__init__(
            message=message, error_code="GENERATION_FAILURE", details=details
        )
        # Preserve exception context for debugging (exception chaining)
        if original_error:
            self.__cause__ = original_error


class TokenLimitException(WindowChainException):
    """Raised when a prompt would exceed the tracked token budget."""

    def __init__(self, used: int, requested: int, limit: int):
        super().__init__(
            message="Token limit would be exceeded",
            error_code="TOKEN_LIMIT",
            details={"used": used, "requested": requested, "limit": limit},
        )


class PersistenceWarning(UserWarning):
    """Non-fatal cache persistence problem.

    Emitted through ``warnings.warn`` and logged; never raised to callers.
    """
