# =============================================================================
# aviation_core/errors/handlers.py
# Error Handling Utilities for the Aviation Offline Core
# =============================================================================

from __future__ import annotations
import traceback
from typing import Optional

from aviation_core.logging import get_logger
from .exceptions import AviationCoreError

logger = get_logger(__name__)


def handle_error(
    error: BaseException,
    log_error: bool = True,
    user_message: Optional[str] = None,
) -> dict:
    """
    Centralized error handling function.

    Args:
        error: The exception to handle
        log_error: Whether to log the error
        user_message: Custom message (uses the error message if None)

    Returns:
        Dict describing the error, suitable for a status panel
    """
    if isinstance(error, AviationCoreError):
        message = user_message or error.message
        code = error.code
        details = error.details
        recoverable = error.recoverable
    else:
        message = user_message or str(error)
        code = "UNKNOWN"
        details = {"traceback": traceback.format_exc()}
        recoverable = True

    if log_error:
        logger.error(
            f"[{code}] {message}",
            extra={"details": details},
            exc_info=(type(error), error, error.__traceback__),
        )

    return {
        "code": code,
        "message": message,
        "details": details,
        "recoverable": recoverable,
    }


class ErrorContext:
    """
    Context manager that logs failures of an operation and, when the
    operation is marked recoverable, keeps them from reaching the caller.

    Usage:
        with ErrorContext("Sync pass", recoverable=True) as ctx:
            run_pass()
        if ctx.error is not None:
            ...
    """

    def __init__(self, operation: str, recoverable: bool = True):
        self.operation = operation
        self.recoverable = recoverable
        self.error: Optional[BaseException] = None

    def __enter__(self) -> ErrorContext:
        logger.debug(f"Starting: {self.operation}")
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> bool:
        if exc_type is None:
            logger.debug(f"Completed: {self.operation}")
            return False

        # Never swallow interpreter shutdown signals
        if not issubclass(exc_type, Exception):
            return False

        self.error = exc_val
        handle_error(exc_val, user_message=f"Error during: {self.operation}")
        return self.recoverable
