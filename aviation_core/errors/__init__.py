# =============================================================================
# aviation_core/errors/__init__.py
# Centralized Error Handling for the Aviation Offline Core
# =============================================================================

from .exceptions import (
    AviationCoreError,
    LocalStoreError,
    RecordNotFoundError,
    RemoteSyncError,
    EntityDecodeError,
    ConfigurationError,
)

from .handlers import (
    handle_error,
    ErrorContext,
)

__all__ = [
    # Exceptions
    "AviationCoreError",
    "LocalStoreError",
    "RecordNotFoundError",
    "RemoteSyncError",
    "EntityDecodeError",
    "ConfigurationError",
    # Handlers
    "handle_error",
    "ErrorContext",
]
