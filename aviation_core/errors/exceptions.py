# =============================================================================
# aviation_core/errors/exceptions.py
# Custom Exception Hierarchy for the Aviation Offline Core
# =============================================================================

from typing import Optional, Dict, Any


class AviationCoreError(Exception):
    """
    Base exception for all offline-core errors.

    Attributes:
        message: Human-readable error description
        code: Machine-readable error code (e.g., "STORE_002")
        details: Additional context as a dictionary
        recoverable: Whether the error can be recovered from
    """

    def __init__(
        self,
        message: str,
        code: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
        recoverable: bool = True,
    ):
        super().__init__(message)
        self.message = message
        self.code = code or "AV_000"
        self.details = details or {}
        self.recoverable = recoverable

    def __str__(self) -> str:
        base = f"[{self.code}] {self.message}"
        if self.details:
            base += f" | Details: {self.details}"
        return base

    def to_dict(self) -> Dict[str, Any]:
        """Convert exception to dictionary for logging/serialization"""
        return {
            "error_type": self.__class__.__name__,
            "code": self.code,
            "message": self.message,
            "details": self.details,
            "recoverable": self.recoverable,
        }


# =============================================================================
# LOCAL STORE EXCEPTIONS
# =============================================================================

class LocalStoreError(AviationCoreError):
    """Raised when the on-device store cannot complete an operation"""

    def __init__(
        self,
        message: str,
        table: Optional[str] = None,
        record_id: Optional[str] = None,
        **kwargs,
    ):
        details = kwargs.pop("details", {})
        if table:
            details["table"] = table
        if record_id:
            details["record_id"] = record_id
        kwargs.setdefault("code", "STORE_001")

        super().__init__(message=message, details=details, **kwargs)


class RecordNotFoundError(LocalStoreError):
    """Raised when a record id does not exist in its local table"""

    def __init__(self, table: str, record_id: str, **kwargs):
        super().__init__(
            message=f"No record '{record_id}' in {table}",
            table=table,
            record_id=record_id,
            code="STORE_002",
            **kwargs,
        )


# =============================================================================
# SYNC EXCEPTIONS
# =============================================================================

class RemoteSyncError(AviationCoreError):
    """Raised when the remote backend rejects or fails a push/pull call"""

    def __init__(
        self,
        message: str,
        table: Optional[str] = None,
        record_id: Optional[str] = None,
        operation: Optional[str] = None,
        **kwargs,
    ):
        details = kwargs.pop("details", {})
        if table:
            details["table"] = table
        if record_id:
            details["record_id"] = record_id
        if operation:
            details["operation"] = operation

        super().__init__(
            message=message,
            code="SYNC_001",
            details=details,
            **kwargs,
        )


# =============================================================================
# DATA EXCEPTIONS
# =============================================================================

class EntityDecodeError(AviationCoreError):
    """Raised when a row cannot be turned into its entity dataclass"""

    def __init__(
        self,
        message: str,
        kind: Optional[str] = None,
        missing: Optional[list] = None,
        **kwargs,
    ):
        details = kwargs.pop("details", {})
        if kind:
            details["kind"] = kind
        if missing:
            details["missing"] = missing

        super().__init__(
            message=message,
            code="DATA_001",
            details=details,
            **kwargs,
        )


# =============================================================================
# CONFIGURATION EXCEPTIONS
# =============================================================================

class ConfigurationError(AviationCoreError):
    """Raised when configuration is invalid or missing"""

    def __init__(
        self,
        message: str,
        config_key: Optional[str] = None,
        expected_type: Optional[str] = None,
        **kwargs,
    ):
        details = kwargs.pop("details", {})
        if config_key:
            details["config_key"] = config_key
        if expected_type:
            details["expected_type"] = expected_type

        super().__init__(
            message=message,
            code="CONFIG_001",
            details=details,
            recoverable=False,
            **kwargs,
        )
