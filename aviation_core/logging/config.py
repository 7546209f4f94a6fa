# =============================================================================
# aviation_core/logging/config.py
# Logging Setup for the Offline Store and Sync Engine
# =============================================================================

import logging
import sys
import time
from pathlib import Path
from datetime import date
from typing import Optional, Union


LOG_FORMAT = "%(asctime)s | %(name)s | %(levelname)s | %(message)s"
LOG_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

LOG_DIR = Path("logs")

# supabase-py logs every request through these
NOISY_LOGGERS = ("httpx", "httpcore", "hpack", "supabase", "postgrest")


def resolve_level(level: Union[int, str]) -> int:
    """Accept ``logging.DEBUG`` as well as "debug"; unknown names mean INFO."""
    if isinstance(level, int):
        return level
    resolved = logging.getLevelName(level.upper())
    return resolved if isinstance(resolved, int) else logging.INFO


def sync_log_path(day: Optional[date] = None) -> Path:
    """One file per day: logs/sync_YYYY-MM-DD.log"""
    day = day or date.today()
    return LOG_DIR / f"sync_{day.isoformat()}.log"


def setup_logging(
    level: Union[int, str] = logging.INFO,
    log_to_file: bool = False,
    log_filename: Optional[str] = None,
) -> None:
    """
    Route all log output to stdout and, optionally, a daily sync log.

    Args:
        level: Root level as an int or a name such as "DEBUG"
        log_to_file: Also write to ``sync_log_path()`` (or ``log_filename`` under logs/)
        log_filename: File name overriding the daily default
    """
    handlers = [logging.StreamHandler(sys.stdout)]

    if log_to_file:
        LOG_DIR.mkdir(exist_ok=True)
        path = LOG_DIR / log_filename if log_filename else sync_log_path()
        handlers.append(logging.FileHandler(path))

    logging.basicConfig(
        level=resolve_level(level),
        format=LOG_FORMAT,
        datefmt=LOG_DATE_FORMAT,
        handlers=handlers,
        force=True,
    )

    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    logging.getLogger("aviation_core").info("Logging initialized")


def get_logger(name: str) -> logging.Logger:
    return logging.getLogger(name)


class LogContext:
    """
    Logs the start, end and duration of an operation.

    A run that takes longer than ``slow_after`` seconds is reported at
    WARNING; a long sync pass usually means requests are hitting their timeout.

        with LogContext(logger, "Sync pass"):
            ...
        # Sync pass... started
        # Sync pass... completed (0.84s)
    """

    def __init__(self, logger: logging.Logger, operation: str, slow_after: Optional[float] = None):
        self.logger = logger
        self.operation = operation
        self.slow_after = slow_after
        self.start_time = None
        self.elapsed = 0.0

    def __enter__(self):
        self.start_time = time.monotonic()
        self.logger.info(f"{self.operation}... started")
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.elapsed = time.monotonic() - self.start_time

        if exc_type is not None:
            self.logger.error(
                f"{self.operation}... failed ({self.elapsed:.2f}s): {exc_val}",
                exc_info=True
            )
        elif self.slow_after is not None and self.elapsed > self.slow_after:
            self.logger.warning(f"{self.operation}... completed slowly ({self.elapsed:.2f}s)")
        else:
            self.logger.info(f"{self.operation}... completed ({self.elapsed:.2f}s)")

        return False
