# =============================================================================
# aviation_core/offline/connection_manager.py
# Connection Status Detection and Management
# =============================================================================
"""
ConnectionManager - tracks whether the backend is reachable.

Two ways to feed it:
- ``report_status(online)`` from the platform's online/offline events
- ``check_connection()`` probes (also run periodically by the monitor thread)

Every status change is broadcast to registered callbacks together with the
previous status, so listeners can react to specific transitions (the sync
engine reacts to "became online").
"""

from __future__ import annotations
import socket
import threading
from dataclasses import dataclass, replace
from datetime import datetime
from enum import Enum
from typing import Callable, List, Optional
from urllib.parse import urlparse
import logging

logger = logging.getLogger(__name__)


class ConnectionStatus(Enum):
    """Connection status states."""
    ONLINE = "online"
    OFFLINE = "offline"
    UNKNOWN = "unknown"         # Initial state


@dataclass
class ConnectionState:
    """Current connection state with metadata."""
    status: ConnectionStatus = ConnectionStatus.UNKNOWN
    previous_status: ConnectionStatus = ConnectionStatus.UNKNOWN
    last_check: Optional[datetime] = None
    last_online: Optional[datetime] = None
    consecutive_failures: int = 0
    error_message: Optional[str] = None

    @property
    def came_online(self) -> bool:
        return (
            self.status == ConnectionStatus.ONLINE
            and self.previous_status != ConnectionStatus.ONLINE
        )


class ConnectionManager:
    """
    Online/offline state machine for the sync engine.

    Usage:
        manager = ConnectionManager(supabase_url=settings.supabase_url)
        manager.initialize()
        if manager.is_online:
            ...
    """

    # Configuration
    CHECK_INTERVAL_ONLINE = 30      # Seconds between checks when online
    CHECK_INTERVAL_OFFLINE = 10     # Seconds between checks when offline
    CONNECTION_TIMEOUT = 5          # Timeout for connection tests

    INTERNET_HOSTS = [
        ("8.8.8.8", 53),            # Google DNS
        ("1.1.1.1", 53),            # Cloudflare DNS
        ("208.67.222.222", 53),     # OpenDNS
    ]

    def __init__(
        self,
        supabase_url: str = "",
        probe: Optional[Callable[[], bool]] = None,
    ):
        """
        Args:
            supabase_url: Backend URL whose host is probed
            probe: Replacement reachability check (returns True when online)
        """
        self.supabase_url = supabase_url
        self._probe = probe or self._default_probe
        self._state = ConnectionState()
        self._state_lock = threading.Lock()
        self._callbacks: List[Callable[[ConnectionState], None]] = []
        self._monitor_thread: Optional[threading.Thread] = None
        self._stop_monitoring = threading.Event()
        self._initialized = False

    @property
    def state(self) -> ConnectionState:
        """Get current connection state."""
        return self._state

    @property
    def status(self) -> ConnectionStatus:
        """Get current status."""
        return self._state.status

    @property
    def is_online(self) -> bool:
        """Check if the backend is reachable."""
        return self._state.status == ConnectionStatus.ONLINE

    @property
    def is_offline(self) -> bool:
        """Check if we're offline (unknown counts as not online, not offline)."""
        return self._state.status == ConnectionStatus.OFFLINE

    def initialize(self, start_monitoring: bool = True) -> None:
        """
        Initialize the connection manager.

        Args:
            start_monitoring: Whether to start background monitoring
        """
        if self._initialized:
            return

        self.check_connection()

        if start_monitoring:
            self.start_monitoring()

        self._initialized = True
        logger.info(f"ConnectionManager initialized. Status: {self._state.status.value}")

    # =========================================================================
    # STATUS UPDATES
    # =========================================================================

    def check_connection(self) -> ConnectionState:
        """
        Probe connectivity and update state.

        Returns:
            Updated ConnectionState
        """
        try:
            online = bool(self._probe())
        except Exception as e:
            self._state.error_message = str(e)
            logger.debug(f"Connection probe failed: {e}")
            online = False

        return self._set_online(online)

    def report_status(self, online: bool) -> ConnectionState:
        """Feed a platform online/offline event into the state machine."""
        return self._set_online(online)

    def _set_online(self, online: bool) -> ConnectionState:
        with self._state_lock:
            old_status = self._state.status
            new_status = ConnectionStatus.ONLINE if online else ConnectionStatus.OFFLINE
            self._state.last_check = datetime.now()

            if online:
                self._state.last_online = self._state.last_check
                self._state.consecutive_failures = 0
                self._state.error_message = None
            else:
                self._state.consecutive_failures += 1

            changed = old_status != new_status
            self._state.previous_status = old_status
            self._state.status = new_status
            snapshot = replace(self._state)

        # Notify outside the lock; callbacks may run a whole sync pass
        if changed:
            logger.info(f"Connection status changed: {old_status.value} -> {new_status.value}")
            self._notify_callbacks(snapshot)

        return snapshot

    def force_offline(self) -> None:
        """Force offline mode (for testing or user preference)."""
        self._set_online(False)
        logger.info("Forced offline mode")

    # =========================================================================
    # PROBES
    # =========================================================================

    def _default_probe(self) -> bool:
        """Internet reachable and, if configured, the Supabase host too."""
        if not self._check_internet():
            return False
        if not self.supabase_url:
            return True
        return self._check_supabase()

    def _check_internet(self) -> bool:
        """
        Check internet connectivity by attempting to reach well-known hosts.

        Returns:
            True if internet is available
        """
        for host, port in self.INTERNET_HOSTS:
            if self._can_connect(host, port):
                return True
        return False

    def _check_supabase(self) -> bool:
        """
        Check Supabase connectivity.

        Returns:
            True if the Supabase host accepts connections
        """
        parsed = urlparse(self.supabase_url)
        if not parsed.hostname:
            self._state.error_message = f"Invalid Supabase URL: {self.supabase_url}"
            return False
        return self._can_connect(parsed.hostname, parsed.port or 443)

    def _can_connect(self, host: str, port: int) -> bool:
        try:
            with socket.create_connection((host, port), timeout=self.CONNECTION_TIMEOUT):
                return True
        except OSError as e:
            logger.debug(f"Cannot reach {host}:{port}: {e}")
            return False

    # =========================================================================
    # MONITORING
    # =========================================================================

    def start_monitoring(self) -> None:
        """Start background connection monitoring."""
        if self._monitor_thread is not None and self._monitor_thread.is_alive():
            return

        self._stop_monitoring.clear()
        self._monitor_thread = threading.Thread(
            target=self._monitoring_loop,
            daemon=True,
            name="ConnectionMonitor"
        )
        self._monitor_thread.start()
        logger.debug("Connection monitoring started")

    def stop_monitoring(self) -> None:
        """Stop background connection monitoring."""
        self._stop_monitoring.set()
        if self._monitor_thread:
            self._monitor_thread.join(timeout=5)
        logger.debug("Connection monitoring stopped")

    def _monitoring_loop(self) -> None:
        """Background monitoring loop."""
        while not self._stop_monitoring.is_set():
            interval = (
                self.CHECK_INTERVAL_ONLINE
                if self.is_online
                else self.CHECK_INTERVAL_OFFLINE
            )

            if self._stop_monitoring.wait(timeout=interval):
                break

            try:
                self.check_connection()
            except Exception as e:
                logger.error(f"Error in connection check: {e}")

    # =========================================================================
    # CALLBACKS
    # =========================================================================

    def register_callback(self, callback: Callable[[ConnectionState], None]) -> None:
        """
        Register a callback for connection status changes.

        Args:
            callback: Function called with ConnectionState when status changes
        """
        if callback not in self._callbacks:
            self._callbacks.append(callback)

    def unregister_callback(self, callback: Callable[[ConnectionState], None]) -> None:
        """Remove a registered callback."""
        if callback in self._callbacks:
            self._callbacks.remove(callback)

    def _notify_callbacks(self, state: ConnectionState) -> None:
        """Notify all registered callbacks with a snapshot of the change."""
        for callback in list(self._callbacks):
            try:
                callback(state)
            except Exception as e:
                logger.error(f"Error in connection callback: {e}", exc_info=True)

    def get_status_display(self) -> dict:
        """Get status information for UI display."""
        return {
            "status": self._state.status.value,
            "is_online": self.is_online,
            "last_check": self._state.last_check.isoformat() if self._state.last_check else None,
            "last_online": self._state.last_online.isoformat() if self._state.last_online else None,
            "failures": self._state.consecutive_failures,
            "error": self._state.error_message,
        }
