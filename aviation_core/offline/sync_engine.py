# =============================================================================
# aviation_core/offline/sync_engine.py
# Sync Orchestration - push everything, then pull
# =============================================================================
"""
SyncEngine - runs full bidirectional sync passes.

A pass:
1. returns immediately when offline, in demo mode, or without a signed-in user
2. pushes every entity kind concurrently and waits for all of them to settle
3. pulls the user-scoped and reference kinds
4. logs any unexpected failure instead of raising it

Passes are triggered when the connection comes back online, when a user signs
in while online, once at start-up if already online, or explicitly via
``sync_now()``. A request that arrives during a pass is coalesced into one
follow-up pass.
"""

from __future__ import annotations
import threading
from concurrent.futures import ThreadPoolExecutor, wait
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Callable, Dict, Iterable, List, Optional
import logging

from aviation_core.errors import ErrorContext
from aviation_core.logging import LogContext
from aviation_core.models import ENTITY_DEFINITIONS, EntityKind
from aviation_core.offline.connection_manager import ConnectionManager, ConnectionState
from aviation_core.offline.pull import PullResult, PullSynchronizer
from aviation_core.offline.push import PushResult, PushSynchronizer
from aviation_core.offline.remote import IdentityProvider
from aviation_core.offline.sync_state import SyncStateTracker

logger = logging.getLogger(__name__)

LAST_SYNC_SETTING = "last_sync_success"
SLOW_PASS_SECONDS = 60


@dataclass
class SyncState:
    """Current sync state."""
    is_syncing: bool = False
    last_sync: Optional[datetime] = None
    last_sync_success: Optional[datetime] = None
    pending_count: int = 0
    failed_count: int = 0
    total_synced: int = 0


@dataclass
class SyncReport:
    """What one sync invocation did."""
    started_at: datetime = field(default_factory=datetime.now)
    finished_at: Optional[datetime] = None
    skipped_reason: Optional[str] = None
    push: List[PushResult] = field(default_factory=list)
    pull: List[PullResult] = field(default_factory=list)
    error: Optional[str] = None

    @property
    def ran(self) -> bool:
        return self.skipped_reason is None

    @property
    def pushed(self) -> int:
        return sum(r.pushed + r.deleted for r in self.push)

    @property
    def push_failures(self) -> int:
        return sum(r.failed for r in self.push) + sum(1 for r in self.push if r.error)

    @property
    def pulled(self) -> int:
        return sum(r.merged for r in self.pull)

    @property
    def ok(self) -> bool:
        return (
            self.ran
            and self.error is None
            and all(r.ok for r in self.push)
            and all(r.ok for r in self.pull)
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "ran": self.ran,
            "skipped_reason": self.skipped_reason,
            "pushed": self.pushed,
            "push_failures": self.push_failures,
            "pulled": self.pulled,
            "error": self.error,
        }


class SyncEngine:
    """
    Orchestrates push and pull between the local store and the backend.

    Usage:
        engine = SyncEngine(tracker, connection, identity, pusher, puller)
        engine.start()      # listen for reconnects, initial pass if online
        engine.sync_now()   # explicit pass
    """

    def __init__(
        self,
        tracker: SyncStateTracker,
        connection: ConnectionManager,
        identity: IdentityProvider,
        pusher: Optional[PushSynchronizer] = None,
        puller: Optional[PullSynchronizer] = None,
        push_kinds: Optional[Iterable[EntityKind]] = None,
        max_workers: Optional[int] = None,
    ):
        """
        Args:
            tracker: Sync-state tracker over the local store
            connection: Online/offline state machine
            identity: Source of the signed-in user id
            pusher / puller: Synchronizers; both None in demo mode
            push_kinds: Kinds pushed each pass (default: all)
            max_workers: Threads used for concurrent pushes (default: one per kind)
        """
        self.tracker = tracker
        self.connection = connection
        self.identity = identity
        self.pusher = pusher
        self.puller = puller
        self.push_kinds = list(push_kinds or ENTITY_DEFINITIONS)
        self.max_workers = max_workers or len(self.push_kinds)

        self._state = SyncState()
        self._sync_lock = threading.Lock()
        self._rerun_requested = False
        self._callbacks: List[Callable[[SyncState], None]] = []
        self._started = False

        stored = self.tracker.store.get_setting(LAST_SYNC_SETTING)
        if stored:
            try:
                self._state.last_sync_success = datetime.fromisoformat(stored)
            except (TypeError, ValueError):
                logger.debug(f"Ignoring unreadable {LAST_SYNC_SETTING}: {stored!r}")

    @property
    def state(self) -> SyncState:
        """Get current sync state."""
        return self._state

    @property
    def is_syncing(self) -> bool:
        """Check if sync is in progress."""
        return self._state.is_syncing

    @property
    def is_demo_mode(self) -> bool:
        return self.pusher is None

    @property
    def pending_count(self) -> int:
        """Get count of dirty records."""
        return self.tracker.pending_count()

    # =========================================================================
    # TRIGGERS
    # =========================================================================

    def start(self) -> None:
        """Listen for reconnects and sign-ins; run an initial pass if already online."""
        if self._started:
            return

        self.connection.register_callback(self._on_connection_change)
        self.identity.register_session_callback(self.on_session_started)
        self._started = True
        logger.info("SyncEngine started")

        if self.connection.is_online and self.identity.current_user_id():
            self.sync_now()

    def stop(self) -> None:
        """Stop reacting to connection changes."""
        self.connection.unregister_callback(self._on_connection_change)
        self.identity.unregister_session_callback(self.on_session_started)
        self._started = False
        logger.info("SyncEngine stopped")

    def _on_connection_change(self, state: ConnectionState) -> None:
        """Handle connection status changes."""
        if state.came_online:
            logger.info("Connection restored, triggering sync")
            self.sync_now()

    def on_session_started(self, user_id: str) -> None:
        """A user signed in; sync right away if online."""
        if self.connection.is_online:
            logger.info("User session established, triggering sync")
            self.sync_now()

    # =========================================================================
    # SYNC PASS
    # =========================================================================

    def sync_now(self) -> SyncReport:
        """
        Perform one full sync pass. Never raises.

        Returns:
            SyncReport (``skipped_reason`` set when nothing was attempted)
        """
        report = SyncReport()

        if not self.connection.is_online:
            return self._skip(report, "offline")
        if self.is_demo_mode:
            return self._skip(report, "demo mode")

        user_id = self.identity.current_user_id()
        if not user_id:
            return self._skip(report, "no user session")

        if not self._sync_lock.acquire(blocking=False):
            self._rerun_requested = True
            return self._skip(report, "sync already running")

        self._rerun_requested = False
        try:
            self._state.is_syncing = True
            self._state.last_sync = report.started_at
            self._notify_callbacks()

            with ErrorContext("Sync pass") as boundary:
                with LogContext(logger, "Sync pass", slow_after=SLOW_PASS_SECONDS):
                    report.push = self._push_all()
                    report.pull = self.puller.pull_all(user_id=user_id) if self.puller else []
            if boundary.error is not None:
                report.error = str(boundary.error)

            with ErrorContext("Recording sync outcome") as recording:
                self._record_outcome(report)
            if recording.error is not None and report.error is None:
                report.error = str(recording.error)
        finally:
            report.finished_at = datetime.now()
            self._state.is_syncing = False
            self._sync_lock.release()
            self._notify_callbacks()

        # Set only while the lock is held, so no request is missed here
        if self._rerun_requested:
            logger.info("Sync requested during the pass, running again")
            return self.sync_now()

        return report

    def _skip(self, report: SyncReport, reason: str) -> SyncReport:
        logger.debug(f"Skipping sync: {reason}")
        report.skipped_reason = reason
        report.finished_at = datetime.now()
        return report

    def _push_all(self) -> List[PushResult]:
        """Push every kind concurrently; collect each outcome, failed or not."""
        with ThreadPoolExecutor(max_workers=self.max_workers, thread_name_prefix="SyncPush") as pool:
            futures = [(kind, pool.submit(self.pusher.push_kind, kind)) for kind in self.push_kinds]
            wait([future for _, future in futures])

        results = []
        for kind, future in futures:
            error = future.exception()
            if error is not None:
                logger.error(f"Push of {kind.value} failed: {error}", exc_info=error)
                results.append(PushResult(kind=kind, error=str(error)))
            else:
                results.append(future.result())
        return results

    def _record_outcome(self, report: SyncReport) -> None:
        self._state.total_synced += report.pushed
        self._state.failed_count = report.push_failures
        self._state.pending_count = self.tracker.pending_count()

        logger.info(
            f"Sync complete: {report.pushed} pushed, {report.push_failures} failed, "
            f"{report.pulled} pulled"
        )

        if report.ok:
            now = datetime.now()
            self._state.last_sync_success = now
            self.tracker.store.set_setting(LAST_SYNC_SETTING, now.isoformat())

    # =========================================================================
    # CALLBACKS / STATUS
    # =========================================================================

    def register_callback(self, callback: Callable[[SyncState], None]) -> None:
        """Register a callback for sync state changes."""
        if callback not in self._callbacks:
            self._callbacks.append(callback)

    def unregister_callback(self, callback: Callable[[SyncState], None]) -> None:
        """Remove a registered callback."""
        if callback in self._callbacks:
            self._callbacks.remove(callback)

    def _notify_callbacks(self) -> None:
        """Notify all registered callbacks."""
        for callback in list(self._callbacks):
            try:
                callback(self._state)
            except Exception as e:
                logger.error(f"Error in sync callback: {e}")

    def get_status_display(self) -> Dict[str, Any]:
        """Get sync status for UI display."""
        return {
            "is_syncing": self._state.is_syncing,
            "demo_mode": self.is_demo_mode,
            "last_sync": self._state.last_sync.isoformat() if self._state.last_sync else None,
            "last_success": self._state.last_sync_success.isoformat() if self._state.last_sync_success else None,
            "pending_count": self.pending_count,
            "failed_count": self._state.failed_count,
            "total_synced": self._state.total_synced,
        }
