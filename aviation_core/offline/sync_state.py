# =============================================================================
# aviation_core/offline/sync_state.py
# Sync-State Tracking on top of the Local Database
# =============================================================================
"""
SyncStateTracker - the only code that flips ``needs_sync``.

Rules:
- ``needs_sync`` goes False -> True only through a local mutation
  (save_with_sync / delete_with_sync).
- It goes True -> False only through mark_as_synced, after the backend
  acknowledged the exact revision that was pushed.
- Remote data is written only through save_from_remote, which refuses to
  touch a dirty row.
"""

from __future__ import annotations
from datetime import datetime, timezone
from typing import Callable, Dict, List, Optional
import logging

from aviation_core.errors import RecordNotFoundError
from aviation_core.models import ENTITY_DEFINITIONS, Entity, EntityKind, LocalRecord, get_definition
from aviation_core.offline.local_database import LocalDatabase

logger = logging.getLogger(__name__)


def utc_now() -> str:
    """Current UTC time as an ISO-8601 string."""
    return datetime.now(timezone.utc).isoformat()


class SyncStateTracker:
    """
    Sync bookkeeping for every stored record.

    Usage:
        tracker = SyncStateTracker(store)
        tracker.save_with_sync(EntityKind.LOGBOOK_ENTRY, entry)
        for record in tracker.list_dirty(EntityKind.LOGBOOK_ENTRY):
            ...
            tracker.mark_as_synced(EntityKind.LOGBOOK_ENTRY, record.id, record.revision)
    """

    def __init__(
        self,
        store: LocalDatabase,
        max_push_attempts: Optional[int] = None,
        clock: Callable[[], str] = utc_now,
    ):
        """
        Args:
            store: Local database holding the records
            max_push_attempts: Failed pushes before a record is dead-lettered
                (None = retry on every pass forever)
            clock: Returns the timestamp written to ``synced_at``
        """
        self.store = store
        self.max_push_attempts = max_push_attempts
        self._clock = clock

    # =========================================================================
    # LOCAL MUTATIONS
    # =========================================================================

    def save_with_sync(self, kind: EntityKind, entity: Entity) -> str:
        """
        Store a locally created or edited entity and mark it dirty.

        Returns:
            The entity id
        """
        with self.store.transaction():
            existing = self.store.get(kind, entity.id, include_deleted=True)
            revision = existing.revision + 1 if existing else 1
            self.store.put(
                kind,
                LocalRecord(
                    entity=entity,
                    needs_sync=True,
                    synced_at=None,
                    deleted=False,
                    revision=revision,
                ),
            )
        return entity.id

    def delete_with_sync(self, kind: EntityKind, record_id: str) -> None:
        """
        Turn a live record into a dirty tombstone.

        Raises:
            RecordNotFoundError: if there is no live record with this id
        """
        with self.store.transaction():
            record = self.store.get(kind, record_id)
            if record is None:
                raise RecordNotFoundError(get_definition(kind).table, record_id)
            self.store.update(
                kind,
                record_id,
                {
                    "deleted": True,
                    "needs_sync": True,
                    "synced_at": None,
                    "revision": record.revision + 1,
                    "sync_attempts": 0,
                    "last_sync_error": None,
                },
            )

    # =========================================================================
    # PUSH BOOKKEEPING
    # =========================================================================

    def list_dirty(self, kind: EntityKind, include_dead_letters: bool = False) -> List[LocalRecord]:
        """
        Records of ``kind`` with unsynced local changes, tombstones included.

        Dead-lettered records stay dirty but are left out unless asked for.
        """
        dirty = self.store.query_by_index(kind, "needs_sync", True, include_deleted=True)
        if include_dead_letters or not self.max_push_attempts:
            return dirty
        return [r for r in dirty if r.sync_attempts < self.max_push_attempts]

    def mark_as_synced(self, kind: EntityKind, record_id: str, revision: Optional[int] = None) -> bool:
        """
        Record a confirmed push.

        When ``revision`` is given and the stored record has moved on since
        (edited while the push was in flight), the record stays dirty so the
        newer edit is pushed next pass. Acknowledged tombstones are purged.

        Returns:
            True if the record is now clean (or purged)
        """
        with self.store.transaction():
            record = self.store.get(kind, record_id, include_deleted=True)
            if record is None:
                return False
            if revision is not None and record.revision != revision:
                logger.debug(
                    f"{get_definition(kind).table} {record_id} changed during push "
                    f"(rev {revision} -> {record.revision}); keeping it dirty"
                )
                return False
            if record.deleted:
                self.store.delete(kind, record_id)
                return True
            self.store.update(
                kind,
                record_id,
                {
                    "needs_sync": False,
                    "synced_at": self._clock(),
                    "sync_attempts": 0,
                    "last_sync_error": None,
                },
            )
        return True

    def record_push_failure(self, kind: EntityKind, record_id: str, error: str) -> int:
        """
        Count a failed push. The record stays dirty.

        Returns:
            Failed attempts so far (0 if the record vanished meanwhile)
        """
        with self.store.transaction():
            record = self.store.get(kind, record_id, include_deleted=True)
            if record is None:
                return 0
            attempts = record.sync_attempts + 1
            self.store.update(
                kind,
                record_id,
                {"sync_attempts": attempts, "last_sync_error": error[:500]},
            )

        if self.max_push_attempts and attempts >= self.max_push_attempts:
            logger.warning(
                f"{get_definition(kind).table} {record_id} dead-lettered after {attempts} failed pushes"
            )
        return attempts

    def dead_letters(self, kind: EntityKind) -> List[LocalRecord]:
        """Dirty records that exhausted the push budget."""
        if not self.max_push_attempts:
            return []
        return [
            r for r in self.list_dirty(kind, include_dead_letters=True)
            if r.sync_attempts >= self.max_push_attempts
        ]

    def requeue_dead_letters(self, kind: EntityKind, record_ids: Optional[List[str]] = None) -> int:
        """
        Give dead-lettered records a fresh push budget.

        Args:
            kind: Entity kind
            record_ids: Specific ids to requeue, or None for all

        Returns:
            Number of records requeued
        """
        requeued = 0
        with self.store.transaction():
            for record in self.dead_letters(kind):
                if record_ids is not None and record.id not in record_ids:
                    continue
                self.store.update(kind, record.id, {"sync_attempts": 0, "last_sync_error": None})
                requeued += 1
        return requeued

    # =========================================================================
    # PULL BOOKKEEPING
    # =========================================================================

    def save_from_remote(self, kind: EntityKind, entity: Entity) -> bool:
        """
        Overwrite the local copy with remote data unless it is dirty.

        Returns:
            True if written, False if skipped because of unsynced local edits
        """
        with self.store.transaction():
            local = self.store.get(kind, entity.id, include_deleted=True)
            if local is not None and local.needs_sync:
                return False
            self.store.put(
                kind,
                LocalRecord(
                    entity=entity,
                    needs_sync=False,
                    synced_at=self._clock(),
                    revision=local.revision if local else 0,
                ),
            )
        return True

    # =========================================================================
    # STATUS
    # =========================================================================

    def pending_counts(self) -> Dict[EntityKind, int]:
        """Dirty-record count per kind."""
        return {kind: self.store.count(kind, dirty_only=True) for kind in ENTITY_DEFINITIONS}

    def pending_count(self) -> int:
        """Total dirty records across all kinds."""
        return sum(self.pending_counts().values())
