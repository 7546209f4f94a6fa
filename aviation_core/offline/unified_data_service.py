# =============================================================================
# aviation_core/offline/unified_data_service.py
# Offline Data Service - Single API for the UI Layer
# =============================================================================
"""
OfflineDataService - the primary API for all data operations.

Every write lands in the local store first and is marked dirty; the sync
engine pushes it whenever the backend is reachable. Reads always come from
the local store, so the app behaves the same online and offline.

Usage:
------
from aviation_core.offline import build_offline_stack

stack = build_offline_stack()
service = stack.service

entry = service.create(EntityKind.LOGBOOK_ENTRY, {"user_id": uid, "date": "2024-05-01"})
service.update(EntityKind.LOGBOOK_ENTRY, entry.id, {"block_time_minutes": 95})

print(f"Online: {service.is_online}")
print(f"Pending sync: {service.pending_sync_count}")
"""

from __future__ import annotations
import uuid
from typing import Any, Callable, Dict, List, Mapping, Optional
import logging

import pandas as pd

from aviation_core.errors import RecordNotFoundError
from aviation_core.models import Entity, EntityKind, LocalRecord, get_definition
from aviation_core.offline.connection_manager import ConnectionManager, ConnectionState
from aviation_core.offline.local_database import LocalDatabase
from aviation_core.offline.sync_engine import SyncEngine, SyncReport
from aviation_core.offline.sync_state import SyncStateTracker, utc_now

logger = logging.getLogger(__name__)


def new_id() -> str:
    """Client-generated primary key."""
    return uuid.uuid4().hex


class OfflineDataService:
    """
    Local-first data service.

    Handles:
    - Create / update / delete with sync bookkeeping
    - Reads and index queries against the local store
    - Hydration of local-only relations (approaches, reviews)
    - DataFrame import / export
    - Connection and sync status for the UI
    """

    def __init__(
        self,
        tracker: SyncStateTracker,
        connection: ConnectionManager,
        engine: SyncEngine,
    ):
        self.tracker = tracker
        self.connection = connection
        self.engine = engine
        self._callbacks: List[Callable[[bool], None]] = []
        self.connection.register_callback(self._on_connection_change)

    @property
    def store(self) -> LocalDatabase:
        return self.tracker.store

    # =========================================================================
    # PROPERTIES
    # =========================================================================

    @property
    def is_online(self) -> bool:
        """Check if currently online."""
        return self.connection.is_online

    @property
    def connection_status(self) -> str:
        """Get connection status string."""
        return self.connection.status.value

    @property
    def pending_sync_count(self) -> int:
        """Get number of records waiting to be pushed."""
        return self.tracker.pending_count()

    @property
    def last_sync(self):
        """Get last successful sync time."""
        return self.engine.state.last_sync_success

    # =========================================================================
    # STATUS CALLBACKS
    # =========================================================================

    def _on_connection_change(self, state: ConnectionState) -> None:
        """Handle connection status changes."""
        is_online = state.status.value == "online"
        logger.info(f"Connection changed: online={is_online}")

        for callback in list(self._callbacks):
            try:
                callback(is_online)
            except Exception as e:
                logger.error(f"Error in status callback: {e}")

    def register_status_callback(self, callback: Callable[[bool], None]) -> None:
        """Register a callback for online/offline status changes."""
        if callback not in self._callbacks:
            self._callbacks.append(callback)

    def unregister_status_callback(self, callback: Callable[[bool], None]) -> None:
        """Remove a registered callback."""
        if callback in self._callbacks:
            self._callbacks.remove(callback)

    # =========================================================================
    # WRITES
    # =========================================================================

    def create(self, kind: EntityKind, fields: Mapping[str, Any]) -> Entity:
        """
        Create a record locally and queue it for sync.

        Args:
            kind: Entity kind
            fields: Domain fields; ``id`` and timestamps are filled in if absent

        Returns:
            The stored entity

        Raises:
            EntityDecodeError: if a required field is missing
        """
        definition = get_definition(kind)
        now = utc_now()
        data = dict(fields)
        # Imported rows carry None for empty cells
        for name, default in (("id", new_id()), ("created_at", now), ("updated_at", now)):
            if not data.get(name):
                data[name] = default

        entity = definition.model.from_dict(data)
        self.tracker.save_with_sync(definition.kind, entity)
        logger.debug(f"Created {definition.table} {entity.id}")
        return entity

    def update(self, kind: EntityKind, record_id: str, changes: Mapping[str, Any]) -> Entity:
        """
        Merge ``changes`` into a live record and queue it for sync.

        Raises:
            RecordNotFoundError: if there is no live record with this id
        """
        definition = get_definition(kind)
        with self.store.transaction():
            record = self.store.get(definition.kind, record_id)
            if record is None:
                raise RecordNotFoundError(definition.table, record_id)

            merged = dict(changes)
            merged["updated_at"] = utc_now()
            entity = record.entity.replace(**merged)
            self.tracker.save_with_sync(definition.kind, entity)

        logger.debug(f"Updated {definition.table} {record_id}")
        return entity

    def delete(self, kind: EntityKind, record_id: str) -> None:
        """
        Delete a record locally; the delete is pushed on the next sync.

        Raises:
            RecordNotFoundError: if there is no live record with this id
        """
        self.tracker.delete_with_sync(kind, record_id)
        logger.debug(f"Deleted {get_definition(kind).table} {record_id}")

    # =========================================================================
    # READS
    # =========================================================================

    def get(self, kind: EntityKind, record_id: str) -> Optional[Entity]:
        record = self.store.get(kind, record_id)
        return record.entity if record else None

    def get_record(self, kind: EntityKind, record_id: str) -> Optional[LocalRecord]:
        """The record together with its sync envelope."""
        return self.store.get(kind, record_id)

    def list_for_user(self, kind: EntityKind, user_id: str) -> List[Entity]:
        return self.list_by(kind, "user_id", user_id)

    def list_by(self, kind: EntityKind, field: str, value: Any) -> List[Entity]:
        """Records whose indexed ``field`` equals ``value``."""
        return [record.entity for record in self.store.query_by_index(kind, field, value)]

    def logbook_entry_with_approaches(self, entry_id: str) -> Optional[Entity]:
        """Logbook entry with its approach details attached."""
        entry = self.get(EntityKind.LOGBOOK_ENTRY, entry_id)
        if entry is None:
            return None

        approaches = self.list_by(EntityKind.APPROACH_DETAIL, "logbook_entry_id", entry_id)
        return entry.replace(approach_details=[a.to_wire() for a in approaches])

    def place_with_reviews(self, place_id: str) -> Optional[Entity]:
        """Place with its reviews and their average rating attached."""
        place = self.get(EntityKind.PLACE, place_id)
        if place is None:
            return None

        reviews = self.list_by(EntityKind.PLACE_REVIEW, "place_id", place_id)
        average = None
        if reviews:
            average = round(sum(r.rating for r in reviews) / len(reviews), 1)

        return place.replace(
            reviews=[r.to_wire() for r in reviews],
            average_rating=average,
        )

    # =========================================================================
    # DATAFRAME IMPORT / EXPORT
    # =========================================================================

    def import_dataframe(self, kind: EntityKind, df: pd.DataFrame) -> List[str]:
        """
        Bulk-create records from a DataFrame (e.g. an uploaded roster).

        All rows are written in one transaction; a row missing a required
        column aborts the whole import.

        Returns:
            Ids of the imported records
        """
        definition = get_definition(kind)
        if df.empty:
            return []

        rows = LocalDatabase.dataframe_to_rows(df)
        with self.store.transaction():
            ids = [self.create(definition.kind, row).id for row in rows]

        logger.info(f"Imported {len(ids)} rows into {definition.table}")
        return ids

    def export_dataframe(self, kind: EntityKind, include_deleted: bool = False) -> pd.DataFrame:
        """Local table as a DataFrame (entity fields plus sync envelope)."""
        return self.store.to_dataframe(kind, include_deleted=include_deleted)

    # =========================================================================
    # SYNC
    # =========================================================================

    def sync_now(self) -> SyncReport:
        """Run a sync pass now (no-op while offline)."""
        return self.engine.sync_now()

    def dead_letters(self, kind: EntityKind) -> List[LocalRecord]:
        """Records that stopped being pushed after repeated failures."""
        return self.tracker.dead_letters(kind)

    def requeue_dead_letters(self, kind: EntityKind, record_ids: Optional[List[str]] = None) -> int:
        """Make dead-lettered records eligible for push again."""
        return self.tracker.requeue_dead_letters(kind, record_ids)

    def get_status_display(self) -> Dict[str, Any]:
        """
        Get comprehensive status information.

        Returns:
            Dict with status information for UI display
        """
        return {
            "connection": self.connection.get_status_display(),
            "sync": self.engine.get_status_display(),
            "pending_by_kind": {
                kind.value: count
                for kind, count in self.tracker.pending_counts().items()
                if count
            },
        }
