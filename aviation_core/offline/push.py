# =============================================================================
# aviation_core/offline/push.py
# Push Synchronizer - drains dirty local records to the backend
# =============================================================================

from __future__ import annotations
from dataclasses import dataclass, field
from typing import List, Optional
import logging

from aviation_core.models import EntityKind, get_definition
from aviation_core.offline.remote import RemoteBackend
from aviation_core.offline.sync_state import SyncStateTracker

logger = logging.getLogger(__name__)


@dataclass
class PushResult:
    """Outcome of pushing one entity kind."""
    kind: EntityKind
    attempted: int = 0
    pushed: int = 0
    deleted: int = 0
    superseded: int = 0     # acknowledged, but edited again meanwhile
    failed: int = 0
    failed_ids: List[str] = field(default_factory=list)
    error: Optional[str] = None  # the whole kind failed before/while iterating

    @property
    def ok(self) -> bool:
        return self.failed == 0 and self.error is None


class PushSynchronizer:
    """
    Sends every dirty record of a kind to the backend, one upsert (or delete,
    for tombstones) per record. A failed record stays dirty and does not stop
    the rest of the batch.
    """

    def __init__(self, tracker: SyncStateTracker, remote: RemoteBackend):
        self.tracker = tracker
        self.remote = remote

    def push_kind(self, kind: EntityKind) -> PushResult:
        definition = get_definition(kind)
        result = PushResult(kind=definition.kind)

        for record in self.tracker.list_dirty(definition.kind):
            result.attempted += 1
            try:
                if record.deleted:
                    self.remote.delete(definition.table, record.id)
                else:
                    self.remote.upsert(definition.table, record.entity.to_wire(), on_conflict="id")
            except Exception as e:
                logger.error(f"Failed to sync {definition.table} record {record.id}: {e}")
                self.tracker.record_push_failure(definition.kind, record.id, str(e))
                result.failed += 1
                result.failed_ids.append(record.id)
                continue

            if not self.tracker.mark_as_synced(definition.kind, record.id, revision=record.revision):
                result.superseded += 1
            elif record.deleted:
                result.deleted += 1
            else:
                result.pushed += 1

        if result.attempted:
            logger.info(
                f"Pushed {definition.table}: {result.pushed} upserted, {result.deleted} deleted, "
                f"{result.failed} failed"
            )
        return result
