# =============================================================================
# aviation_core/models/records.py
# LocalRecord - an entity plus its sync envelope
# =============================================================================

from __future__ import annotations
from dataclasses import dataclass
from typing import Any, Dict, Optional

from aviation_core.models.entities import Entity


@dataclass
class LocalRecord:
    """
    What the local store actually holds for every row.

    needs_sync:      local edits not yet acknowledged by the backend
    synced_at:       ISO timestamp of the last successful push or pull
    deleted:         tombstone waiting to be pushed as a remote delete
    revision:        bumped on every local mutation; guards mark-as-synced
    sync_attempts:   failed pushes since the last success
    last_sync_error: message of the most recent failed push
    """
    entity: Entity
    needs_sync: bool = False
    synced_at: Optional[str] = None
    deleted: bool = False
    revision: int = 0
    sync_attempts: int = 0
    last_sync_error: Optional[str] = None

    @property
    def id(self) -> str:
        return self.entity.id

    def to_dict(self) -> Dict[str, Any]:
        """Flattened view (entity fields plus envelope) for display/export."""
        data = self.entity.to_dict()
        data.update(
            needs_sync=self.needs_sync,
            synced_at=self.synced_at,
            deleted=self.deleted,
            revision=self.revision,
            sync_attempts=self.sync_attempts,
            last_sync_error=self.last_sync_error,
        )
        return data
