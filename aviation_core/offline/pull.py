# =============================================================================
# aviation_core/offline/pull.py
# Pull Synchronizer - refreshes the local store from the backend
# =============================================================================

from __future__ import annotations
from dataclasses import dataclass
from typing import Iterable, List, Optional
import logging

from aviation_core.errors import EntityDecodeError
from aviation_core.models import EntityKind, PullPolicy, get_definition, pulled_kinds
from aviation_core.offline.remote import RemoteBackend
from aviation_core.offline.sync_state import SyncStateTracker

logger = logging.getLogger(__name__)


@dataclass
class PullResult:
    """Outcome of pulling one entity kind."""
    kind: EntityKind
    fetched: int = 0
    merged: int = 0
    skipped_dirty: int = 0
    skipped_invalid: int = 0
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.error is None


class PullSynchronizer:
    """
    Fetches the most recently updated page of each pulled kind and merges it
    into the local store. Rows whose local copy is dirty are left alone; this
    is a recent-window refresh, not a full replication.
    """

    def __init__(
        self,
        tracker: SyncStateTracker,
        remote: RemoteBackend,
        default_page_size: int = 1000,
    ):
        self.tracker = tracker
        self.remote = remote
        self.default_page_size = default_page_size

    def pull_kind(self, kind: EntityKind, user_id: Optional[str] = None) -> PullResult:
        definition = get_definition(kind)
        policy = definition.pull or PullPolicy()
        page_size = policy.page_size or self.default_page_size
        result = PullResult(kind=definition.kind)

        if policy.user_scoped and not user_id:
            result.error = "no user id for a user-scoped pull"
            logger.debug(f"Skipping pull of {definition.table}: {result.error}")
            return result

        try:
            rows = self.remote.select(
                definition.table,
                user_id=user_id if policy.user_scoped else None,
                order_by="updated_at",
                limit=page_size,
            )
        except Exception as e:
            result.error = str(e)
            logger.warning(f"Pull of {definition.table} failed, keeping local data: {e}")
            return result

        for row in rows[:page_size]:
            result.fetched += 1
            try:
                entity = definition.model.from_dict(row)
            except EntityDecodeError as e:
                result.skipped_invalid += 1
                logger.warning(f"Ignoring remote {definition.table} row {row.get('id')}: {e}")
                continue

            if self.tracker.save_from_remote(definition.kind, entity):
                result.merged += 1
            else:
                result.skipped_dirty += 1
                logger.debug(f"Kept dirty local {definition.table} {entity.id} over remote copy")

        logger.info(f"Pulled {result.merged} of {result.fetched} records from {definition.table}")
        return result

    def pull_all(
        self,
        user_id: Optional[str] = None,
        kinds: Optional[Iterable[EntityKind]] = None,
    ) -> List[PullResult]:
        """Pull each kind in turn; one kind failing does not stop the others."""
        results = []
        for kind in kinds or pulled_kinds():
            try:
                results.append(self.pull_kind(kind, user_id=user_id))
            except Exception as e:
                logger.error(f"Error pulling {get_definition(kind).table}: {e}", exc_info=True)
                results.append(PullResult(kind=EntityKind(kind), error=str(e)))
        return results
