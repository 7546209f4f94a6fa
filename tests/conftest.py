# =============================================================================
# tests/conftest.py
# Pytest Configuration and Fixtures
# =============================================================================

import copy
from typing import Any, Dict, List, Optional, Set, Tuple
from unittest.mock import MagicMock

import pytest

from aviation_core.errors import RemoteSyncError
from aviation_core.models import LogbookEntry, Document, Place
from aviation_core.offline.connection_manager import ConnectionManager
from aviation_core.offline.local_database import LocalDatabase
from aviation_core.offline.pull import PullSynchronizer
from aviation_core.offline.push import PushSynchronizer
from aviation_core.offline.remote import RemoteBackend, StaticIdentityProvider
from aviation_core.offline.sync_engine import SyncEngine
from aviation_core.offline.sync_state import SyncStateTracker
from aviation_core.offline.unified_data_service import OfflineDataService


USER_ID = "user-1"


# =============================================================================
# FAKES
# =============================================================================

class FakeRemote(RemoteBackend):
    """
    In-memory backend. Records every call and can be told to fail.

    fail_ids:          record ids whose upsert/delete raises
    fail_tables:       tables whose upsert/delete raises for every record
    fail_select_tables: tables whose select raises
    """

    def __init__(self):
        self.tables: Dict[str, Dict[str, Dict[str, Any]]] = {}
        self.upserts: List[Tuple[str, Dict[str, Any]]] = []
        self.deletes: List[Tuple[str, str]] = []
        self.selects: List[Dict[str, Any]] = []
        self.fail_ids: Set[str] = set()
        self.fail_tables: Set[str] = set()
        self.fail_select_tables: Set[str] = set()

    @property
    def call_count(self) -> int:
        return len(self.upserts) + len(self.deletes) + len(self.selects)

    def seed(self, table: str, rows: List[Dict[str, Any]]) -> None:
        for row in rows:
            self.tables.setdefault(table, {})[row["id"]] = copy.deepcopy(row)

    def _check_write(self, table: str, record_id: str, operation: str) -> None:
        if table in self.fail_tables or record_id in self.fail_ids:
            raise RemoteSyncError(
                f"{operation} rejected",
                table=table,
                record_id=record_id,
                operation=operation,
            )

    def upsert(self, table: str, record: Dict[str, Any], on_conflict: str = "id") -> None:
        self.upserts.append((table, copy.deepcopy(record)))
        self._check_write(table, record["id"], "upsert")
        self.tables.setdefault(table, {})[record[on_conflict]] = copy.deepcopy(record)

    def delete(self, table: str, record_id: str) -> None:
        self.deletes.append((table, record_id))
        self._check_write(table, record_id, "delete")
        self.tables.get(table, {}).pop(record_id, None)

    def select(
        self,
        table: str,
        user_id: Optional[str] = None,
        order_by: str = "updated_at",
        limit: int = 1000,
    ) -> List[Dict[str, Any]]:
        self.selects.append({"table": table, "user_id": user_id, "limit": limit})
        if table in self.fail_select_tables:
            raise RemoteSyncError("select failed", table=table, operation="select")

        rows = list(self.tables.get(table, {}).values())
        if user_id:
            rows = [r for r in rows if r.get("user_id") == user_id]
        rows.sort(key=lambda r: r.get(order_by) or "", reverse=True)
        return copy.deepcopy(rows[:limit])

    def upserted_ids(self, table: str) -> List[str]:
        return [record["id"] for t, record in self.upserts if t == table]


class ManualProbe:
    """Connectivity probe the test flips by hand."""

    def __init__(self, online: bool = True):
        self.online = online
        self.calls = 0

    def __call__(self) -> bool:
        self.calls += 1
        return self.online


# =============================================================================
# SAMPLE DATA
# =============================================================================

def make_logbook_entry(entry_id: str = "entry-1", **overrides) -> LogbookEntry:
    data = {
        "id": entry_id,
        "user_id": USER_ID,
        "date": "2024-05-01",
        "aircraft_type": "A320",
        "from_airport": "LHR",
        "to_airport": "MAD",
        "block_time_minutes": 140,
        "updated_at": "2024-05-01T12:00:00+00:00",
    }
    data.update(overrides)
    return LogbookEntry.from_dict(data)


def make_document(doc_id: str = "doc-1", **overrides) -> Document:
    data = {
        "id": doc_id,
        "user_id": USER_ID,
        "type": "medical",
        "name": "Class 1 Medical",
        "expiry_date": "2025-01-31",
        "updated_at": "2024-05-01T12:00:00+00:00",
    }
    data.update(overrides)
    return Document.from_dict(data)


def make_place(place_id: str = "place-1", **overrides) -> Place:
    data = {
        "id": place_id,
        "user_id": USER_ID,
        "name": "Crew Noodle Bar",
        "category": "food",
        "updated_at": "2024-05-01T12:00:00+00:00",
    }
    data.update(overrides)
    return Place.from_dict(data)


@pytest.fixture
def entry_factory():
    return make_logbook_entry


@pytest.fixture
def document_factory():
    return make_document


@pytest.fixture
def place_factory():
    return make_place


# =============================================================================
# STORE / SYNC FIXTURES
# =============================================================================

@pytest.fixture
def store(tmp_path):
    """Fresh on-disk SQLite store per test"""
    db = LocalDatabase(tmp_path / "aviation.db")
    db.initialize()
    yield db
    db.close()


@pytest.fixture
def tracker(store):
    return SyncStateTracker(store)


@pytest.fixture
def remote():
    return FakeRemote()


@pytest.fixture
def probe():
    return ManualProbe(online=True)


@pytest.fixture
def connection(probe):
    """Connection manager driven by the manual probe (no monitor thread)"""
    manager = ConnectionManager(probe=probe)
    manager.initialize(start_monitoring=False)
    return manager


@pytest.fixture
def identity():
    return StaticIdentityProvider(USER_ID)


@pytest.fixture
def engine(tracker, connection, identity, remote):
    return SyncEngine(
        tracker,
        connection,
        identity,
        pusher=PushSynchronizer(tracker, remote),
        puller=PullSynchronizer(tracker, remote),
    )


@pytest.fixture
def service(tracker, connection, engine):
    return OfflineDataService(tracker, connection, engine)


# =============================================================================
# MOCK FIXTURES
# =============================================================================

@pytest.fixture
def mock_supabase():
    """Mock Supabase client"""
    mock_client = MagicMock()
    table = mock_client.table.return_value
    table.select.return_value.eq.return_value.order.return_value.limit.return_value.execute.return_value.data = []
    table.select.return_value.order.return_value.limit.return_value.execute.return_value.data = []
    table.upsert.return_value.execute.return_value = MagicMock()
    table.delete.return_value.eq.return_value.execute.return_value = MagicMock()
    return mock_client
