# =============================================================================
# tests/integration/test_data_service.py
# Integration Tests for OfflineDataService and the Offline Stack
# =============================================================================

from unittest.mock import MagicMock

import pandas as pd
import pytest

from aviation_core.config import Settings
from aviation_core.errors import EntityDecodeError, RecordNotFoundError
from aviation_core.models import EntityKind
from aviation_core.offline import (
    OfflineDataService,
    PullSynchronizer,
    PushSynchronizer,
    StaticIdentityProvider,
    SupabaseBackend,
    SyncEngine,
    SyncStateTracker,
    build_offline_stack,
)


USER_ID = "user-1"


class TestCrud:
    """Test writes and reads through the service"""

    def test_create_assigns_id_and_timestamps(self, service, store):
        entry = service.create(EntityKind.LOGBOOK_ENTRY, {"user_id": USER_ID, "date": "2024-05-01"})

        assert len(entry.id) == 32
        assert entry.created_at == entry.updated_at
        record = store.get(EntityKind.LOGBOOK_ENTRY, entry.id)
        assert record.needs_sync is True

    def test_create_keeps_caller_id(self, service):
        doc = service.create(
            EntityKind.DOCUMENT,
            {"id": "doc-9", "user_id": USER_ID, "type": "license", "name": "ATPL"},
        )

        assert doc.id == "doc-9"

    def test_create_missing_required_field_raises(self, service):
        with pytest.raises(EntityDecodeError):
            service.create(EntityKind.DOCUMENT, {"user_id": USER_ID, "name": "ATPL"})

    def test_update_merges_and_marks_dirty(self, service, store, tracker):
        entry = service.create(EntityKind.LOGBOOK_ENTRY, {"user_id": USER_ID, "date": "2024-05-01"})
        tracker.mark_as_synced(EntityKind.LOGBOOK_ENTRY, entry.id)

        updated = service.update(EntityKind.LOGBOOK_ENTRY, entry.id, {"night_minutes": 45})

        assert updated.night_minutes == 45
        assert updated.date == "2024-05-01"
        record = store.get(EntityKind.LOGBOOK_ENTRY, entry.id)
        assert record.needs_sync is True
        assert record.synced_at is None

    def test_update_missing_raises(self, service):
        with pytest.raises(RecordNotFoundError):
            service.update(EntityKind.LOGBOOK_ENTRY, "nope", {"notes": "x"})

    def test_delete_hides_record(self, service):
        place = service.create(EntityKind.PLACE, {"user_id": USER_ID, "name": "Cafe"})

        service.delete(EntityKind.PLACE, place.id)

        assert service.get(EntityKind.PLACE, place.id) is None
        assert service.list_for_user(EntityKind.PLACE, USER_ID) == []
        with pytest.raises(RecordNotFoundError):
            service.delete(EntityKind.PLACE, place.id)

    def test_list_by_index(self, service):
        service.create(EntityKind.MANUAL, {"user_id": USER_ID, "name": "FCOM", "category": "ops"})
        service.create(EntityKind.MANUAL, {"user_id": USER_ID, "name": "QRH", "category": "abnormal"})

        manuals = service.list_by(EntityKind.MANUAL, "category", "ops")

        assert [m.name for m in manuals] == ["FCOM"]


class TestHydration:
    """Test attaching local-only relations"""

    def test_logbook_entry_with_approaches(self, service):
        entry = service.create(EntityKind.LOGBOOK_ENTRY, {"user_id": USER_ID, "date": "2024-05-01"})
        service.create(EntityKind.APPROACH_DETAIL, {"logbook_entry_id": entry.id, "approach_type": "RNP"})
        service.create(EntityKind.APPROACH_DETAIL, {"logbook_entry_id": entry.id, "approach_type": "ILS_CAT_I"})

        hydrated = service.logbook_entry_with_approaches(entry.id)

        assert [a["approach_type"] for a in hydrated.approach_details] == ["RNP", "ILS_CAT_I"]
        assert "approach_details" not in hydrated.to_wire()

    def test_place_with_reviews_averages_ratings(self, service):
        place = service.create(EntityKind.PLACE, {"user_id": USER_ID, "name": "Cafe"})
        for rating in (5, 4, 4):
            service.create(
                EntityKind.PLACE_REVIEW,
                {"place_id": place.id, "user_id": USER_ID, "rating": rating},
            )

        hydrated = service.place_with_reviews(place.id)

        assert hydrated.average_rating == 4.3
        assert len(hydrated.reviews) == 3

    def test_place_without_reviews(self, service):
        place = service.create(EntityKind.PLACE, {"user_id": USER_ID, "name": "Cafe"})

        hydrated = service.place_with_reviews(place.id)

        assert hydrated.average_rating is None
        assert hydrated.reviews == []

    def test_missing_parent_returns_none(self, service):
        assert service.logbook_entry_with_approaches("nope") is None
        assert service.place_with_reviews("nope") is None


class TestDataFrames:
    """Test roster import and table export"""

    def test_import_roster(self, service, tracker):
        roster = pd.DataFrame({
            "user_id": [USER_ID, USER_ID],
            "date_local": pd.to_datetime(["2024-05-01", "2024-05-02"]),
            "base_airport_code": ["LHR", None],
        })

        ids = service.import_dataframe(EntityKind.DUTY_DAY, roster)

        assert len(ids) == 2
        days = service.list_by(EntityKind.DUTY_DAY, "date_local", "2024-05-02")
        assert len(days) == 1
        assert days[0].base_airport_code is None
        assert tracker.pending_counts()[EntityKind.DUTY_DAY] == 2

    def test_import_is_all_or_nothing(self, service, store):
        roster = pd.DataFrame({
            "user_id": [USER_ID, None],
            "date_local": ["2024-05-01", "2024-05-02"],
        })

        with pytest.raises(EntityDecodeError):
            service.import_dataframe(EntityKind.DUTY_DAY, roster)

        assert store.count(EntityKind.DUTY_DAY) == 0

    def test_import_empty_frame(self, service):
        assert service.import_dataframe(EntityKind.DUTY_DAY, pd.DataFrame()) == []

    def test_export_dataframe(self, service):
        service.create(EntityKind.STUDY_SESSION, {"user_id": USER_ID, "mode": "flash"})

        df = service.export_dataframe(EntityKind.STUDY_SESSION)

        assert list(df["mode"]) == ["flash"]
        assert bool(df["needs_sync"].iloc[0]) is True


class TestServiceStatus:
    """Test status and sync passthroughs"""

    def test_pending_count_and_sync_now(self, service, remote):
        service.create(EntityKind.LOGBOOK_ENTRY, {"user_id": USER_ID, "date": "2024-05-01"})
        assert service.pending_sync_count == 1

        report = service.sync_now()

        assert report.ok
        assert service.pending_sync_count == 0
        assert service.last_sync is not None

    def test_status_display(self, service):
        service.create(EntityKind.DOCUMENT, {"user_id": USER_ID, "type": "visa", "name": "US C1/D"})

        status = service.get_status_display()

        assert status["connection"]["is_online"] is True
        assert status["pending_by_kind"] == {"document": 1}
        assert status["sync"]["pending_count"] == 1

    def test_status_callbacks(self, service, connection):
        seen = []
        service.register_status_callback(seen.append)

        connection.report_status(False)
        connection.report_status(True)

        assert seen == [False, True]

    def test_dead_letter_passthrough(self, store, connection, identity, remote):
        tracker = SyncStateTracker(store, max_push_attempts=1)
        engine = SyncEngine(
            tracker,
            connection,
            identity,
            pusher=PushSynchronizer(tracker, remote),
            puller=PullSynchronizer(tracker, remote),
        )
        service = OfflineDataService(tracker, connection, engine)
        entry = service.create(EntityKind.LOGBOOK_ENTRY, {"user_id": USER_ID, "date": "2024-05-01"})
        remote.fail_ids.add(entry.id)
        service.sync_now()

        assert [r.id for r in service.dead_letters(EntityKind.LOGBOOK_ENTRY)] == [entry.id]
        assert service.requeue_dead_letters(EntityKind.LOGBOOK_ENTRY) == 1


class TestOfflineStack:
    """Test the composition root"""

    def test_stack_with_injected_remote(self, tmp_path, remote, probe):
        stack = build_offline_stack(
            Settings(db_path=tmp_path / "stack.db"),
            remote=remote,
            identity=StaticIdentityProvider(USER_ID),
            probe=probe,
            start_monitoring=False,
        )
        try:
            entry = stack.service.create(
                EntityKind.LOGBOOK_ENTRY, {"user_id": USER_ID, "date": "2024-05-01"}
            )
            stack.service.sync_now()

            assert not stack.is_demo_mode
            assert remote.upserted_ids("logbook_entries") == [entry.id]
        finally:
            stack.shutdown()

    def test_demo_mode_stack_stays_local(self, tmp_path):
        stack = build_offline_stack(
            Settings(db_path=tmp_path / "demo.db"),
            probe=lambda: True,
            start_monitoring=False,
        )
        try:
            stack.service.create(EntityKind.LOGBOOK_ENTRY, {"user_id": USER_ID, "date": "2024-05-01"})
            report = stack.service.sync_now()

            assert stack.is_demo_mode
            assert report.skipped_reason == "demo mode"
            assert stack.service.pending_sync_count == 1
        finally:
            stack.shutdown()

    def test_stack_with_supabase_client(self, tmp_path, mock_supabase):
        mock_supabase.auth.get_session.return_value.user.id = USER_ID
        settings = Settings(
            supabase_url="https://abc.supabase.co",
            supabase_key="key",
            db_path=tmp_path / "live.db",
        )

        stack = build_offline_stack(
            settings,
            supabase_client=mock_supabase,
            probe=lambda: True,
            start_monitoring=False,
        )
        try:
            assert isinstance(stack.remote, SupabaseBackend)
            assert stack.engine.identity.current_user_id() == USER_ID
            mock_supabase.table.assert_any_call("duty_days")
        finally:
            stack.shutdown()

    def test_supabase_sign_in_triggers_sync(self, tmp_path, mock_supabase):
        mock_supabase.auth.get_session.return_value = None
        settings = Settings(
            supabase_url="https://abc.supabase.co",
            supabase_key="key",
            db_path=tmp_path / "signin.db",
        )
        stack = build_offline_stack(
            settings,
            supabase_client=mock_supabase,
            probe=lambda: True,
            start_monitoring=False,
        )
        try:
            stack.service.create(EntityKind.LOGBOOK_ENTRY, {"user_id": USER_ID, "date": "2024-05-01"})
            assert stack.service.pending_sync_count == 1

            session = MagicMock()
            session.user.id = USER_ID
            mock_supabase.auth.get_session.return_value = session
            handler = mock_supabase.auth.on_auth_state_change.call_args[0][0]
            handler("SIGNED_IN", session)

            mock_supabase.table.assert_any_call("logbook_entries")
            assert stack.service.pending_sync_count == 0
        finally:
            stack.shutdown()
