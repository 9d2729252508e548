"""Tests for recording fetched snapshots."""

import pytest

from etf_tracker.errors import FetchError, ValidationError
from etf_tracker.storage import MemorySnapshotStore
from etf_tracker.storage.models import Snapshot
from etf_tracker.tracking import record_snapshot, track_snapshot

from conftest import END_DATE, START_DATE, make_holding


class TestRecordSnapshot:
    def test_saves_snapshot(self, start_snapshot):
        store = MemorySnapshotStore()
        saved = record_snapshot(lambda: start_snapshot, store)
        assert saved == start_snapshot
        assert store.get(start_snapshot.date) == start_snapshot

    def test_wraps_fetcher_errors(self):
        def fetcher():
            raise ConnectionError("site down")

        store = MemorySnapshotStore()
        with pytest.raises(FetchError) as exc_info:
            record_snapshot(fetcher, store, source="issuer site")
        assert exc_info.value.source == "issuer site"
        assert isinstance(exc_info.value.__cause__, ConnectionError)
        assert store.get_available_dates() == []

    def test_tracker_errors_pass_through(self):
        def fetcher():
            raise ValidationError("bad file", field="date")

        with pytest.raises(ValidationError):
            record_snapshot(fetcher, MemorySnapshotStore())

    def test_rejects_non_snapshot(self):
        with pytest.raises(FetchError):
            record_snapshot(lambda: {"date": "2024-01-10"}, MemorySnapshotStore())


class TestTrackSnapshot:
    def test_first_snapshot_is_all_new(self, start_snapshot):
        store = MemorySnapshotStore()
        tracked = track_snapshot(lambda: start_snapshot, store)
        assert tracked.is_first
        assert tracked.previous_date is None
        assert tracked.changes.new_count == 3
        assert tracked.changes.total_changes == 3
        assert store.get(START_DATE) == start_snapshot

    def test_diffs_against_previous_date(self, start_snapshot, end_snapshot):
        store = MemorySnapshotStore()
        store.save(start_snapshot)
        tracked = track_snapshot(lambda: end_snapshot, store)
        assert tracked.previous_date == START_DATE
        assert tracked.snapshot == end_snapshot
        changes = tracked.changes
        assert (changes.start_date, changes.end_date) == (START_DATE, END_DATE)
        assert [c.stock_code for c in changes.new_additions] == ["2454"]
        assert [c.stock_code for c in changes.removals] == ["2412"]
        assert [c.stock_code for c in changes.increased] == ["2330"]
        assert [c.stock_code for c in changes.decreased] == ["2317"]
        assert changes.total_changes == 4

    def test_retracking_a_date_skips_that_date(self, start_snapshot, end_snapshot):
        store = MemorySnapshotStore()
        store.save(start_snapshot)
        store.save(end_snapshot)
        revised = Snapshot(
            date=END_DATE, holdings=(make_holding("2330", "TSMC", 1_000_000, "25.00"),)
        )
        tracked = track_snapshot(lambda: revised, store)
        assert tracked.previous_date == START_DATE
        assert [c.stock_code for c in tracked.changes.unchanged] == ["2330"]
        assert store.get(END_DATE) == revised

    def test_later_dates_are_ignored(self, start_snapshot, end_snapshot):
        store = MemorySnapshotStore()
        store.save(end_snapshot)
        tracked = track_snapshot(lambda: start_snapshot, store)
        assert tracked.is_first

    def test_fetch_failure_saves_nothing(self, start_snapshot):
        store = MemorySnapshotStore()
        store.save(start_snapshot)

        def fetcher():
            raise TimeoutError("slow")

        with pytest.raises(FetchError):
            track_snapshot(fetcher, store)
        assert store.get_available_dates() == [START_DATE]
