"""Tests for retention cleanup."""

from datetime import date, timedelta

import pytest

from etf_tracker.analysis.cleanup import CleanupService, CleanupStatistics
from etf_tracker.config import Config
from etf_tracker.errors import StorageError, ValidationError
from etf_tracker.storage import MemorySnapshotStore
from etf_tracker.storage.models import Snapshot

from conftest import make_holding

TODAY = date(2024, 4, 1)


def seed(store, *days_ago: int) -> None:
    for n in days_ago:
        as_of = TODAY - timedelta(days=n)
        store.save(Snapshot(date=as_of, holdings=(make_holding("2330", "TSMC", 1000, "10"),)))


@pytest.fixture
def service(store, config) -> CleanupService:
    config.retention_days = 10
    return CleanupService(store, config)


class TestCutoff:
    def test_cutoff(self, service):
        assert service.cutoff_for(10, today=TODAY) == date(2024, 3, 22)
        assert service.cutoff_for(0, today=TODAY) == TODAY

    def test_negative_days(self, service):
        with pytest.raises(ValidationError) as exc_info:
            service.cutoff_for(-1, today=TODAY)
        assert exc_info.value.field == "days_to_keep"

    def test_default_retention(self, service):
        assert service.default_retention_days == 10


class TestCleanup:
    def test_deletes_on_and_before_cutoff(self, service, store):
        seed(store, 20, 10, 9, 0)
        result = service.cleanup(today=TODAY)
        assert result.success
        assert result.cutoff_date == TODAY - timedelta(days=10)
        assert result.deleted_records == 2
        assert result.remaining_days == 2
        assert result.remaining_records == 2
        assert store.get_available_dates() == [TODAY, TODAY - timedelta(days=9)]

    def test_explicit_days(self, service, store):
        seed(store, 5, 1)
        result = service.cleanup(days_to_keep=3, today=TODAY)
        assert result.deleted_records == 1
        assert store.get_available_dates() == [TODAY - timedelta(days=1)]

    def test_nothing_to_delete(self, service, store):
        seed(store, 1)
        result = service.cleanup(today=TODAY)
        assert result.success
        assert result.deleted_records == 0
        assert result.remaining_days == 1

    def test_negative_days_raises(self, service):
        with pytest.raises(ValidationError):
            service.cleanup(days_to_keep=-5, today=TODAY)

    def test_storage_failure_is_a_failed_result(self, config):
        class FailingStore(MemorySnapshotStore):
            def delete_before(self, cutoff):
                raise StorageError.delete_error("/data/holdings.db")

        result = CleanupService(FailingStore(), config).cleanup(days_to_keep=1, today=TODAY)
        assert not result.success
        assert result.deleted_records == 0
        assert "delete" in result.message

    def test_unconfirmed_does_nothing(self, service, store):
        seed(store, 30)
        result = service.confirm_and_cleanup(1, confirmed=False, today=TODAY)
        assert not result.success
        assert store.get_total_record_count() == 1

    def test_confirmed(self, service, store):
        seed(store, 30)
        result = service.confirm_and_cleanup(1, confirmed=True, today=TODAY)
        assert result.success
        assert store.get_total_record_count() == 0


class TestPreview:
    def test_matches_cleanup_boundary(self, service, store):
        seed(store, 20, 10, 9)
        store.save(Snapshot(date=TODAY - timedelta(days=15)))
        preview = service.preview(today=TODAY)
        assert preview.dates == [TODAY - timedelta(days=10), TODAY - timedelta(days=15), TODAY - timedelta(days=20)]
        assert preview.record_count == 3
        assert preview.date_count == 3
        # Preview does not delete
        assert len(store.get_available_dates()) == 4
        assert service.cleanup(today=TODAY).deleted_records == preview.record_count


class TestStatistics:
    def test_empty(self, service):
        stats = service.statistics(today=TODAY)
        assert stats == CleanupStatistics(0, 0, 0, None, None)
        assert not stats.has_expired_data
        assert stats.data_span_days == 0

    def test_counts(self, service, store):
        seed(store, 30, 10, 2)
        stats = service.statistics(today=TODAY)
        assert stats.total_dates == 3
        assert stats.expired_dates == 2
        assert stats.valid_dates == 1
        assert stats.oldest_date == TODAY - timedelta(days=30)
        assert stats.newest_date == TODAY - timedelta(days=2)
        assert stats.has_expired_data
        assert stats.data_span_days == 28


def test_uses_config_retention(tmp_path):
    config = Config(base_dir=tmp_path, retention_days=0)
    store = MemorySnapshotStore()
    seed(store, 0)
    assert CleanupService(store, config).cleanup(today=TODAY).deleted_records == 1
