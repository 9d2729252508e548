"""Retention cleanup of old snapshots."""

import logging
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta

from ..config import Config
from ..errors import StorageError, ValidationError
from ..storage.base import SnapshotStore

logger = logging.getLogger(__name__)


@dataclass
class CleanupResult:
    """Outcome of one cleanup run."""

    success: bool
    message: str
    deleted_records: int = 0
    cutoff_date: date | None = None
    remaining_records: int = 0
    remaining_days: int = 0
    executed_at: datetime = field(default_factory=datetime.now)

    @classmethod
    def failure(cls, message: str, cutoff_date: date | None = None) -> "CleanupResult":
        return cls(success=False, message=message, cutoff_date=cutoff_date)


@dataclass
class CleanupPreview:
    """What a cleanup with the same arguments would remove."""

    cutoff_date: date
    dates: list[date]
    record_count: int

    @property
    def date_count(self) -> int:
        return len(self.dates)


@dataclass
class CleanupStatistics:
    """Stored dates split by the default retention cutoff."""

    total_dates: int
    expired_dates: int
    valid_dates: int
    oldest_date: date | None
    newest_date: date | None

    @property
    def has_expired_data(self) -> bool:
        return self.expired_dates > 0

    @property
    def data_span_days(self) -> int:
        if self.oldest_date is None or self.newest_date is None:
            return 0
        return (self.newest_date - self.oldest_date).days


class CleanupService:
    """
    Deletes snapshots older than a retention window.

    Keeping N days deletes every date on or before ``today - N``. Keeping
    0 days deletes today as well.
    """

    def __init__(self, store: SnapshotStore, config: Config) -> None:
        self.store = store
        self.config = config

    @property
    def default_retention_days(self) -> int:
        return self.config.retention_days

    def cutoff_for(self, days_to_keep: int, today: date | None = None) -> date:
        """Get the cutoff date for a retention window."""
        if days_to_keep < 0:
            raise ValidationError(
                f"days_to_keep cannot be negative: {days_to_keep}",
                field="days_to_keep",
                value=days_to_keep,
            )
        return (today or date.today()) - timedelta(days=days_to_keep)

    def cleanup(self, days_to_keep: int | None = None, today: date | None = None) -> CleanupResult:
        """
        Delete every snapshot dated on or before the cutoff.

        Args:
            days_to_keep: Retention window, defaults to the configured one
            today: Reference date, defaults to the current date

        Returns:
            CleanupResult; storage failures give an unsuccessful result

        Raises:
            ValidationError: If days_to_keep is negative
        """
        if days_to_keep is None:
            days_to_keep = self.default_retention_days
        cutoff = self.cutoff_for(days_to_keep, today)
        logger.info("Cleaning up snapshots, keeping %d days (cutoff %s)", days_to_keep, cutoff)

        try:
            deleted = self.store.delete_before(cutoff)
            remaining_records = self.store.get_total_record_count()
            remaining_days = len(self.store.get_available_dates())
        except StorageError as e:
            logger.error("Cleanup failed: %s", e)
            return CleanupResult.failure(f"Cleanup failed: {e}", cutoff_date=cutoff)

        logger.info("Cleanup deleted %d rows, %d dates remain", deleted, remaining_days)
        return CleanupResult(
            success=True,
            message=f"Deleted {deleted} rows dated on or before {cutoff.isoformat()}",
            deleted_records=deleted,
            cutoff_date=cutoff,
            remaining_records=remaining_records,
            remaining_days=remaining_days,
        )

    def confirm_and_cleanup(
        self, days_to_keep: int | None, confirmed: bool, today: date | None = None
    ) -> CleanupResult:
        """Run cleanup only when the caller confirmed it."""
        if not confirmed:
            logger.warning("Cleanup was not confirmed, nothing deleted")
            return CleanupResult.failure("Cleanup must be confirmed")
        return self.cleanup(days_to_keep, today)

    def preview(self, days_to_keep: int | None = None, today: date | None = None) -> CleanupPreview:
        """List the dates and count the rows that cleanup would delete."""
        if days_to_keep is None:
            days_to_keep = self.default_retention_days
        cutoff = self.cutoff_for(days_to_keep, today)
        dates = [d for d in self.store.get_available_dates() if d <= cutoff]
        record_count = self.store.count_records_before(cutoff)
        logger.debug("Cleanup preview: %d dates, %d rows (cutoff %s)", len(dates), record_count, cutoff)
        return CleanupPreview(cutoff_date=cutoff, dates=dates, record_count=record_count)

    def statistics(self, today: date | None = None) -> CleanupStatistics:
        """Summarize stored dates against the default retention window."""
        dates = self.store.get_available_dates()
        if not dates:
            return CleanupStatistics(0, 0, 0, None, None)

        cutoff = self.cutoff_for(self.default_retention_days, today)
        expired = sum(1 for d in dates if d <= cutoff)
        return CleanupStatistics(
            total_dates=len(dates),
            expired_dates=expired,
            valid_dates=len(dates) - expired,
            oldest_date=dates[-1],
            newest_date=dates[0],
        )
