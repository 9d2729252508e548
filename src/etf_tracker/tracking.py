"""Record snapshots produced by a fetcher and track what changed."""

import logging
from collections.abc import Callable
from dataclasses import dataclass
from datetime import date

from .analysis.diff import RangeCompareResult, compare_snapshots
from .errors import FetchError, TrackerError
from .storage.base import SnapshotStore
from .storage.models import Snapshot

logger = logging.getLogger(__name__)

# Anything returning parsed holdings, e.g. a scraper or a CSV reader
Fetcher = Callable[[], Snapshot]


@dataclass
class TrackingResult:
    """A recorded snapshot and its changes since the previous stored date."""

    snapshot: Snapshot
    previous_date: date | None
    changes: RangeCompareResult

    @property
    def is_first(self) -> bool:
        return self.previous_date is None


def _fetch(fetcher: Fetcher, source: str | None) -> Snapshot:
    try:
        snapshot = fetcher()
    except TrackerError:
        raise
    except Exception as e:
        logger.error("Fetching holdings from %s failed: %s", source or "fetcher", e)
        raise FetchError(f"Failed to fetch holdings: {e}", source=source) from e

    if not isinstance(snapshot, Snapshot):
        raise FetchError(
            f"Fetcher returned {type(snapshot).__name__}, expected Snapshot", source=source
        )
    return snapshot


def _previous_snapshot(store: SnapshotStore, as_of: date) -> Snapshot | None:
    """The stored snapshot for the latest date strictly before ``as_of``."""
    for stored in store.get_available_dates():
        if stored < as_of:
            return store.get(stored)
    return None


def record_snapshot(fetcher: Fetcher, store: SnapshotStore, source: str | None = None) -> Snapshot:
    """
    Fetch a snapshot and save it, replacing any snapshot for the same date.

    Args:
        fetcher: Callable producing the snapshot
        store: Store to save into
        source: Name of the data source, for error messages

    Returns:
        The saved snapshot

    Raises:
        FetchError: If the fetcher fails or returns something other than a Snapshot
        TrackerError: Tracker errors raised by the fetcher pass through unchanged
        StorageError: If the snapshot cannot be saved
    """
    snapshot = _fetch(fetcher, source)
    store.save(snapshot)
    logger.info("Recorded %d holdings for %s", snapshot.total_count, snapshot.date)
    return snapshot


def track_snapshot(
    fetcher: Fetcher, store: SnapshotStore, source: str | None = None
) -> TrackingResult:
    """
    Fetch and save a snapshot, then diff it against the previous stored date.

    With no earlier date stored, every holding counts as a new addition.
    Re-tracking the same date compares against the date before it, not
    against the snapshot being replaced.
    """
    snapshot = _fetch(fetcher, source)
    previous = _previous_snapshot(store, snapshot.date)
    store.save(snapshot)

    start = previous if previous is not None else Snapshot(date=snapshot.date)
    changes = compare_snapshots(start, snapshot)
    logger.info(
        "Tracked %s against %s: %d changes",
        snapshot.date,
        previous.date if previous is not None else "nothing",
        changes.total_changes,
    )
    return TrackingResult(
        snapshot=snapshot,
        previous_date=previous.date if previous is not None else None,
        changes=changes,
    )
