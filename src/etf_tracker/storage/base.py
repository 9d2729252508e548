"""Snapshot store interface."""

from __future__ import annotations

from datetime import date
from typing import Protocol, runtime_checkable

from .models import Snapshot


@runtime_checkable
class SnapshotStore(Protocol):
    """Date-keyed storage of snapshots.

    Exactly one snapshot is kept per date; saving a date again replaces it.
    Writers must be serialized by the caller: stores do not guard against
    concurrent writes. Reads may run concurrently when no write is in flight.
    """

    @property
    def is_read_only(self) -> bool:
        """Whether the store rejects writes."""

    @property
    def data_source_info(self) -> str:
        """Human-readable description of the backing medium."""

    def save(self, snapshot: Snapshot) -> None:
        """Replace all data for ``snapshot.date`` with the snapshot's holdings."""

    def get(self, as_of: date) -> Snapshot | None:
        """Return the snapshot for a date, or None if it was never saved."""

    def get_latest(self) -> Snapshot | None:
        """Return the snapshot for the most recent date."""

    def get_available_dates(self) -> list[date]:
        """All saved dates, newest first."""

    def count_records_before(self, cutoff: date) -> int:
        """Number of rows dated on or before ``cutoff``."""

    def delete_before(self, cutoff: date) -> int:
        """Delete rows dated on or before ``cutoff``, returning the count."""

    def get_total_record_count(self) -> int:
        """Number of rows across all dates."""

    def close(self) -> None:
        """Release any connection held by the store."""
