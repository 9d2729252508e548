"""In-memory snapshot store."""

from datetime import date

from .models import HoldingRow, Snapshot, rows_to_snapshot, snapshot_rows


class MemorySnapshotStore:
    """Snapshot store kept in a dict keyed by date.

    Follows the same placeholder and cutoff rules as the file-backed stores.
    """

    def __init__(self) -> None:
        self._rows: dict[date, list[HoldingRow]] = {}

    @property
    def is_read_only(self) -> bool:
        return False

    @property
    def data_source_info(self) -> str:
        return "In-memory"

    def close(self) -> None:
        pass

    def __enter__(self) -> "MemorySnapshotStore":
        return self

    def __exit__(self, *args) -> None:
        self.close()

    def save(self, snapshot: Snapshot) -> None:
        if snapshot is None or snapshot.date is None:
            raise ValueError("snapshot and snapshot.date are required")
        self._rows[snapshot.date] = snapshot_rows(snapshot)

    def get(self, as_of: date) -> Snapshot | None:
        rows = self._rows.get(as_of)
        if rows is None:
            return None
        return rows_to_snapshot(as_of, rows)

    def get_latest(self) -> Snapshot | None:
        dates = self.get_available_dates()
        if not dates:
            return None
        return self.get(dates[0])

    def get_available_dates(self) -> list[date]:
        return sorted(self._rows, reverse=True)

    def count_records_before(self, cutoff: date) -> int:
        return sum(len(rows) for as_of, rows in self._rows.items() if as_of <= cutoff)

    def delete_before(self, cutoff: date) -> int:
        expired = [as_of for as_of in self._rows if as_of <= cutoff]
        deleted = 0
        for as_of in expired:
            deleted += len(self._rows.pop(as_of))
        return deleted

    def get_total_record_count(self) -> int:
        return sum(len(rows) for rows in self._rows.values())
