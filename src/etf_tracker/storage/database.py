"""SQLite snapshot store."""

import logging
import sqlite3
from collections.abc import Iterator
from contextlib import contextmanager
from datetime import date
from pathlib import Path

from ..errors import StorageError, StorageOperation
from .models import HoldingRow, Snapshot, parse_date, rows_to_snapshot, snapshot_rows

logger = logging.getLogger(__name__)

SCHEMA_VERSION = 1

SCHEMA = """
-- Schema version tracking
CREATE TABLE IF NOT EXISTS schema_version (
    version INTEGER PRIMARY KEY
);

-- One row per (date, holding); a date saved empty has a single row with stock_code = ''
CREATE TABLE IF NOT EXISTS holdings (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    date TEXT NOT NULL,
    position INTEGER NOT NULL,
    stock_code TEXT NOT NULL,
    stock_name TEXT NOT NULL,
    shares INTEGER NOT NULL,
    weight TEXT NOT NULL,
    UNIQUE(date, stock_code)
);

CREATE INDEX IF NOT EXISTS idx_holdings_date ON holdings(date);
"""


class SqliteSnapshotStore:
    """Snapshot store backed by a single SQLite file.

    Each ``save`` and ``delete_before`` runs in one transaction. Concurrent
    writers are not supported; serialize writes in the caller.
    """

    def __init__(self, db_path: Path | str) -> None:
        self.db_path = Path(db_path)
        self._conn: sqlite3.Connection | None = None

    @property
    def is_read_only(self) -> bool:
        return False

    @property
    def data_source_info(self) -> str:
        return f"SQLite ({self.db_path})"

    def connect(self) -> None:
        """Open database connection and ensure schema exists."""
        try:
            self.db_path.parent.mkdir(parents=True, exist_ok=True)
            self._conn = sqlite3.connect(self.db_path)
            self._conn.row_factory = sqlite3.Row
            self._migrate()
        except (OSError, sqlite3.Error) as e:
            logger.error("Failed to open database %s: %s", self.db_path, e)
            self._conn = None
            raise StorageError.create_error(self.db_path) from e

    def _migrate(self) -> None:
        """Run schema migrations."""
        cursor = self._conn.cursor()

        # Check if schema_version table exists
        cursor.execute(
            "SELECT name FROM sqlite_master WHERE type='table' AND name='schema_version'"
        )
        if not cursor.fetchone():
            # Fresh database - create all tables
            cursor.executescript(SCHEMA)
            cursor.execute("INSERT INTO schema_version (version) VALUES (?)", (SCHEMA_VERSION,))
            self._conn.commit()
            logger.info("Created snapshot database %s", self.db_path)
            return

        cursor.execute("SELECT MAX(version) FROM schema_version")
        current_version = cursor.fetchone()[0] or 0

        if current_version < SCHEMA_VERSION:
            cursor.execute(
                "INSERT OR REPLACE INTO schema_version (version) VALUES (?)", (SCHEMA_VERSION,)
            )
            self._conn.commit()

    @property
    def conn(self) -> sqlite3.Connection:
        if self._conn is None:
            self.connect()
        return self._conn

    def close(self) -> None:
        """Close database connection."""
        if self._conn:
            self._conn.close()
            self._conn = None

    def __enter__(self) -> "SqliteSnapshotStore":
        return self

    def __exit__(self, *args) -> None:
        self.close()

    def _has_data_file(self) -> bool:
        return self._conn is not None or self.db_path.exists()

    @contextmanager
    def _guard(self, operation: StorageOperation) -> Iterator[None]:
        """Translate sqlite errors into StorageError for the given operation."""
        try:
            yield
        except sqlite3.Error as e:
            logger.error("Database %s failed on %s: %s", operation.value, self.db_path, e)
            raise StorageError(
                f"Database {operation.value} failed: {self.db_path}", operation, self.db_path
            ) from e

    @staticmethod
    def _parse_row(row: sqlite3.Row) -> HoldingRow | None:
        """Parse a stored row, returning None when it is malformed."""
        try:
            return HoldingRow(
                date=parse_date(row["date"]),
                stock_code=row["stock_code"] or "",
                stock_name=row["stock_name"] or "",
                shares=row["shares"],
                weight=row["weight"],
            )
        except (TypeError, ValueError) as e:
            logger.warning("Skipping malformed row id=%s: %s", row["id"], e)
            return None

    def _count_by_date(self) -> dict[date, list[tuple[str, int]]]:
        """Map each parseable stored date to its raw spellings and their row counts."""
        cursor = self.conn.cursor()
        cursor.execute("SELECT date, COUNT(*) AS n FROM holdings GROUP BY date")
        counts: dict[date, list[tuple[str, int]]] = {}
        for row in cursor.fetchall():
            try:
                as_of = parse_date(row["date"])
            except (TypeError, ValueError):
                logger.warning("Skipping rows with malformed date %r", row["date"])
                continue
            counts.setdefault(as_of, []).append((row["date"], row["n"]))
        return counts

    # Snapshot operations

    def save(self, snapshot: Snapshot) -> None:
        """Replace all rows for the snapshot's date."""
        if snapshot is None or snapshot.date is None:
            raise ValueError("snapshot and snapshot.date are required")
        rows = snapshot_rows(snapshot)
        date_str = snapshot.date.isoformat()
        logger.info(
            "Saving snapshot %s (%d holdings) to %s",
            date_str,
            snapshot.total_count,
            self.db_path,
        )
        with self._guard(StorageOperation.WRITE):
            with self.conn:
                self.conn.execute("DELETE FROM holdings WHERE date = ?", (date_str,))
                self.conn.executemany(
                    """
                    INSERT INTO holdings (date, position, stock_code, stock_name, shares, weight)
                    VALUES (?, ?, ?, ?, ?, ?)
                    """,
                    [
                        (date_str, i, r.stock_code, r.stock_name, r.shares, str(r.weight))
                        for i, r in enumerate(rows)
                    ],
                )

    def get(self, as_of: date) -> Snapshot | None:
        """Get the snapshot for a date, or None if the date was never saved."""
        if not self._has_data_file():
            return None
        with self._guard(StorageOperation.READ):
            cursor = self.conn.cursor()
            cursor.execute(
                "SELECT * FROM holdings WHERE date = ? ORDER BY position, id",
                (as_of.isoformat(),),
            )
            raw_rows = cursor.fetchall()
        if not raw_rows:
            return None
        rows = [r for r in (self._parse_row(raw) for raw in raw_rows) if r is not None]
        return rows_to_snapshot(as_of, rows)

    def get_latest(self) -> Snapshot | None:
        """Get the snapshot for the most recent date."""
        dates = self.get_available_dates()
        if not dates:
            return None
        return self.get(dates[0])

    def get_available_dates(self) -> list[date]:
        """Get all saved dates, newest first."""
        if not self._has_data_file():
            return []
        with self._guard(StorageOperation.READ):
            counts = self._count_by_date()
        return sorted(counts, reverse=True)

    def count_records_before(self, cutoff: date) -> int:
        """Count rows dated on or before the cutoff."""
        if not self._has_data_file():
            return 0
        with self._guard(StorageOperation.READ):
            counts = self._count_by_date()
        return sum(
            n for as_of, spellings in counts.items() if as_of <= cutoff for _, n in spellings
        )

    def delete_before(self, cutoff: date) -> int:
        """Delete rows dated on or before the cutoff, returning the count."""
        if not self._has_data_file():
            return 0
        with self._guard(StorageOperation.DELETE):
            counts = self._count_by_date()
            expired = [
                raw for as_of, spellings in counts.items() if as_of <= cutoff for raw, _ in spellings
            ]
            deleted = 0
            with self.conn:
                for raw in expired:
                    cursor = self.conn.execute("DELETE FROM holdings WHERE date = ?", (raw,))
                    deleted += cursor.rowcount
        logger.info("Deleted %d rows dated on or before %s", deleted, cutoff)
        return deleted

    def get_total_record_count(self) -> int:
        """Count rows across all dates."""
        if not self._has_data_file():
            return 0
        with self._guard(StorageOperation.READ):
            cursor = self.conn.cursor()
            cursor.execute("SELECT COUNT(*) FROM holdings")
            return cursor.fetchone()[0]
