"""Flat-table snapshot store kept in a single CSV file."""

import logging
from datetime import date
from pathlib import Path

import pandas as pd

from ..errors import StorageError, StorageOperation
from .exports import COLUMNS, normalize_columns, parse_frame_row, snapshot_to_dataframe
from .models import HoldingRow, Snapshot, parse_date, rows_to_snapshot

logger = logging.getLogger(__name__)


def _try_parse_date(value: object) -> date | None:
    try:
        return parse_date(str(value))
    except ValueError:
        return None


class TableSnapshotStore:
    """Snapshot store using the flat table layout.

    Columns, in order: date, stock_code, stock_name, shares, weight. Every
    write reads the whole file, changes it in memory and rewrites it.
    Concurrent writers can lose updates; serialize writes in the caller.
    Rows with an unparseable date are kept on rewrite but never read.
    """

    def __init__(self, path: Path | str) -> None:
        self.path = Path(path)

    @property
    def is_read_only(self) -> bool:
        return False

    @property
    def data_source_info(self) -> str:
        return f"CSV table ({self.path})"

    def close(self) -> None:
        pass

    def __enter__(self) -> "TableSnapshotStore":
        return self

    def __exit__(self, *args) -> None:
        self.close()

    def _read_frame(self) -> pd.DataFrame:
        """Load the whole table as strings, with a parsed ``_date`` column."""
        if not self.path.exists():
            return pd.DataFrame(columns=[*COLUMNS, "_date"])
        try:
            df = pd.read_csv(self.path, dtype=str, keep_default_na=False)
        except pd.errors.EmptyDataError:
            return pd.DataFrame(columns=[*COLUMNS, "_date"])
        except (OSError, pd.errors.ParserError, UnicodeDecodeError) as e:
            logger.error("Failed to read %s: %s", self.path, e)
            raise StorageError.read_error(self.path) from e

        df = normalize_columns(df)
        missing = set(COLUMNS) - set(df.columns)
        if missing:
            logger.error("%s is missing columns: %s", self.path, ", ".join(sorted(missing)))
            raise StorageError.read_error(self.path)
        df = df[COLUMNS].copy()
        df["_date"] = df["date"].map(_try_parse_date)
        return df

    def _write_frame(
        self, df: pd.DataFrame, operation: StorageOperation = StorageOperation.WRITE
    ) -> None:
        """Rewrite the whole table file, tagging failures with the operation."""
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise StorageError.create_error(self.path.parent) from e
        tmp_path = self.path.with_name(self.path.name + ".tmp")
        try:
            df[COLUMNS].to_csv(tmp_path, index=False)
            tmp_path.replace(self.path)
        except OSError as e:
            logger.error("Failed to %s %s: %s", operation.value, self.path, e)
            if operation is StorageOperation.DELETE:
                raise StorageError.delete_error(self.path) from e
            raise StorageError.write_error(self.path) from e

    @staticmethod
    def _expired_mask(df: pd.DataFrame, cutoff: date) -> pd.Series:
        return df["_date"].map(lambda d: isinstance(d, date) and d <= cutoff).astype(bool)

    @staticmethod
    def _date_mask(df: pd.DataFrame, as_of: date) -> pd.Series:
        return df["_date"].map(lambda d: d == as_of).astype(bool)

    def save(self, snapshot: Snapshot) -> None:
        if snapshot is None or snapshot.date is None:
            raise ValueError("snapshot and snapshot.date are required")
        df = self._read_frame()
        kept = df[~self._date_mask(df, snapshot.date)]
        new_rows = snapshot_to_dataframe(snapshot)
        frames = [frame for frame in (kept[COLUMNS], new_rows) if not frame.empty]
        result = pd.concat(frames, ignore_index=True) if frames else new_rows
        logger.info(
            "Saving snapshot %s (%d holdings) to %s",
            snapshot.date,
            snapshot.total_count,
            self.path,
        )
        self._write_frame(result)

    def get(self, as_of: date) -> Snapshot | None:
        df = self._read_frame()
        matching = df[self._date_mask(df, as_of)]
        if matching.empty:
            return None
        rows: list[HoldingRow] = []
        for index, record in zip(matching.index, matching.to_dict("records")):
            try:
                rows.append(parse_frame_row(record))
            except (TypeError, ValueError) as e:
                logger.warning("Skipping malformed row %d in %s: %s", index, self.path, e)
        return rows_to_snapshot(as_of, rows)

    def get_latest(self) -> Snapshot | None:
        dates = self.get_available_dates()
        if not dates:
            return None
        return self.get(dates[0])

    def get_available_dates(self) -> list[date]:
        df = self._read_frame()
        return sorted({d for d in df["_date"] if isinstance(d, date)}, reverse=True)

    def count_records_before(self, cutoff: date) -> int:
        df = self._read_frame()
        if df.empty:
            return 0
        return int(self._expired_mask(df, cutoff).sum())

    def delete_before(self, cutoff: date) -> int:
        df = self._read_frame()
        if df.empty:
            return 0
        mask = self._expired_mask(df, cutoff)
        deleted = int(mask.sum())
        if deleted:
            self._write_frame(df[~mask], StorageOperation.DELETE)
        logger.info("Deleted %d rows dated on or before %s", deleted, cutoff)
        return deleted

    def get_total_record_count(self) -> int:
        return len(self._read_frame())
