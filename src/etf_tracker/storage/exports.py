"""Convert snapshots to and from tables, and export them to CSV and Parquet."""

import logging
import re
from datetime import date
from pathlib import Path

import pandas as pd

from ..errors import StorageError, ValidationError
from .base import SnapshotStore
from .models import (
    Holding,
    HoldingRow,
    Snapshot,
    parse_date,
    rows_to_snapshot,
    snapshot_rows,
)

logger = logging.getLogger(__name__)

# Column order of the persisted flat table
COLUMNS = ["date", "stock_code", "stock_name", "shares", "weight"]

COLUMN_MAP = {
    "code": "stock_code",
    "stockcode": "stock_code",
    "stock_id": "stock_code",
    "ticker": "stock_code",
    "name": "stock_name",
    "stockname": "stock_name",
    "company": "stock_name",
    "weight_(%)": "weight",
    "weight(%)": "weight",
    "weight%": "weight",
    "as_of": "date",
}


def normalize_columns(df: pd.DataFrame) -> pd.DataFrame:
    """Normalize column names to the persisted snake_case names."""
    columns = []
    for raw in df.columns:
        key = str(raw).strip().lower()
        key = re.sub(r"[ /]", "_", key)
        key = COLUMN_MAP.get(key, key)
        columns.append(key)
    df = df.copy()
    df.columns = columns
    return df


def rows_to_dataframe(rows: list[HoldingRow]) -> pd.DataFrame:
    """Convert persisted rows to a string-valued DataFrame."""
    return pd.DataFrame(
        [
            {
                "date": r.date.isoformat(),
                "stock_code": r.stock_code,
                "stock_name": r.stock_name,
                "shares": str(r.shares),
                "weight": str(r.weight),
            }
            for r in rows
        ],
        columns=COLUMNS,
    )


def snapshot_to_dataframe(snapshot: Snapshot) -> pd.DataFrame:
    """Convert a snapshot to the flat table layout.

    An empty snapshot yields its single placeholder row.
    """
    return rows_to_dataframe(snapshot_rows(snapshot))


def parse_frame_row(record: dict) -> HoldingRow:
    """Parse one table record, raising ValueError when malformed."""
    return HoldingRow(
        date=parse_date(str(record.get("date", ""))),
        stock_code=str(record.get("stock_code", "") or "").strip(),
        stock_name=str(record.get("stock_name", "") or "").strip(),
        shares=record.get("shares"),
        weight=record.get("weight"),
    )


def dataframe_to_snapshots(df: pd.DataFrame) -> list[Snapshot]:
    """Convert a flat table back into snapshots, in first-seen date order.

    Malformed rows are skipped. Placeholder rows keep their date present
    with no holdings.
    """
    if df.empty:
        return []
    df = normalize_columns(df)
    missing = set(COLUMNS) - set(df.columns)
    if missing:
        raise ValueError(f"Table is missing columns: {', '.join(sorted(missing))}")

    grouped: dict[date, list[HoldingRow]] = {}
    for i, record in enumerate(df.to_dict("records")):
        try:
            row = parse_frame_row(record)
        except (TypeError, ValueError) as e:
            logger.warning("Skipping malformed table row %d: %s", i, e)
            continue
        grouped.setdefault(row.date, []).append(row)

    return [rows_to_snapshot(as_of, rows) for as_of, rows in grouped.items()]


def _export_name(snapshot: Snapshot, suffix: str) -> str:
    return f"holdings_{snapshot.date.isoformat()}{suffix}"


def export_to_csv(snapshot: Snapshot, output_path: Path) -> Path:
    """
    Export a snapshot to CSV.

    Args:
        snapshot: The snapshot to export
        output_path: Directory to write the CSV file

    Returns:
        Path to the created CSV file
    """
    df = snapshot_to_dataframe(snapshot)
    output_path.mkdir(parents=True, exist_ok=True)
    csv_path = output_path / _export_name(snapshot, ".csv")
    try:
        df.to_csv(csv_path, index=False)
    except OSError as e:
        raise StorageError.write_error(csv_path) from e
    return csv_path


def export_to_parquet(snapshot: Snapshot, output_path: Path) -> Path:
    """
    Export a snapshot to Parquet.

    Args:
        snapshot: The snapshot to export
        output_path: Directory to write the Parquet file

    Returns:
        Path to the created Parquet file
    """
    df = snapshot_to_dataframe(snapshot)
    output_path.mkdir(parents=True, exist_ok=True)
    parquet_path = output_path / _export_name(snapshot, ".parquet")
    try:
        df.to_parquet(parquet_path, index=False)
    except OSError as e:
        raise StorageError.write_error(parquet_path) from e
    return parquet_path


def export_all_to_csv(store: SnapshotStore, output_path: Path) -> Path:
    """
    Export every stored snapshot to a single CSV in the flat table layout.

    Args:
        store: The snapshot store
        output_path: Directory to write the CSV file

    Returns:
        Path to the created CSV file
    """
    rows: list[HoldingRow] = []
    for as_of in sorted(store.get_available_dates()):
        snapshot = store.get(as_of)
        if snapshot is not None:
            rows.extend(snapshot_rows(snapshot))

    df = rows_to_dataframe(rows)
    output_path.mkdir(parents=True, exist_ok=True)
    csv_path = output_path / "all_holdings.csv"
    try:
        df.to_csv(csv_path, index=False)
    except OSError as e:
        raise StorageError.write_error(csv_path) from e
    return csv_path


def load_snapshot_csv(path: Path | str, as_of: date | None = None) -> Snapshot:
    """
    Load a manually prepared CSV of holdings as a snapshot.

    The file needs ``stock_code``, ``stock_name``, ``shares`` and ``weight``
    columns. The date comes from ``as_of`` or from a ``date`` column that
    holds a single date.

    Raises:
        ValidationError: If the date is missing or ambiguous, or a row is invalid
        StorageError: If the file cannot be read
    """
    csv_path = Path(path)
    try:
        df = pd.read_csv(csv_path, dtype=str, keep_default_na=False)
    except pd.errors.EmptyDataError:
        df = pd.DataFrame(columns=COLUMNS[1:])
    except (OSError, pd.errors.ParserError) as e:
        raise StorageError.read_error(csv_path) from e

    df = normalize_columns(df)
    missing = {"stock_code", "stock_name", "shares", "weight"} - set(df.columns)
    if missing:
        raise ValidationError(
            f"CSV is missing columns: {', '.join(sorted(missing))}",
            field="columns",
            value=sorted(missing),
        )

    if as_of is None:
        dates = {d.strip() for d in df.get("date", pd.Series(dtype=str)) if d.strip()}
        if len(dates) != 1:
            raise ValidationError(
                "CSV must contain exactly one date, or pass one explicitly",
                field="date",
                value=sorted(dates),
            )
        try:
            as_of = parse_date(dates.pop())
        except ValueError as e:
            raise ValidationError(str(e), field="date") from e

    holdings: list[Holding] = []
    for i, record in enumerate(df.to_dict("records"), start=1):
        code = str(record["stock_code"]).strip()
        if not code:
            continue
        try:
            holdings.append(
                Holding(
                    stock_code=code,
                    stock_name=str(record["stock_name"]).strip(),
                    shares=record["shares"],
                    weight=record["weight"],
                )
            )
        except ValueError as e:
            raise ValidationError(f"Invalid row {i}: {e}", field=f"row {i}", value=record) from e

    try:
        snapshot = Snapshot(date=as_of, holdings=tuple(holdings))
    except ValueError as e:
        raise ValidationError(str(e), field="stock_code") from e
    logger.info("Loaded %d holdings for %s from %s", snapshot.total_count, as_of, csv_path)
    return snapshot
