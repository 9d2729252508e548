"""Tests for table conversion, exports and CSV import."""

from datetime import date
from decimal import Decimal

import pandas as pd
import pytest

from etf_tracker.errors import StorageError, ValidationError
from etf_tracker.storage import MemorySnapshotStore
from etf_tracker.storage.exports import (
    COLUMNS,
    dataframe_to_snapshots,
    export_all_to_csv,
    export_to_csv,
    export_to_parquet,
    load_snapshot_csv,
    normalize_columns,
    snapshot_to_dataframe,
)
from etf_tracker.storage.models import Snapshot

from conftest import END_DATE, START_DATE


class TestDataFrames:
    def test_snapshot_to_dataframe(self, start_snapshot):
        df = snapshot_to_dataframe(start_snapshot)
        assert list(df.columns) == COLUMNS
        assert len(df) == 3
        assert df.iloc[0].to_dict() == {
            "date": "2024-01-10",
            "stock_code": "2330",
            "stock_name": "TSMC",
            "shares": "1000000",
            "weight": "25.00",
        }

    def test_empty_snapshot_is_placeholder_row(self):
        df = snapshot_to_dataframe(Snapshot(date=START_DATE))
        assert len(df) == 1
        assert df.iloc[0]["stock_code"] == ""

    def test_dataframe_to_snapshots(self, start_snapshot, end_snapshot):
        df = pd.concat(
            [
                snapshot_to_dataframe(start_snapshot),
                snapshot_to_dataframe(Snapshot(date=date(2024, 1, 12))),
                snapshot_to_dataframe(end_snapshot),
            ],
            ignore_index=True,
        )
        snapshots = dataframe_to_snapshots(df)
        assert [s.date for s in snapshots] == [START_DATE, date(2024, 1, 12), END_DATE]
        assert snapshots[0] == start_snapshot
        assert snapshots[1].is_empty
        assert snapshots[2] == end_snapshot

    def test_dataframe_to_snapshots_skips_malformed(self):
        df = pd.DataFrame(
            [
                {"date": "2024-01-10", "stock_code": "2330", "stock_name": "TSMC", "shares": "10", "weight": "1"},
                {"date": "bad", "stock_code": "2317", "stock_name": "Foxconn", "shares": "10", "weight": "1"},
                {"date": "2024-01-10", "stock_code": "2412", "stock_name": "CHT", "shares": "-1", "weight": "1"},
            ]
        )
        snapshots = dataframe_to_snapshots(df)
        assert len(snapshots) == 1
        assert snapshots[0].stock_codes == ["2330"]

    def test_dataframe_to_snapshots_empty(self):
        assert dataframe_to_snapshots(pd.DataFrame(columns=COLUMNS)) == []

    def test_normalize_columns(self):
        df = pd.DataFrame(columns=["Code", "Name", "Shares", "Weight (%)", "As Of"])
        assert list(normalize_columns(df).columns) == [
            "stock_code",
            "stock_name",
            "shares",
            "weight",
            "date",
        ]


class TestExports:
    def test_export_to_csv(self, start_snapshot, tmp_path):
        path = export_to_csv(start_snapshot, tmp_path / "exports")
        assert path.name == "holdings_2024-01-10.csv"
        df = pd.read_csv(path, dtype=str, keep_default_na=False)
        assert dataframe_to_snapshots(df) == [start_snapshot]

    def test_export_to_parquet(self, start_snapshot, tmp_path):
        path = export_to_parquet(start_snapshot, tmp_path)
        assert path.name == "holdings_2024-01-10.parquet"
        df = pd.read_parquet(path)
        assert list(df["stock_code"]) == ["2330", "2317", "2412"]

    def test_export_all_to_csv(self, start_snapshot, end_snapshot, tmp_path):
        store = MemorySnapshotStore()
        store.save(end_snapshot)
        store.save(start_snapshot)
        path = export_all_to_csv(store, tmp_path)
        df = pd.read_csv(path, dtype=str, keep_default_na=False)
        assert len(df) == 6
        assert df.iloc[0]["date"] == "2024-01-10"
        assert dataframe_to_snapshots(df) == [start_snapshot, end_snapshot]


class TestLoadSnapshotCsv:
    def test_with_date_column(self, tmp_path):
        path = tmp_path / "in.csv"
        path.write_text(
            "date,stock_code,stock_name,shares,weight\n"
            "2024-01-10,2330,TSMC,\"1,000\",25.5%\n"
            "2024-01-10,2317,Foxconn,500,12\n"
        )
        snapshot = load_snapshot_csv(path)
        assert snapshot.date == START_DATE
        assert snapshot.stock_codes == ["2330", "2317"]
        assert snapshot.holdings[0].shares == 1000
        assert snapshot.holdings[0].weight == Decimal("25.5")

    def test_explicit_date(self, tmp_path):
        path = tmp_path / "in.csv"
        path.write_text("Code,Name,Shares,Weight\n2330,TSMC,100,1.5\n")
        snapshot = load_snapshot_csv(path, as_of=END_DATE)
        assert snapshot.date == END_DATE
        assert snapshot.total_count == 1

    def test_blank_codes_are_skipped(self, tmp_path):
        path = tmp_path / "in.csv"
        path.write_text("stock_code,stock_name,shares,weight\n2330,TSMC,100,1.5\n,,,\n")
        assert load_snapshot_csv(path, as_of=END_DATE).stock_codes == ["2330"]

    def test_header_only_is_empty_snapshot(self, tmp_path):
        path = tmp_path / "in.csv"
        path.write_text("stock_code,stock_name,shares,weight\n")
        assert load_snapshot_csv(path, as_of=END_DATE).is_empty

    def test_missing_date(self, tmp_path):
        path = tmp_path / "in.csv"
        path.write_text("stock_code,stock_name,shares,weight\n2330,TSMC,100,1.5\n")
        with pytest.raises(ValidationError) as exc_info:
            load_snapshot_csv(path)
        assert exc_info.value.field == "date"

    def test_several_dates(self, tmp_path):
        path = tmp_path / "in.csv"
        path.write_text(
            "date,stock_code,stock_name,shares,weight\n"
            "2024-01-10,2330,TSMC,100,1.5\n"
            "2024-01-11,2317,Foxconn,100,1.5\n"
        )
        with pytest.raises(ValidationError):
            load_snapshot_csv(path)

    def test_missing_columns(self, tmp_path):
        path = tmp_path / "in.csv"
        path.write_text("stock_code,shares\n2330,100\n")
        with pytest.raises(ValidationError) as exc_info:
            load_snapshot_csv(path, as_of=END_DATE)
        assert exc_info.value.field == "columns"

    def test_invalid_row(self, tmp_path):
        path = tmp_path / "in.csv"
        path.write_text("stock_code,stock_name,shares,weight\n2330,TSMC,lots,1.5\n")
        with pytest.raises(ValidationError):
            load_snapshot_csv(path, as_of=END_DATE)

    def test_duplicate_codes(self, tmp_path):
        path = tmp_path / "in.csv"
        path.write_text("stock_code,stock_name,shares,weight\n2330,TSMC,1,1\n2330,TSMC,2,2\n")
        with pytest.raises(ValidationError):
            load_snapshot_csv(path, as_of=END_DATE)

    def test_unreadable_file(self, tmp_path):
        with pytest.raises(StorageError):
            load_snapshot_csv(tmp_path / "missing.csv", as_of=END_DATE)
