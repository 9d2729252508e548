"""Shared fixtures."""

from datetime import date
from decimal import Decimal

import pytest

from etf_tracker.config import Config
from etf_tracker.storage import MemorySnapshotStore, SqliteSnapshotStore, TableSnapshotStore
from etf_tracker.storage.models import Holding, Snapshot

START_DATE = date(2024, 1, 10)
END_DATE = date(2024, 1, 15)


def make_holding(code: str, name: str, shares: int, weight: str) -> Holding:
    return Holding(stock_code=code, stock_name=name, shares=shares, weight=Decimal(weight))


@pytest.fixture
def start_snapshot() -> Snapshot:
    return Snapshot(
        date=START_DATE,
        holdings=(
            make_holding("2330", "TSMC", 1_000_000, "25.00"),
            make_holding("2317", "Foxconn", 500_000, "12.00"),
            make_holding("2412", "CHT", 300_000, "8.00"),
        ),
    )


@pytest.fixture
def end_snapshot() -> Snapshot:
    return Snapshot(
        date=END_DATE,
        holdings=(
            make_holding("2330", "TSMC", 1_200_000, "28.00"),
            make_holding("2317", "Foxconn", 400_000, "10.00"),
            make_holding("2454", "MediaTek", 250_000, "7.00"),
        ),
    )


@pytest.fixture
def config(tmp_path) -> Config:
    return Config(base_dir=tmp_path)


@pytest.fixture(params=["sqlite", "table", "memory"])
def store(request, tmp_path):
    """Every bundled store backend, empty."""
    if request.param == "sqlite":
        s = SqliteSnapshotStore(tmp_path / "holdings.db")
    elif request.param == "table":
        s = TableSnapshotStore(tmp_path / "holdings.csv")
    else:
        s = MemorySnapshotStore()
    yield s
    s.close()
