"""Snapshot storage backends and table exports."""

from ..config import Config
from .base import SnapshotStore
from .database import SqliteSnapshotStore
from .exports import (
    dataframe_to_snapshots,
    export_all_to_csv,
    export_to_csv,
    export_to_parquet,
    load_snapshot_csv,
    snapshot_to_dataframe,
)
from .memory import MemorySnapshotStore
from .models import PLACEHOLDER_CODE, Holding, Snapshot
from .table import TableSnapshotStore


def open_store(config: Config) -> SnapshotStore:
    """Create the snapshot store selected by ``config.backend``."""
    if config.backend == "sqlite":
        return SqliteSnapshotStore(config.db_path)
    if config.backend == "table":
        return TableSnapshotStore(config.table_path)
    if config.backend == "memory":
        return MemorySnapshotStore()
    raise ValueError(f"Unknown storage backend: {config.backend}")


__all__ = [
    "PLACEHOLDER_CODE",
    "Holding",
    "Snapshot",
    "SnapshotStore",
    "SqliteSnapshotStore",
    "TableSnapshotStore",
    "MemorySnapshotStore",
    "open_store",
    "dataframe_to_snapshots",
    "export_all_to_csv",
    "export_to_csv",
    "export_to_parquet",
    "load_snapshot_csv",
    "snapshot_to_dataframe",
]
