"""Analysis tools: diff engine, retention cleanup, holding queries."""

from .cleanup import CleanupService
from .diff import ChangeType, DiffEngine, HoldingChange, RangeCompareResult, compare_snapshots
from .query import HoldingQueryService, StockChange

__all__ = [
    "ChangeType",
    "CleanupService",
    "DiffEngine",
    "HoldingChange",
    "HoldingQueryService",
    "RangeCompareResult",
    "StockChange",
    "compare_snapshots",
]
