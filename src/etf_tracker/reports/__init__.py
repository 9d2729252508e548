"""Report generation."""

from .compare_report import generate_compare_report
from .snapshot_report import generate_snapshot_report

__all__ = [
    "generate_compare_report",
    "generate_snapshot_report",
]
