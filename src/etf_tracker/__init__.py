"""ETF holdings tracker: daily snapshots and date-range comparisons."""

__version__ = "0.1.0"
