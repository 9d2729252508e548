"""Read-side queries over stored snapshots."""

import logging
from dataclasses import dataclass
from datetime import date
from decimal import Decimal

from ..storage.base import SnapshotStore
from ..storage.models import Holding, Snapshot
from .diff import ChangeType, HoldingChange

logger = logging.getLogger(__name__)


@dataclass
class AvailableDates:
    """The stored dates, newest first."""

    dates: list[date]

    @property
    def earliest(self) -> date | None:
        return self.dates[-1] if self.dates else None

    @property
    def latest(self) -> date | None:
        return self.dates[0] if self.dates else None

    @property
    def total_days(self) -> int:
        return len(self.dates)

    @property
    def has_data(self) -> bool:
        return bool(self.dates)

    def is_available(self, as_of: date) -> bool:
        return as_of in self.dates


@dataclass
class StockChange:
    """One change to a single stock between two consecutive stored dates."""

    start_date: date
    end_date: date
    change: HoldingChange


@dataclass
class HoldingStatistics:
    """Totals for the latest snapshot."""

    date: date | None
    total_count: int
    total_weight: Decimal

    @classmethod
    def empty(cls) -> "HoldingStatistics":
        return cls(date=None, total_count=0, total_weight=Decimal("0"))


class HoldingQueryService:
    """Search, sort and page the holdings of the latest snapshot."""

    def __init__(self, store: SnapshotStore) -> None:
        self.store = store

    def get_snapshot(self, as_of: date | None) -> Snapshot | None:
        if as_of is None:
            logger.warning("Snapshot requested without a date")
            return None
        return self.store.get(as_of)

    def get_latest(self) -> Snapshot | None:
        return self.store.get_latest()

    def available_dates(self) -> AvailableDates:
        return AvailableDates(dates=self.store.get_available_dates())

    def _all_holdings(self) -> list[Holding]:
        snapshot = self.get_latest()
        return list(snapshot.holdings) if snapshot else []

    def _filter(self, text: str | None, match) -> list[Holding]:
        holdings = self._all_holdings()
        if text is None or not text.strip():
            return holdings
        needle = text.strip().lower()
        return [h for h in holdings if match(h, needle)]

    def search(self, keyword: str | None) -> list[Holding]:
        """Match the keyword against stock code or name, case-insensitively."""
        logger.debug("Searching holdings for %r", keyword)
        return self._filter(
            keyword,
            lambda h, k: k in h.stock_code.lower() or k in h.stock_name.lower(),
        )

    def search_by_code(self, code: str | None) -> list[Holding]:
        return self._filter(code, lambda h, k: k in h.stock_code.lower())

    def search_by_name(self, name: str | None) -> list[Holding]:
        return self._filter(name, lambda h, k: k in h.stock_name.lower())

    def sorted_by_weight(self, ascending: bool = False) -> list[Holding]:
        return sorted(self._all_holdings(), key=lambda h: h.weight, reverse=not ascending)

    def sorted_by_code(self, ascending: bool = True) -> list[Holding]:
        return sorted(self._all_holdings(), key=lambda h: h.stock_code, reverse=not ascending)

    def page(self, page: int, page_size: int) -> list[Holding]:
        """Get one zero-based page of holdings in snapshot order."""
        if page < 0 or page_size <= 0:
            return []
        start = page * page_size
        return self._all_holdings()[start : start + page_size]

    def statistics(self) -> HoldingStatistics:
        snapshot = self.get_latest()
        if snapshot is None:
            return HoldingStatistics.empty()
        return HoldingStatistics(
            date=snapshot.date,
            total_count=snapshot.total_count,
            total_weight=snapshot.total_weight,
        )

    def stock_history(self, stock_code: str) -> list[StockChange]:
        """
        Walk consecutive stored dates and collect every change to one stock.

        Dates where the stock's share count did not move are left out, as are
        date pairs where it was held on neither date. Newest first.
        """
        code = stock_code.strip()
        dates = sorted(self.store.get_available_dates())
        history: list[StockChange] = []
        previous: Snapshot | None = None
        for as_of in dates:
            current = self.store.get(as_of)
            if current is None:
                continue
            if previous is not None:
                change = _change_for(code, previous, current)
                if change is not None and change.change_type is not ChangeType.UNCHANGED:
                    history.append(
                        StockChange(start_date=previous.date, end_date=current.date, change=change)
                    )
            previous = current
        history.reverse()
        logger.debug("Found %d changes for %s", len(history), code)
        return history


def _change_for(code: str, start: Snapshot, end: Snapshot) -> HoldingChange | None:
    before = start.find(code)
    after = end.find(code)
    if before is None and after is None:
        return None
    if before is None:
        return HoldingChange.new_addition(after)
    if after is None:
        return HoldingChange.removal(before)
    return HoldingChange.between(before, after)
