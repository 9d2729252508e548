"""Data models for storage."""

import logging
import re
from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal, InvalidOperation
from typing import Iterable

logger = logging.getLogger(__name__)

# Stock code written for a date saved with zero holdings.
PLACEHOLDER_CODE = ""

# Largest share count a SQLite INTEGER column can hold
MAX_SHARES = 2**63 - 1

_DATE_RE = re.compile(r"[0-9]{4}-[0-9]{2}-[0-9]{2}")


def to_decimal(value: Decimal | int | float | str) -> Decimal:
    """Convert a number to Decimal without binary float noise."""
    if isinstance(value, Decimal):
        if not value.is_finite():
            raise ValueError(f"Not a finite number: {value!r}")
        return value
    if isinstance(value, bool) or value is None:
        raise ValueError(f"Not a number: {value!r}")
    try:
        result = Decimal(str(value).strip().rstrip("%").replace(",", ""))
    except InvalidOperation as e:
        raise ValueError(f"Not a number: {value!r}") from e
    if not result.is_finite():
        raise ValueError(f"Not a finite number: {value!r}")
    return result


def to_shares(value: int | float | str) -> int:
    """Convert a share count to a non-negative int."""
    if isinstance(value, bool) or value is None:
        raise ValueError(f"Not a share count: {value!r}")
    if isinstance(value, int):
        shares = value
    else:
        number = to_decimal(value)
        if number != number.to_integral_value():
            raise ValueError(f"Share count must be whole: {value!r}")
        shares = int(number)
    if shares < 0:
        raise ValueError(f"Share count cannot be negative: {value!r}")
    if shares > MAX_SHARES:
        raise ValueError(f"Share count too large: {value!r}")
    return shares


def parse_date(value: str) -> date:
    """Parse a strict ISO ``yyyy-MM-dd`` date string."""
    if not isinstance(value, str) or not _DATE_RE.fullmatch(value.strip()):
        raise ValueError(f"Invalid date: {value!r}")
    return date.fromisoformat(value.strip())


@dataclass(frozen=True)
class Holding:
    """One constituent's position on one date."""

    stock_code: str
    stock_name: str
    shares: int
    weight: Decimal  # percentage, e.g. 25.5 = 25.5%

    def __post_init__(self) -> None:
        if not self.stock_code or self.stock_code == PLACEHOLDER_CODE:
            raise ValueError("stock_code cannot be empty")
        object.__setattr__(self, "shares", to_shares(self.shares))
        object.__setattr__(self, "weight", to_decimal(self.weight))


@dataclass(frozen=True)
class Snapshot:
    """The complete set of holdings for one calendar date."""

    date: date
    holdings: tuple[Holding, ...] = field(default_factory=tuple)

    def __post_init__(self) -> None:
        if self.date is None:
            raise ValueError("Snapshot date cannot be None")
        holdings = tuple(self.holdings)
        seen: set[str] = set()
        for h in holdings:
            if h.stock_code in seen:
                raise ValueError(f"Duplicate stock_code {h.stock_code!r} on {self.date}")
            seen.add(h.stock_code)
        object.__setattr__(self, "holdings", holdings)

    @property
    def total_count(self) -> int:
        return len(self.holdings)

    @property
    def total_weight(self) -> Decimal:
        """Sum of holding weights (not required to equal 100)."""
        return sum((h.weight for h in self.holdings), Decimal("0"))

    @property
    def is_empty(self) -> bool:
        return not self.holdings

    def find(self, stock_code: str) -> Holding | None:
        """Return the holding for a stock code if present."""
        for h in self.holdings:
            if h.stock_code == stock_code:
                return h
        return None

    @property
    def stock_codes(self) -> list[str]:
        return [h.stock_code for h in self.holdings]


@dataclass(frozen=True)
class HoldingRow:
    """A persisted row: one holding on one date, or a placeholder."""

    date: date
    stock_code: str
    stock_name: str
    shares: int
    weight: Decimal

    def __post_init__(self) -> None:
        object.__setattr__(self, "shares", to_shares(self.shares))
        object.__setattr__(self, "weight", to_decimal(self.weight))

    @property
    def is_placeholder(self) -> bool:
        return self.stock_code == PLACEHOLDER_CODE

    def to_holding(self) -> Holding:
        return Holding(
            stock_code=self.stock_code,
            stock_name=self.stock_name,
            shares=self.shares,
            weight=self.weight,
        )


def placeholder_row(as_of: date) -> HoldingRow:
    """Row marking a date that was saved with zero holdings."""
    return HoldingRow(
        date=as_of,
        stock_code=PLACEHOLDER_CODE,
        stock_name="",
        shares=0,
        weight=Decimal("0"),
    )


def snapshot_rows(snapshot: Snapshot) -> list[HoldingRow]:
    """Flatten a snapshot into persisted rows, with a placeholder if empty."""
    if snapshot.is_empty:
        return [placeholder_row(snapshot.date)]
    return [
        HoldingRow(
            date=snapshot.date,
            stock_code=h.stock_code,
            stock_name=h.stock_name,
            shares=h.shares,
            weight=h.weight,
        )
        for h in snapshot.holdings
    ]


def rows_to_snapshot(as_of: date, rows: Iterable[HoldingRow]) -> Snapshot:
    """Build a snapshot from persisted rows, dropping placeholders.

    A stock code repeated within one date keeps its first row.
    """
    holdings: list[Holding] = []
    seen: set[str] = set()
    for row in rows:
        if row.is_placeholder:
            continue
        if row.stock_code in seen:
            logger.warning("Skipping duplicate row for %s on %s", row.stock_code, as_of)
            continue
        seen.add(row.stock_code)
        holdings.append(row.to_holding())
    return Snapshot(date=as_of, holdings=tuple(holdings))
