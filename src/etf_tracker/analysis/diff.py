"""Date-range holdings diff engine."""

import json
import logging
from dataclasses import dataclass, field
from datetime import date
from decimal import ROUND_HALF_UP, Decimal
from enum import Enum
from pathlib import Path

from ..errors import ValidationError
from ..storage.base import SnapshotStore
from ..storage.models import Holding, Snapshot

logger = logging.getLogger(__name__)

RATIO_QUANT = Decimal("0.01")
WEIGHT_QUANT = Decimal("0.0001")
REMOVED_RATIO = Decimal("-100.00")


def round_ratio(value: Decimal) -> Decimal:
    """Round a percent change to 2 places, half-up."""
    return value.quantize(RATIO_QUANT, rounding=ROUND_HALF_UP)


def round_weight(value: Decimal) -> Decimal:
    """Round a weight-point difference to 4 places, half-up."""
    return value.quantize(WEIGHT_QUANT, rounding=ROUND_HALF_UP)


class ChangeType(str, Enum):
    NEW_ADDITION = "NEW_ADDITION"
    REMOVED = "REMOVED"
    INCREASED = "INCREASED"
    DECREASED = "DECREASED"
    UNCHANGED = "UNCHANGED"


def _str_or_none(value: object) -> str | None:
    return None if value is None else str(value)


@dataclass(frozen=True)
class HoldingChange:
    """How one stock code changed between two dates.

    Build instances with ``new_addition``, ``removal`` or ``between``.
    """

    stock_code: str
    stock_name: str
    change_type: ChangeType

    # Shares
    start_shares: int | None  # None only for NEW_ADDITION
    end_shares: int | None  # None only for REMOVED
    shares_diff: int

    # Percent change of shares, None only for NEW_ADDITION
    change_ratio: Decimal | None

    # Weights, in percentage points
    start_weight: Decimal | None
    end_weight: Decimal | None
    weight_diff: Decimal

    def __post_init__(self) -> None:
        object.__setattr__(self, "change_type", ChangeType(self.change_type))
        is_new = self.change_type is ChangeType.NEW_ADDITION
        is_removed = self.change_type is ChangeType.REMOVED
        if (self.start_shares is None) != is_new or (self.start_weight is None) != is_new:
            raise ValueError(f"{self.change_type.value} change has wrong start values")
        if (self.end_shares is None) != is_removed or (self.end_weight is None) != is_removed:
            raise ValueError(f"{self.change_type.value} change has wrong end values")
        if (self.change_ratio is None) != is_new:
            raise ValueError(f"{self.change_type.value} change has wrong change_ratio")

    @classmethod
    def new_addition(cls, end: Holding) -> "HoldingChange":
        return cls(
            stock_code=end.stock_code,
            stock_name=end.stock_name,
            change_type=ChangeType.NEW_ADDITION,
            start_shares=None,
            end_shares=end.shares,
            shares_diff=end.shares,
            change_ratio=None,
            start_weight=None,
            end_weight=end.weight,
            weight_diff=round_weight(end.weight),
        )

    @classmethod
    def removal(cls, start: Holding) -> "HoldingChange":
        return cls(
            stock_code=start.stock_code,
            stock_name=start.stock_name,
            change_type=ChangeType.REMOVED,
            start_shares=start.shares,
            end_shares=None,
            shares_diff=-start.shares,
            change_ratio=REMOVED_RATIO,
            start_weight=start.weight,
            end_weight=None,
            weight_diff=round_weight(-start.weight),
        )

    @classmethod
    def between(cls, start: Holding, end: Holding) -> "HoldingChange":
        """Compare a stock code held on both dates."""
        shares_diff = end.shares - start.shares
        if shares_diff > 0:
            change_type = ChangeType.INCREASED
        elif shares_diff < 0:
            change_type = ChangeType.DECREASED
        else:
            change_type = ChangeType.UNCHANGED

        # Zero start shares has no base for a percentage
        if start.shares == 0:
            change_ratio = round_ratio(Decimal(0))
        else:
            change_ratio = round_ratio(Decimal(shares_diff) / Decimal(start.shares) * 100)

        return cls(
            stock_code=start.stock_code,
            stock_name=end.stock_name or start.stock_name,
            change_type=change_type,
            start_shares=start.shares,
            end_shares=end.shares,
            shares_diff=shares_diff,
            change_ratio=change_ratio,
            start_weight=start.weight,
            end_weight=end.weight,
            weight_diff=round_weight(end.weight - start.weight),
        )

    def to_dict(self) -> dict:
        """Convert to a JSON-serializable dict, with decimals as strings."""
        return {
            "stock_code": self.stock_code,
            "stock_name": self.stock_name,
            "change_type": self.change_type.value,
            "start_shares": self.start_shares,
            "end_shares": self.end_shares,
            "shares_diff": self.shares_diff,
            "change_ratio": _str_or_none(self.change_ratio),
            "start_weight": _str_or_none(self.start_weight),
            "end_weight": _str_or_none(self.end_weight),
            "weight_diff": str(self.weight_diff),
        }


@dataclass
class RangeCompareResult:
    """Every holding change between two dates, by category."""

    start_date: date
    end_date: date

    new_additions: list[HoldingChange] = field(default_factory=list)
    removals: list[HoldingChange] = field(default_factory=list)
    increased: list[HoldingChange] = field(default_factory=list)
    decreased: list[HoldingChange] = field(default_factory=list)
    unchanged: list[HoldingChange] = field(default_factory=list)

    @property
    def new_count(self) -> int:
        return len(self.new_additions)

    @property
    def removed_count(self) -> int:
        return len(self.removals)

    @property
    def increased_count(self) -> int:
        return len(self.increased)

    @property
    def decreased_count(self) -> int:
        return len(self.decreased)

    @property
    def unchanged_count(self) -> int:
        return len(self.unchanged)

    @property
    def total_changes(self) -> int:
        """Number of stock codes that changed in any way."""
        return self.new_count + self.removed_count + self.increased_count + self.decreased_count

    def all_changes(self) -> list[HoldingChange]:
        return [
            *self.new_additions,
            *self.removals,
            *self.increased,
            *self.decreased,
            *self.unchanged,
        ]

    def to_dict(self) -> dict:
        """Convert to a JSON-serializable dict."""
        return {
            "start_date": self.start_date.isoformat(),
            "end_date": self.end_date.isoformat(),
            "summary": {
                "new_additions": self.new_count,
                "removals": self.removed_count,
                "increased": self.increased_count,
                "decreased": self.decreased_count,
                "unchanged": self.unchanged_count,
                "total_changes": self.total_changes,
            },
            "new_additions": [c.to_dict() for c in self.new_additions],
            "removals": [c.to_dict() for c in self.removals],
            "increased": [c.to_dict() for c in self.increased],
            "decreased": [c.to_dict() for c in self.decreased],
            "unchanged": [c.to_dict() for c in self.unchanged],
        }

    def to_json(self) -> str:
        """Convert to JSON string."""
        return json.dumps(self.to_dict(), indent=2, ensure_ascii=False)

    def save(self, path: Path) -> None:
        """Save to a JSON file."""
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(self.to_json(), encoding="utf-8")


def compare_snapshots(start: Snapshot, end: Snapshot) -> RangeCompareResult:
    """
    Classify every stock code found in either snapshot.

    Removals and changes of held codes follow the start snapshot's order;
    new additions follow the end snapshot's order.

    Args:
        start: Snapshot for the earlier date
        end: Snapshot for the later date

    Returns:
        RangeCompareResult with each stock code in exactly one list
    """
    # Build lookup dicts
    start_by_code = {h.stock_code: h for h in start.holdings}
    end_by_code = {h.stock_code: h for h in end.holdings}

    result = RangeCompareResult(start_date=start.date, end_date=end.date)
    by_type = {
        ChangeType.REMOVED: result.removals,
        ChangeType.INCREASED: result.increased,
        ChangeType.DECREASED: result.decreased,
        ChangeType.UNCHANGED: result.unchanged,
    }

    for h in start.holdings:
        e = end_by_code.get(h.stock_code)
        change = HoldingChange.removal(h) if e is None else HoldingChange.between(h, e)
        by_type[change.change_type].append(change)

    for e in end.holdings:
        if e.stock_code not in start_by_code:
            result.new_additions.append(HoldingChange.new_addition(e))

    return result


class DiffEngine:
    """Compares stored snapshots. Holds no state besides the store."""

    def __init__(self, store: SnapshotStore) -> None:
        self.store = store

    def compare(self, start_date: date, end_date: date) -> RangeCompareResult:
        """
        Compare the snapshots stored for two dates.

        Raises:
            ValidationError: If the range is reversed or either date has no data
        """
        if start_date > end_date:
            raise ValidationError(
                f"Start date {start_date} is after end date {end_date}",
                field="start_date",
                value=start_date,
            )

        logger.info("Comparing holdings %s -> %s", start_date, end_date)

        start = self.store.get(start_date)
        if start is None:
            raise ValidationError(
                f"No holdings data for start date {start_date}",
                field="start_date",
                value=start_date,
            )
        end = self.store.get(end_date)
        if end is None:
            raise ValidationError(
                f"No holdings data for end date {end_date}",
                field="end_date",
                value=end_date,
            )

        result = compare_snapshots(start, end)
        logger.info(
            "Compared %s -> %s: %d new, %d removed, %d increased, %d decreased, %d unchanged",
            start_date,
            end_date,
            result.new_count,
            result.removed_count,
            result.increased_count,
            result.decreased_count,
            result.unchanged_count,
        )
        return result

    def compare_latest(self) -> RangeCompareResult:
        """Compare the two most recent stored dates."""
        dates = self.store.get_available_dates()
        if len(dates) < 2:
            raise ValidationError(
                "At least two stored dates are needed to compare",
                field="dates",
                value=[d.isoformat() for d in dates],
            )
        return self.compare(dates[1], dates[0])
