"""Scan criteria: the range form and the target-bid form."""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Dict

from ..models.scan import ScannedQuote
from ..utils.error_handling import CriteriaError


class ScanCriteria(ABC):
    """Predicate over scanned quotes.

    Besides the overall match, criteria expose the premium and distance
    halves separately so the context window can flag partial matches.
    """

    @abstractmethod
    def matches(self, row: ScannedQuote) -> bool:
        """True if the row satisfies every condition."""

    @abstractmethod
    def premium_ok(self, row: ScannedQuote) -> bool:
        """True if the row satisfies the premium (bid) conditions."""

    @abstractmethod
    def distance_ok(self, row: ScannedQuote) -> bool:
        """True if the row satisfies the distance conditions."""

    @property
    @abstractmethod
    def anchor_distance(self) -> float | None:
        """Distance used to centre the context window when nothing qualifies."""

    @abstractmethod
    def describe(self) -> str:
        """Short human-readable form for headers."""


@dataclass(frozen=True)
class RangeCriteria(ScanCriteria):
    """Inclusive min/max bounds on bid and distance from spot.

    Any bound may be None (unbounded); a missing lower bound means 0, so
    in-the-money strikes (negative distance) never satisfy the distance range.
    """

    min_premium: float | None = None
    max_premium: float | None = None
    min_distance: float | None = None
    max_distance: float | None = None

    def __post_init__(self) -> None:
        for name in ('min_premium', 'max_premium', 'min_distance', 'max_distance'):
            value = getattr(self, name)
            if value is not None and value < 0:
                raise CriteriaError(f"{name} must be non-negative, got {value}")
        if _inverted(self.min_premium, self.max_premium):
            raise CriteriaError(
                f"min_premium {self.min_premium} exceeds max_premium {self.max_premium}"
            )
        if _inverted(self.min_distance, self.max_distance):
            raise CriteriaError(
                f"min_distance {self.min_distance} exceeds max_distance {self.max_distance}"
            )

    @classmethod
    def from_dict(cls, config: Dict[str, Any]) -> "RangeCriteria":
        """Create RangeCriteria from dictionary (e.g., from YAML).

        Args:
            config: Dictionary with any of min_premium, max_premium,
                min_distance, max_distance

        Returns:
            RangeCriteria instance
        """
        def number(key: str) -> float | None:
            value = config.get(key)
            return None if value is None else float(value)

        return cls(
            min_premium=number('min_premium'),
            max_premium=number('max_premium'),
            min_distance=number('min_distance'),
            max_distance=number('max_distance'),
        )

    def premium_ok(self, row: ScannedQuote) -> bool:
        return _within(row.bid, self.min_premium, self.max_premium)

    def distance_ok(self, row: ScannedQuote) -> bool:
        return _within(row.distance, self.min_distance, self.max_distance)

    def matches(self, row: ScannedQuote) -> bool:
        return self.premium_ok(row) and self.distance_ok(row)

    @property
    def anchor_distance(self) -> float | None:
        return self.min_distance

    def describe(self) -> str:
        return f"{_bounds(self.min_distance, self.max_distance, '{:g}')}pts / " \
               f"{_bounds(self.min_premium, self.max_premium, '{:.2f}')}bid"


@dataclass(frozen=True)
class TargetBid:
    """Select the strike paying exactly ``target_bid`` (or the closest bid)."""

    target_bid: float

    def __post_init__(self) -> None:
        if self.target_bid <= 0:
            raise CriteriaError(f"target bid must be positive, got {self.target_bid}")

    def is_target(self, row: ScannedQuote) -> bool:
        return row.bid == self.target_bid

    def describe(self) -> str:
        return f"target bid ${self.target_bid:.2f}"


def _within(value: float, low: float | None, high: float | None) -> bool:
    if value < (low if low is not None else 0.0):
        return False
    return high is None or value <= high


def _inverted(low: float | None, high: float | None) -> bool:
    return low is not None and high is not None and low > high


def _bounds(low: float | None, high: float | None, fmt: str) -> str:
    low_text = fmt.format(low if low is not None else 0)
    if high is None:
        return f">={low_text}"
    return f"{low_text}-{fmt.format(high)}"
