"""Premium landscape summaries for a put chain.

Two views complement the ranked scan:

- Bid levels: for a few round premiums, how many strikes pay exactly that
  bid and which of them is furthest out of the money.
- Distance ladder: the bid paid at fixed distances below spot, together
  with the range of lower strikes paying the same bid.
"""

import math
from dataclasses import dataclass
from typing import Dict, Iterable, List, Sequence

from ..models.quote import Quote

DEFAULT_BID_LEVELS = (0.05, 0.10, 0.15, 0.20, 0.25, 0.50, 1.00)
DEFAULT_LADDER_DISTANCES = (150, 200, 250, 350)


@dataclass(frozen=True)
class BidLevel:
    """Strikes quoted at one bid level."""

    bid: float
    count: int
    furthest: Quote | None  # lowest strike paying this bid

    def distance(self, spot: float) -> float | None:
        return spot - self.furthest.strike if self.furthest else None


@dataclass(frozen=True)
class LadderRung:
    """Bid at a fixed distance below spot.

    quote is None when the chain has no contract at the target strike.
    range_low is the lowest strike at or below the target strike paying the
    same (positive) bid; it equals strike when no lower strike does.
    """

    distance: float
    strike: float
    quote: Quote | None
    range_low: float | None = None

    @property
    def bid(self) -> float:
        return self.quote.bid if self.quote else 0.0

    @property
    def has_range(self) -> bool:
        return self.range_low is not None and self.range_low < self.strike


def _bid_key(bid: float) -> str:
    return f"{bid:.2f}"


def summarize_bid_levels(
    chain: Iterable[Quote],
    levels: Sequence[float] = DEFAULT_BID_LEVELS,
) -> List[BidLevel]:
    """Count positive-bid quotes at each level (bids compared to the cent).

    Args:
        chain: Put quotes for one expiration
        levels: Bid levels to report, in display order

    Returns:
        One BidLevel per requested level (count 0 when nothing matches)
    """
    grouped: Dict[str, List[Quote]] = {}
    for quote in chain:
        if quote.bid > 0:
            grouped.setdefault(_bid_key(quote.bid), []).append(quote)

    summary = []
    for level in levels:
        quotes = grouped.get(_bid_key(level), [])
        furthest = min(quotes, key=lambda q: q.strike) if quotes else None
        summary.append(BidLevel(bid=level, count=len(quotes), furthest=furthest))
    return summary


def ladder_strike(spot: float, distance: float, strike_step: float = 5.0) -> float:
    """Strike ``distance`` points below spot, rounded down to the strike grid."""
    return math.floor((spot - distance) / strike_step) * strike_step


def distance_ladder(
    spot: float,
    chain: Sequence[Quote],
    distances: Sequence[float] = DEFAULT_LADDER_DISTANCES,
    strike_step: float = 5.0,
) -> List[LadderRung]:
    """Build the distance ladder.

    Args:
        spot: Current underlying price
        chain: Put quotes for one expiration
        distances: Distances below spot, in display order
        strike_step: Strike increment of the chain

    Returns:
        One LadderRung per distance
    """
    if strike_step <= 0:
        raise ValueError(f"strike_step must be positive, got {strike_step}")

    by_strike = {}
    for quote in chain:
        by_strike.setdefault(quote.strike, quote)

    rungs = []
    for distance in distances:
        strike = ladder_strike(spot, distance, strike_step)
        quote = by_strike.get(strike)
        range_low = None
        if quote is not None and quote.bid > 0:
            range_low = min(
                (q.strike for q in chain if q.bid == quote.bid and q.strike <= strike),
                default=strike,
            )
        rungs.append(LadderRung(distance=distance, strike=strike, quote=quote, range_low=range_low))
    return rungs
