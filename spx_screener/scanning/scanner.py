"""Chain scanning and ranking.

Filters a put chain against scan criteria, ranks the survivors by premium,
selects a single best strike and builds the context window shown around it.
Pure functions: no state survives between calls.
"""

import logging
import math
from typing import Iterable, List, Sequence

from ..criteria.ranges import ScanCriteria, TargetBid
from ..models.quote import Quote
from ..models.scan import ContextEntry, QualificationStatus, ScannedQuote, ScanResult

logger = logging.getLogger("spx_screener.scanner")

DEFAULT_CONTEXT_SIZE = 4
DEFAULT_STRIKE_STEP = 5.0


def price_chain(spot: float, chain: Iterable[Quote]) -> List[ScannedQuote]:
    """Attach distance from spot to every quote (chain order preserved)."""
    return [ScannedQuote.at_spot(quote, spot) for quote in chain]


def rank_key(row: ScannedQuote) -> tuple:
    """Highest bid first; equal bids resolved by lowest strike."""
    return (-row.bid, row.strike)


def rank_candidates(rows: Iterable[ScannedQuote]) -> List[ScannedQuote]:
    """Sort candidates by rank_key."""
    return sorted(rows, key=rank_key)


def select_best(ranked: Sequence[ScannedQuote]) -> ScannedQuote | None:
    """First ranked candidate that is out of the money with a positive bid.

    At/in-the-money strikes and zero bids never become the best strike, so
    a chain without such a candidate yields None ("no trade").
    """
    for row in ranked:
        if row.is_otm and row.bid > 0:
            return row
    return None


def scan(
    spot: float,
    chain: Sequence[Quote],
    criteria: ScanCriteria | TargetBid,
    context_size: int = DEFAULT_CONTEXT_SIZE,
    strike_step: float = DEFAULT_STRIKE_STEP,
) -> ScanResult:
    """Scan a put chain.

    Args:
        spot: Current price of the underlying
        chain: Put quotes for a single expiration
        criteria: ScanCriteria for premium-ranked mode, TargetBid for target mode
        context_size: Strikes to show on each side of the best strike
        strike_step: Strike increment used to locate the fallback anchor

    Returns:
        ScanResult (empty when the chain is empty)
    """
    if context_size < 0:
        raise ValueError(f"context_size must be >= 0, got {context_size}")

    mode = "target" if isinstance(criteria, TargetBid) else "premium"
    if not chain:
        logger.info("Empty chain - nothing to scan")
        return ScanResult(
            spot=spot,
            mode=mode,
            exact_match=False if mode == "target" else None,
        )

    rows = price_chain(spot, chain)

    if isinstance(criteria, TargetBid):
        return _scan_target_bid(spot, rows, criteria, context_size)

    candidates = rank_candidates(row for row in rows if criteria.matches(row))
    best = select_best(candidates)

    logger.info(
        "Scan (%s): %d/%d strikes qualify, best=%s",
        criteria.describe(), len(candidates), len(rows),
        f"{best.strike:g}P@{best.bid:.2f}" if best else "none",
    )

    ordered = sort_by_strike(rows)
    if best is not None:
        center = _index_of(ordered, best)
    else:
        center = anchor_index(ordered, spot, criteria.anchor_distance, strike_step)

    window = [
        ContextEntry(
            row=row,
            status=qualification_status(row, criteria),
            is_best=row is best,
        )
        for row in context_slice(ordered, center, context_size)
    ]

    return ScanResult(
        spot=spot,
        candidates=candidates,
        best=best,
        context_window=window,
        mode="premium",
    )


def _scan_target_bid(
    spot: float,
    rows: List[ScannedQuote],
    criteria: TargetBid,
    context_size: int,
) -> ScanResult:
    """Target-bid mode.

    Exact matches win and the lowest strike among them (furthest out of the
    money for that premium) is chosen. Without an exact match the positive
    bid closest to the target is used, earlier chain rows winning ties.
    """
    exact = sorted((row for row in rows if criteria.is_target(row)), key=lambda r: r.strike)

    if exact:
        best = exact[0]
        candidates = exact
    else:
        positive = [row for row in rows if row.bid > 0]
        # min() keeps the first of equal keys, i.e. chain order
        best = min(positive, key=lambda r: abs(r.bid - criteria.target_bid)) if positive else None
        candidates = []

    logger.info(
        "Target bid %.2f: %d exact matches, best=%s",
        criteria.target_bid, len(exact),
        f"{best.strike:g}P@{best.bid:.2f}" if best else "none",
    )

    ordered = sort_by_strike(rows)
    center = _index_of(ordered, best) if best is not None else anchor_index(ordered, spot, None)

    window = [
        ContextEntry(
            row=row,
            status=QualificationStatus.TARGET if criteria.is_target(row) else QualificationStatus.CONTEXT,
            is_best=row is best,
        )
        for row in context_slice(ordered, center, context_size)
    ]

    return ScanResult(
        spot=spot,
        candidates=candidates,
        best=best,
        context_window=window,
        mode="target",
        exact_match=bool(exact),
    )


def qualification_status(row: ScannedQuote, criteria: ScanCriteria) -> QualificationStatus:
    """Classify a row for display by re-testing it against the criteria."""
    if criteria.matches(row):
        return QualificationStatus.QUALIFIES
    if criteria.premium_ok(row) or criteria.distance_ok(row):
        return QualificationStatus.PARTIAL
    return QualificationStatus.CONTEXT


def sort_by_strike(rows: Iterable[ScannedQuote]) -> List[ScannedQuote]:
    """Stable ascending sort by strike."""
    return sorted(rows, key=lambda r: r.strike)


def anchor_index(
    ordered: Sequence[ScannedQuote],
    spot: float,
    distance: float | None,
    strike_step: float = DEFAULT_STRIKE_STEP,
) -> int:
    """Window centre when no best strike exists.

    The target strike is ``spot - distance`` rounded down to the strike grid;
    the anchor is the first strike at or above it (the last strike if none).
    """
    if not ordered:
        return 0
    step = strike_step if strike_step > 0 else 1.0
    target = math.floor((spot - (distance or 0.0)) / step) * step
    for i, row in enumerate(ordered):
        if row.strike >= target:
            return i
    return len(ordered) - 1


def context_slice(
    ordered: Sequence[ScannedQuote],
    center: int,
    context_size: int,
) -> List[ScannedQuote]:
    """Contiguous slice of up to ``2 * context_size + 1`` rows around ``center``.

    Near either end of the chain the slice shifts inward so that it always
    holds ``min(2 * context_size + 1, len(ordered))`` rows.
    """
    n = len(ordered)
    if n == 0:
        return []
    width = min(2 * context_size + 1, n)
    center = max(0, min(center, n - 1))
    start = max(0, min(center - context_size, n - width))
    return list(ordered[start:start + width])


def _index_of(ordered: Sequence[ScannedQuote], target: ScannedQuote) -> int:
    for i, row in enumerate(ordered):
        if row is target:
            return i
    raise ValueError("Row is not part of the chain")
