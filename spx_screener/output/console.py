"""Console output for SPX premium scans."""

from datetime import datetime
from typing import Sequence

from ..analytics.bid_levels import BidLevel, LadderRung
from ..analytics.safety import assess_safety
from ..criteria.ranges import ScanCriteria, TargetBid
from ..models.scan import ContextEntry, ExpirationChoice, QualificationStatus, ScanResult

MARKERS = {
    QualificationStatus.QUALIFIES: "✅",
    QualificationStatus.TARGET: "🎯",
    QualificationStatus.CONTEXT: "  ",
}
BEST_MARKER = "→ "


def display_symbol(symbol: str) -> str:
    """'^SPX' -> 'SPX'."""
    return symbol.lstrip('^').upper()


def print_header(
    symbol: str,
    spot: float,
    choice: ExpirationChoice | None,
    criteria: ScanCriteria | TargetBid | None = None,
    timestamp: datetime | None = None,
):
    """Print scan header.

    Args:
        symbol: Underlying symbol
        spot: Current underlying price
        choice: Resolved expiration (None when none was found)
        criteria: Criteria the scan ran with (omitted for chain summaries)
        timestamp: Scan time (defaults to now)
    """
    timestamp = timestamp or datetime.now()
    name = display_symbol(symbol)

    print("\n" + "=" * 60)
    print(f"  {name} DEEP PREMIUM SCAN")
    print("=" * 60)
    print(f"  Time:     {timestamp.strftime('%m/%d/%Y %I:%M:%S %p')}")
    print(f"  {name + ':':<9} {spot:.2f}")
    if choice is not None:
        note = "" if choice.is_exact_match else f" (no expiration on {choice.target_date:%m/%d})"
        print(f"  Exp:      {choice.expiration:%A, %B %d, %Y} [{choice.trading_days_out}DTE]{note}")
    if criteria is not None:
        print(f"  Criteria: {criteria.describe()}")
    print("-" * 60)


def print_no_expiration(symbol: str, trading_days: int):
    """Print the negative result when no expiration could be resolved."""
    print(f"\n❌ NO {trading_days}DTE EXPIRATION AVAILABLE FOR {display_symbol(symbol)}")
    print("   No trade recommended.\n")


def print_scan_summary(result: ScanResult):
    """Print candidate count and the best strike of a premium scan."""
    print("\nRESULTS:")
    print(f"  Qualifying strikes: {len(result.candidates)}")
    if result.best is None:
        print("  No qualifying strike found")
        return
    best = result.best
    print(f"  Best premium:       {best.strike:g}P @ {best.bid:.2f}")
    print(f"  Distance:           {best.distance:.0f}pts")


def entry_marker(entry: ContextEntry, criteria: ScanCriteria | TargetBid | None = None) -> str:
    """Marker column for a context row.

    Partial matches show 💰 when the premium condition holds and 📏 when
    only the distance condition does.
    """
    if entry.is_best:
        return BEST_MARKER
    if entry.status is QualificationStatus.PARTIAL:
        if isinstance(criteria, ScanCriteria) and not criteria.premium_ok(entry.row):
            return "📏"
        return "💰"
    return MARKERS[entry.status]


def print_context_window(
    result: ScanResult,
    criteria: ScanCriteria | TargetBid | None = None,
    dte: int | None = None,
):
    """Print the band of strikes around the best (or anchor) strike.

    Args:
        result: ScanResult to display
        criteria: Criteria used, to tell premium-only from distance-only partials
        dte: Trading days to expiration; adds a safety column when given
    """
    if not result.context_window:
        print("\nNo strikes in chain.")
        return

    print("\nCHAIN:")
    header = f"   {'Strike':>7} {'Bid':>6} {'Ask':>6} {'Dist':>6}"
    if dte is not None:
        header += "  Safety"
    print(header)
    print("-" * (len(header) + 12))

    for entry in result.context_window:
        row = entry.row
        line = (
            f"{entry_marker(entry, criteria)} {row.strike:>7g} {row.bid:>6.2f} "
            f"{row.ask:>6.2f} {row.distance:>6.0f}"
        )
        if dte is not None and row.distance > 0:
            level = assess_safety(row.distance, dte)
            line += f"  {level.emoji} {level.label}"
        print(line)


def print_suggested_trade(result: ScanResult, symbol: str = "^SPX", dry: bool = False):
    """Print the trade suggestion (or the reason there is none).

    Args:
        result: ScanResult with the selected contract
        symbol: Underlying symbol used in the order preview
        dry: Skip the order preview
    """
    print("\nSUGGESTED TRADE:")
    best = result.best
    if best is None:
        print("   ⚠️  NO TRADE RECOMMENDED")
        if result.mode == "premium" and not result.candidates:
            print("   No strike meets every condition; try different parameters")
        else:
            print("   No qualifying strike has a positive bid out of the money")
        return

    print(f"   SELL 1x {best.strike:g}P")
    print(f"   Premium: ${best.bid:.2f}")
    print(f"   Credit:  ${best.quote.credit:.0f}")

    if not dry:
        print("\n💸 Order preview")
        print(f"    SELL 1 {display_symbol(symbol)} {best.strike:g}P")
        print(f"    LIMIT {best.bid:.2f}   Credit ${best.quote.credit:.2f}")


def print_target_summary(result: ScanResult, target: TargetBid):
    """Print the target-bid summary: where the bid was found and the strike to use."""
    print("\nSUMMARY:")
    if result.best is None:
        print(f"  No positive bids in chain; nothing near ${target.target_bid:.2f}")
        return

    if result.exact_match:
        found_at = max(row.strike for row in result.candidates)
        print(f"  Bid of ${target.target_bid:.2f} found at strike {found_at:g} "
              f"({len(result.candidates)} strikes)")
        print(f"  Recommended strike with same bid: {result.best.strike:g}")
    else:
        best = result.best
        print(f"  No strike bid exactly ${target.target_bid:.2f}")
        print(f"  Closest: {best.strike:g}P @ {best.bid:.2f} ({best.distance:.0f}pts)")


def print_bid_levels(levels: Sequence[BidLevel], spot: float):
    """Print the bid level summary."""
    print("\nBID LEVEL SUMMARY:")
    for level in levels:
        if level.furthest is None:
            print(f"  ${level.bid:.2f}: none")
            continue
        print(f"  ${level.bid:.2f}: {level.count} strikes, furthest {level.furthest.strike:g} "
              f"({level.distance(spot):.0f}pts)")


def print_ladder(rungs: Sequence[LadderRung]):
    """Print the distance ladder."""
    print("\nDISTANCE LADDER:")
    print(f"  {'Dist':>5} {'Strike':>7} {'Bid':>6}  Same-bid range")
    print("  " + "-" * 40)
    for rung in rungs:
        if rung.quote is None:
            print(f"  {rung.distance:>5.0f} {rung.strike:>7g} {'n/a':>6}  no data")
            continue
        span = f"{rung.range_low:g}-{rung.strike:g}" if rung.has_range else ""
        print(f"  {rung.distance:>5.0f} {rung.strike:>7g} {rung.bid:>6.2f}  {span}")
