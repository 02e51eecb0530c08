"""pandas views of scan results for the dashboard."""

from typing import Sequence

import pandas as pd

from ..analytics.bid_levels import BidLevel, LadderRung
from ..analytics.safety import assess_safety
from ..criteria.ranges import ScanCriteria, TargetBid
from ..models.scan import ScanResult
from .console import entry_marker

CONTEXT_COLUMNS = ['Marker', 'Strike', 'Bid', 'Ask', 'Distance', 'Status', 'Safety', 'Credit', 'Best']


def context_frame(
    result: ScanResult,
    criteria: ScanCriteria | TargetBid | None = None,
    dte: int | None = None,
) -> pd.DataFrame:
    """Context window as a DataFrame, one row per strike (ascending)."""
    records = []
    for entry in result.context_window:
        row = entry.row
        safety = ""
        if dte is not None and row.distance > 0:
            level = assess_safety(row.distance, dte)
            safety = f"{level.emoji} {level.label}"
        records.append({
            'Marker': entry_marker(entry, criteria).strip(),
            'Strike': row.strike,
            'Bid': row.bid,
            'Ask': row.ask,
            'Distance': round(row.distance, 2),
            'Status': entry.status.value,
            'Safety': safety,
            'Credit': row.quote.credit,
            'Best': entry.is_best,
        })
    return pd.DataFrame(records, columns=CONTEXT_COLUMNS)


def candidates_frame(result: ScanResult) -> pd.DataFrame:
    """Ranked candidates as a DataFrame (rank order preserved)."""
    records = [
        {
            'Rank': rank,
            'Strike': row.strike,
            'Bid': row.bid,
            'Distance': round(row.distance, 2),
            'Volume': row.volume,
            'Open Interest': row.open_interest,
            'IV %': row.implied_volatility,
        }
        for rank, row in enumerate(result.candidates, start=1)
    ]
    return pd.DataFrame(records, columns=['Rank', 'Strike', 'Bid', 'Distance', 'Volume', 'Open Interest', 'IV %'])


def bid_levels_frame(levels: Sequence[BidLevel], spot: float) -> pd.DataFrame:
    return pd.DataFrame(
        [
            {
                'Bid': level.bid,
                'Strikes': level.count,
                'Furthest Strike': level.furthest.strike if level.furthest else None,
                'Distance': level.distance(spot),
            }
            for level in levels
        ],
        columns=['Bid', 'Strikes', 'Furthest Strike', 'Distance'],
    )


def ladder_frame(rungs: Sequence[LadderRung]) -> pd.DataFrame:
    return pd.DataFrame(
        [
            {
                'Distance': rung.distance,
                'Strike': rung.strike,
                'Bid': rung.bid if rung.quote else None,
                'Same-bid Range': f"{rung.range_low:g}-{rung.strike:g}" if rung.has_range else "",
            }
            for rung in rungs
        ],
        columns=['Distance', 'Strike', 'Bid', 'Same-bid Range'],
    )
