"""Scan result data models."""

from dataclasses import dataclass, field
from datetime import date
from enum import Enum
from typing import List

from .quote import Quote

# Expression field name -> ScannedQuote attribute
FIELD_ALIASES = {
    'bid': 'bid',
    'ask': 'ask',
    'last': 'last_price',
    'lastprice': 'last_price',
    'last_price': 'last_price',
    'strike': 'strike',
    'volume': 'volume',
    'vol': 'volume',
    'oi': 'open_interest',
    'openinterest': 'open_interest',
    'open_interest': 'open_interest',
    'iv': 'implied_volatility',
    'impliedvolatility': 'implied_volatility',
    'implied_volatility': 'implied_volatility',
    'distance': 'distance',
    'distance_from_spx': 'distance',
    'distance_from_spot': 'distance',
    'awayfromstrike': 'away_from_strike',
    'away_from_strike': 'away_from_strike',
}


@dataclass(frozen=True)
class ScannedQuote:
    """A quote observed at a specific spot price.

    Created fresh by every scan so the distance always reflects the spot
    the scan was given.
    """

    quote: Quote
    distance: float  # spot - strike; positive means the put is out of the money

    @classmethod
    def at_spot(cls, quote: Quote, spot: float) -> "ScannedQuote":
        """Price a quote against the current spot."""
        return cls(quote=quote, distance=spot - quote.strike)

    @property
    def strike(self) -> float:
        return self.quote.strike

    @property
    def bid(self) -> float:
        return self.quote.bid

    @property
    def ask(self) -> float:
        return self.quote.ask

    @property
    def last_price(self) -> float:
        return self.quote.last_price

    @property
    def volume(self) -> int:
        return self.quote.volume

    @property
    def open_interest(self) -> int:
        return self.quote.open_interest

    @property
    def implied_volatility(self) -> float:
        return self.quote.implied_volatility

    @property
    def away_from_strike(self) -> float:
        """Absolute distance between spot and strike."""
        return abs(self.distance)

    @property
    def is_otm(self) -> bool:
        """Strictly out of the money (strike below spot)."""
        return self.distance > 0

    def value(self, name: str) -> float:
        """Look up a numeric field by its expression name.

        Args:
            name: Field name or alias (case-insensitive), e.g. 'bid', 'distance_from_spx'

        Raises:
            KeyError: If the name is not a known field
        """
        attr = FIELD_ALIASES[name.lower()]
        return getattr(self, attr)


class QualificationStatus(Enum):
    """How a context-window row relates to the scan criteria."""

    QUALIFIES = "qualifies"
    PARTIAL = "partial"
    CONTEXT = "context"
    TARGET = "target"


@dataclass(frozen=True)
class ContextEntry:
    """One row of the context window shown around the best strike."""

    row: ScannedQuote
    status: QualificationStatus
    is_best: bool = False


@dataclass(frozen=True)
class ExpirationChoice:
    """Expiration resolved by the expiration selector.

    is_exact_match is False when no contract expires exactly on the target
    date and the closest later expiration was used instead.
    """

    expiration: date
    target_date: date
    is_exact_match: bool
    trading_days_out: int

    def __repr__(self) -> str:
        exact = "exact" if self.is_exact_match else f"fallback from {self.target_date}"
        return f"ExpirationChoice({self.expiration} {self.trading_days_out}DTE {exact})"


@dataclass(frozen=True)
class ScanResult:
    """Outcome of one chain scan.

    candidates is the ranked filtered set, best the selected contract (None
    when nothing qualifies) and context_window the band of neighbouring
    strikes around best.
    """

    spot: float
    candidates: List[ScannedQuote] = field(default_factory=list)
    best: ScannedQuote | None = None
    context_window: List[ContextEntry] = field(default_factory=list)
    mode: str = "premium"          # "premium" or "target"
    exact_match: bool | None = None  # target mode only

    @property
    def has_trade(self) -> bool:
        """True when a best contract was selected."""
        return self.best is not None

    @property
    def best_entry(self) -> ContextEntry | None:
        """The context row marked as best, if it is inside the window."""
        for entry in self.context_window:
            if entry.is_best:
                return entry
        return None

    def __repr__(self) -> str:
        best = f"{self.best.strike:g}P@{self.best.bid:.2f}" if self.best else "none"
        return (f"ScanResult(mode={self.mode} spot={self.spot:.2f} "
                f"candidates={len(self.candidates)} best={best} "
                f"window={len(self.context_window)})")
