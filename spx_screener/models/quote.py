"""Core Quote data model."""

from dataclasses import dataclass
from datetime import date


@dataclass(frozen=True)
class Quote:
    """A single put option contract observation.

    Immutable dataclass to prevent accidental mutations during scanning.
    Prices in index points (multiply by 100 for dollars), implied volatility
    as a percentage (25.0 = 25%).

    Distance from spot is never stored on a Quote; it is derived from the
    spot of each scan (see ScannedQuote).
    """

    strike: float
    bid: float = 0.0
    ask: float = 0.0
    last_price: float = 0.0
    volume: int = 0
    open_interest: int = 0
    implied_volatility: float = 0.0

    # Optional identification
    expiration: date | None = None
    contract_symbol: str | None = None

    @property
    def mid(self) -> float:
        """Mid price between bid and ask."""
        return (self.bid + self.ask) / 2.0

    @property
    def credit(self) -> float:
        """Dollar credit for selling one contract at the bid."""
        return self.bid * 100.0

    def __repr__(self) -> str:
        """Compact string representation for debugging."""
        exp = self.expiration.strftime('%Y-%m-%d') if self.expiration else "?"
        return (f"Quote({self.strike:g}P {exp} bid={self.bid:.2f} ask={self.ask:.2f} "
                f"vol={self.volume} oi={self.open_interest})")
