"""Fetch-then-scan orchestration.

The runner is the only place that talks to a market data provider. It
resolves the expiration, fetches spot and chain (retrying provider errors
with exponential backoff) and hands plain values to the pure scanner.
"""

import logging
from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Callable, List

from ..criteria.ranges import ScanCriteria, TargetBid
from ..data.providers import MarketDataProvider
from ..models.quote import Quote
from ..models.scan import ExpirationChoice, ScanResult
from ..selection.expiration import select_expiration
from ..utils.error_handling import MarketDataError, retry_with_backoff
from .scanner import DEFAULT_CONTEXT_SIZE, DEFAULT_STRIKE_STEP, scan

logger = logging.getLogger("spx_screener.runner")


@dataclass(frozen=True)
class RetryPolicy:
    max_retries: int = 3
    backoff_factor: float = 2.0
    max_wait: float | None = 30.0

    def wrap(self, func: Callable) -> Callable:
        return retry_with_backoff(
            max_retries=self.max_retries,
            backoff_factor=self.backoff_factor,
            max_wait=self.max_wait,
            exceptions=(MarketDataError,),
        )(func)


@dataclass(frozen=True)
class PricedChain:
    """Spot, resolved expiration and put chain fetched together."""

    symbol: str
    spot: float
    choice: ExpirationChoice | None
    chain: List[Quote] = field(default_factory=list)

    @property
    def expiration(self) -> date | None:
        return self.choice.expiration if self.choice else None


@dataclass(frozen=True)
class ScanOutcome:
    """Result of one end-to-end scan.

    result is None when no expiration could be resolved.
    """

    symbol: str
    spot: float
    expiration: ExpirationChoice | None
    result: ScanResult | None
    criteria: ScanCriteria | TargetBid
    timestamp: datetime
    trading_days: int = 0

    @property
    def has_trade(self) -> bool:
        return self.result is not None and self.result.has_trade


def fetch_priced_chain(
    provider: MarketDataProvider,
    symbol: str,
    trading_days: int,
    is_trading_day: Callable[[date], bool],
    today: date | None = None,
    retry: RetryPolicy | None = None,
) -> PricedChain:
    """Fetch spot, pick the expiration ``trading_days`` out and fetch its put chain.

    Args:
        provider: Market data provider
        symbol: Underlying symbol (e.g. '^SPX')
        trading_days: Trading days out (0 = today's expiration)
        is_trading_day: Trading-day predicate for the expiration walk
        today: Reference date (defaults to date.today())
        retry: Retry policy for provider calls

    Returns:
        PricedChain (choice None and empty chain when no expiration resolves)

    Raises:
        ValueError: If trading_days is negative
        MarketDataError: If the provider keeps failing after retries
    """
    if trading_days < 0:
        raise ValueError(f"trading_days must be >= 0, got {trading_days}")

    retry = retry or RetryPolicy()
    today = today or date.today()

    spot = retry.wrap(provider.get_spot)(symbol)
    expirations = retry.wrap(provider.get_expirations)(symbol)
    logger.info("%s spot %.2f, %d expirations listed", symbol, spot, len(expirations))

    choice = select_expiration(trading_days, expirations, today, is_trading_day)
    if choice is None:
        logger.warning("No %dDTE expiration available for %s from %s", trading_days, symbol, today)
        return PricedChain(symbol=symbol, spot=spot, choice=None)

    if not choice.is_exact_match:
        logger.info("No expiration on %s, using %s", choice.target_date, choice.expiration)

    chain = retry.wrap(provider.get_put_chain)(symbol, choice.expiration)
    logger.info("Fetched %d puts for %s %s", len(chain), symbol, choice.expiration)
    return PricedChain(symbol=symbol, spot=spot, choice=choice, chain=chain)


def run_scan(
    provider: MarketDataProvider,
    symbol: str,
    trading_days: int,
    criteria: ScanCriteria | TargetBid,
    is_trading_day: Callable[[date], bool],
    today: date | None = None,
    context_size: int = DEFAULT_CONTEXT_SIZE,
    strike_step: float = DEFAULT_STRIKE_STEP,
    retry: RetryPolicy | None = None,
) -> ScanOutcome:
    """Resolve the expiration, fetch the chain and scan it.

    Criteria are built (and validated) by the caller before this is called,
    so malformed input never reaches the provider.
    """
    priced = fetch_priced_chain(provider, symbol, trading_days, is_trading_day, today, retry)

    result = None
    if priced.choice is not None:
        result = scan(priced.spot, priced.chain, criteria, context_size, strike_step)

    return ScanOutcome(
        symbol=symbol,
        spot=priced.spot,
        expiration=priced.choice,
        result=result,
        criteria=criteria,
        timestamp=datetime.now(),
        trading_days=trading_days,
    )
