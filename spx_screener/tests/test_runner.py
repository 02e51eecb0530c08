"""Tests for fetch-then-scan orchestration with an in-memory provider."""

import pytest
from datetime import date
from unittest.mock import patch

from spx_screener.criteria.ranges import RangeCriteria, TargetBid
from spx_screener.data.providers import MarketDataProvider
from spx_screener.models.quote import Quote
from spx_screener.scanning.runner import RetryPolicy, fetch_priced_chain, run_scan
from spx_screener.utils.error_handling import MarketDataError

FRIDAY = date(2025, 1, 10)
MONDAY = date(2025, 1, 13)


def weekdays(day):
    return day.weekday() < 5


class FakeProvider(MarketDataProvider):
    """Serves fixed data; the first ``failures`` spot requests raise MarketDataError."""

    name = "fake"

    def __init__(self, spot=6000.0, chains=None, failures=0):
        self.spot = spot
        self.chains = chains or {}
        self.failures = failures
        self.spot_calls = 0
        self.chain_requests = []

    def get_spot(self, symbol):
        self.spot_calls += 1
        if self.spot_calls <= self.failures:
            raise MarketDataError("quote endpoint timed out")
        return self.spot

    def get_expirations(self, symbol):
        return sorted(self.chains)

    def get_put_chain(self, symbol, expiration):
        self.chain_requests.append(expiration)
        return list(self.chains[expiration])


@pytest.fixture
def chain():
    return [
        Quote(strike=5700, bid=0.50, ask=0.60),
        Quote(strike=5750, bid=1.00, ask=1.10),
        Quote(strike=5800, bid=2.00, ask=2.20),
    ]


@pytest.fixture
def provider(chain):
    return FakeProvider(chains={FRIDAY: chain, MONDAY: chain})


@pytest.fixture(autouse=True)
def no_sleep():
    with patch("spx_screener.utils.error_handling.time.sleep") as sleep:
        yield sleep


class TestFetchPricedChain:
    """Test suite for fetch_priced_chain."""

    def test_zero_dte(self, provider):
        priced = fetch_priced_chain(provider, "^SPX", 0, weekdays, today=FRIDAY)

        assert priced.spot == 6000.0
        assert priced.expiration == FRIDAY
        assert len(priced.chain) == 3
        assert provider.chain_requests == [FRIDAY]

    def test_next_trading_day_over_weekend(self, provider):
        priced = fetch_priced_chain(provider, "^SPX", 1, weekdays, today=FRIDAY)
        assert priced.expiration == MONDAY

    def test_no_expiration_skips_chain_fetch(self, provider):
        priced = fetch_priced_chain(provider, "^SPX", 0, weekdays, today=date(2025, 1, 9))

        assert priced.choice is None
        assert priced.chain == []
        assert provider.chain_requests == []

    def test_retries_transient_errors(self, provider, no_sleep):
        provider.failures = 2
        priced = fetch_priced_chain(provider, "^SPX", 0, weekdays, today=FRIDAY,
                                    retry=RetryPolicy(max_retries=3, backoff_factor=2.0))

        assert priced.spot == 6000.0
        assert provider.spot_calls == 3
        assert no_sleep.call_count == 2

    def test_gives_up_after_retries(self, provider):
        provider.failures = 5
        with pytest.raises(MarketDataError, match="timed out"):
            fetch_priced_chain(provider, "^SPX", 0, weekdays, today=FRIDAY,
                               retry=RetryPolicy(max_retries=2))
        assert provider.spot_calls == 2

    def test_negative_trading_days(self, provider):
        with pytest.raises(ValueError):
            fetch_priced_chain(provider, "^SPX", -1, weekdays, today=FRIDAY)


class TestRunScan:
    """Test suite for run_scan."""

    def test_premium_scan(self, provider):
        outcome = run_scan(provider, "^SPX", 1, RangeCriteria(min_premium=1.00, min_distance=250),
                           weekdays, today=FRIDAY)

        assert outcome.expiration.expiration == MONDAY
        assert outcome.trading_days == 1
        assert outcome.has_trade
        assert outcome.result.best.strike == 5750

    def test_target_bid(self, provider):
        outcome = run_scan(provider, "^SPX", 0, TargetBid(2.00), weekdays, today=FRIDAY)

        assert outcome.result.exact_match is True
        assert outcome.result.best.strike == 5800

    def test_no_expiration(self, provider):
        outcome = run_scan(provider, "^SPX", 0, RangeCriteria(min_premium=1.0), weekdays,
                           today=date(2025, 1, 9))

        assert outcome.result is None
        assert not outcome.has_trade
        assert outcome.spot == 6000.0

    def test_context_size_forwarded(self, provider):
        outcome = run_scan(provider, "^SPX", 0, RangeCriteria(min_premium=1.0), weekdays,
                           today=FRIDAY, context_size=0)
        assert len(outcome.result.context_window) == 1

    def test_fresh_spot_each_run(self, chain):
        """Distances follow the spot fetched by each run."""
        provider = FakeProvider(chains={FRIDAY: chain})
        criteria = RangeCriteria(min_premium=1.00, min_distance=250)

        first = run_scan(provider, "^SPX", 0, criteria, weekdays, today=FRIDAY)
        provider.spot = 6050.0
        second = run_scan(provider, "^SPX", 0, criteria, weekdays, today=FRIDAY)

        assert first.result.best.strike == 5750
        assert second.result.best.strike == 5800
