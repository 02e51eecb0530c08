"""End-to-end tests simulating real-world screening workflows.

A chain file is loaded through the CSV provider, the expiration is resolved
with the NYSE calendar, and the scan result is rendered the way the CLI and
dashboard show it.
"""

import pytest
import yaml
from datetime import date
from unittest.mock import patch

from spx_screener.analytics.bid_levels import distance_ladder, summarize_bid_levels
from spx_screener.criteria.expression import ExpressionCriteria
from spx_screener.criteria.query import parse_query
from spx_screener.criteria.ranges import TargetBid
from spx_screener.data.providers import CSVChainProvider
from spx_screener.market.trading_calendar import create_calendar
from spx_screener.models.scan import QualificationStatus
from spx_screener.output.frames import context_frame
from spx_screener.scanning.runner import run_scan
from spx_screener.utils.config import load_config

FRIDAY = date(2025, 1, 17)       # before the MLK Day weekend
TUESDAY = date(2025, 1, 21)      # next trading day (Monday 01/20 is closed)
SPOT = 6012.35


@pytest.fixture
def chain_csv(tmp_path):
    """Realistic 1DTE chain for 2025-01-21: 5 point strikes from 5500 to 6000."""
    lines = ["strike,bid,ask,lastPrice,volume,openInterest,impliedVolatility,expiration"]
    for strike in range(5500, 6005, 5):
        distance = SPOT - strike
        bid = round(40.0 * (0.985 ** distance), 2)
        ask = round(bid + 0.10, 2)
        lines.append(f"{strike},{bid:.2f},{ask:.2f},{bid:.2f},{strike % 7 * 10},{strike % 11 * 100},"
                     f"0.{20 + strike % 9},2025-01-21")
    # A 0DTE row for the Friday expiration
    lines.append("5800,0.05,0.10,0.05,100,500,0.30,2025-01-17")
    path = tmp_path / "spx_chain.csv"
    path.write_text("\n".join(lines) + "\n")
    return path


@pytest.fixture
def provider(chain_csv):
    return CSVChainProvider(chain_csv, spot=SPOT)


@pytest.fixture
def config():
    return load_config()


@pytest.fixture
def calendar(config):
    return create_calendar(config.calendar)


@pytest.fixture(autouse=True)
def no_sleep():
    with patch("spx_screener.utils.error_handling.time.sleep"):
        yield


class TestE2EQueryWorkflow:
    """Query string -> expiration over a holiday -> ranked trade."""

    def test_next_trading_day_skips_holiday(self, provider, config, calendar):
        request = parse_query("tradingdays=1 AND minbid>=1.00 AND distance>=200", config.query_defaults)
        outcome = run_scan(provider, config.symbol, request.trading_days, request.criteria,
                           calendar, today=FRIDAY, context_size=config.context_size)

        assert outcome.expiration.expiration == TUESDAY
        assert outcome.expiration.is_exact_match

        result = outcome.result
        assert result.best is not None
        assert result.best.distance >= 200
        assert result.best.bid >= 1.00
        # Bids fall with distance, so the best strike is the closest one allowed
        assert result.best.strike == 5810

    def test_every_candidate_satisfies_query(self, provider, config, calendar):
        request = parse_query("td1 minbid0.50 distance250")
        outcome = run_scan(provider, config.symbol, 1, request.criteria, calendar, today=FRIDAY)

        assert outcome.result.candidates
        for row in outcome.result.candidates:
            assert row.bid >= 0.50
            assert row.distance >= 250

    def test_context_window_for_display(self, provider, config, calendar):
        request = parse_query("tradingdays=1 AND minbid>=1.00 AND distance>=200")
        outcome = run_scan(provider, config.symbol, 1, request.criteria, calendar, today=FRIDAY)
        df = context_frame(outcome.result, request.criteria, dte=1)

        assert len(df) == 2 * config.context_size + 1
        assert df['Strike'].is_monotonic_increasing
        assert df['Best'].sum() == 1
        statuses = {e.status for e in outcome.result.context_window}
        assert QualificationStatus.QUALIFIES in statuses
        assert QualificationStatus.PARTIAL in statuses


class TestE2ETargetAndSummaries:
    """Target bid and chain summaries on the same chain."""

    def test_target_bid_furthest_strike(self, provider, config, calendar):
        outcome = run_scan(provider, config.symbol, 1, TargetBid(0.05), calendar, today=FRIDAY)
        result = outcome.result

        if result.exact_match:
            assert result.best.strike == min(r.strike for r in result.candidates)
            assert all(r.bid == 0.05 for r in result.candidates)
        else:
            assert result.best.bid > 0

    def test_zero_dte_uses_friday_row(self, provider, config, calendar):
        outcome = run_scan(provider, config.symbol, 0, TargetBid(0.05), calendar, today=FRIDAY)
        assert outcome.expiration.expiration == FRIDAY
        assert outcome.result.best.strike == 5800

    def test_expression_filter(self, provider, config, calendar):
        criteria = ExpressionCriteria.from_string("bid >= 0.10 AND distance_from_spx BETWEEN 300 AND 400")
        outcome = run_scan(provider, config.symbol, 1, criteria, calendar, today=FRIDAY)

        assert all(300 <= r.distance <= 400 for r in outcome.result.candidates)

    def test_summaries(self, provider, config):
        chain = provider.get_put_chain(config.symbol, TUESDAY)
        levels = summarize_bid_levels(chain, config.bid_levels)
        rungs = distance_ladder(SPOT, chain, config.ladder_distances, config.strike_step)

        assert [lvl.bid for lvl in levels] == list(config.bid_levels)
        assert [r.strike for r in rungs] == [5860, 5810, 5760, 5660]
        assert all(r.quote is not None for r in rungs)


class TestE2EConfigOverrides:
    """User config merged over the defaults changes scan behaviour."""

    def test_override_context_and_calendar(self, tmp_path, provider):
        path = tmp_path / "override.yaml"
        path.write_text(yaml.safe_dump({
            'scan': {'context_size': 1},
            'calendar': {'type': 'list', 'holidays': []},
        }))
        config = load_config(path)
        calendar = create_calendar(config.calendar)

        # With no holidays listed, Monday 01/20 counts and Tuesday is a fallback
        outcome = run_scan(provider, config.symbol, 1, config.preset("tomorrow").criteria, calendar,
                           today=FRIDAY, context_size=config.context_size)

        assert outcome.expiration.target_date == date(2025, 1, 20)
        assert outcome.expiration.expiration == TUESDAY
        assert not outcome.expiration.is_exact_match
        assert len(outcome.result.context_window) == 3
