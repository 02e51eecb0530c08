"""Unit tests for core data models."""

import pytest
from dataclasses import FrozenInstanceError
from datetime import date

from spx_screener.models.quote import Quote
from spx_screener.models.scan import (
    ContextEntry,
    ExpirationChoice,
    QualificationStatus,
    ScannedQuote,
    ScanResult,
)


class TestQuote:
    """Test suite for Quote model."""

    @pytest.fixture
    def sample_quote(self):
        return Quote(
            strike=5800.0,
            bid=1.10,
            ask=1.30,
            last_price=1.20,
            volume=450,
            open_interest=3200,
            implied_volatility=18.5,
            expiration=date(2025, 1, 10),
            contract_symbol="SPXW250110P05800000",
        )

    def test_quote_creation(self, sample_quote):
        """Test basic quote creation."""
        assert sample_quote.strike == 5800.0
        assert sample_quote.bid == 1.10
        assert sample_quote.expiration == date(2025, 1, 10)

    def test_quote_defaults(self):
        """Only strike is required; everything else defaults to zero/None."""
        quote = Quote(strike=5800.0)
        assert quote.bid == 0.0
        assert quote.volume == 0
        assert quote.expiration is None
        assert quote.contract_symbol is None

    def test_quote_immutability(self, sample_quote):
        """Test that Quote is immutable."""
        with pytest.raises(FrozenInstanceError):
            sample_quote.bid = 2.0

    def test_mid_price(self, sample_quote):
        assert sample_quote.mid == pytest.approx(1.20)

    def test_credit_is_bid_times_multiplier(self, sample_quote):
        assert sample_quote.credit == pytest.approx(110.0)

    def test_repr(self, sample_quote):
        text = repr(sample_quote)
        assert "5800P" in text
        assert "2025-01-10" in text


class TestScannedQuote:
    """Test suite for ScannedQuote."""

    def test_distance_is_spot_minus_strike(self):
        row = ScannedQuote.at_spot(Quote(strike=5750.0, bid=1.0), 6000.0)
        assert row.distance == 250.0
        assert row.away_from_strike == 250.0
        assert row.is_otm

    def test_distance_recomputed_for_new_spot(self):
        """The same quote priced at two spots gives two distances."""
        quote = Quote(strike=5750.0, bid=1.0)
        assert ScannedQuote.at_spot(quote, 6000.0).distance == 250.0
        assert ScannedQuote.at_spot(quote, 5900.0).distance == 150.0

    def test_in_the_money_put(self):
        row = ScannedQuote.at_spot(Quote(strike=6050.0, bid=60.0), 6000.0)
        assert row.distance == -50.0
        assert row.away_from_strike == 50.0
        assert not row.is_otm

    def test_at_the_money_is_not_otm(self):
        row = ScannedQuote.at_spot(Quote(strike=6000.0, bid=20.0), 6000.0)
        assert not row.is_otm

    def test_passthrough_fields(self):
        quote = Quote(strike=5800.0, bid=1.1, ask=1.3, last_price=1.2,
                      volume=10, open_interest=20, implied_volatility=15.0)
        row = ScannedQuote.at_spot(quote, 6000.0)
        assert row.strike == 5800.0
        assert row.bid == 1.1
        assert row.ask == 1.3
        assert row.last_price == 1.2
        assert row.volume == 10
        assert row.open_interest == 20
        assert row.implied_volatility == 15.0

    @pytest.mark.parametrize("name,expected", [
        ("bid", 1.1),
        ("BID", 1.1),
        ("last", 1.2),
        ("oi", 20),
        ("open_interest", 20),
        ("iv", 15.0),
        ("distance_from_spx", 200.0),
        ("distance", 200.0),
        ("awayfromstrike", 200.0),
    ])
    def test_value_lookup_by_alias(self, name, expected):
        quote = Quote(strike=5800.0, bid=1.1, ask=1.3, last_price=1.2,
                      volume=10, open_interest=20, implied_volatility=15.0)
        row = ScannedQuote.at_spot(quote, 6000.0)
        assert row.value(name) == expected

    def test_value_unknown_field(self):
        row = ScannedQuote.at_spot(Quote(strike=5800.0), 6000.0)
        with pytest.raises(KeyError):
            row.value("delta")


class TestScanResult:
    """Test suite for ScanResult."""

    def test_empty_result(self):
        result = ScanResult(spot=6000.0)
        assert result.candidates == []
        assert result.best is None
        assert result.context_window == []
        assert not result.has_trade
        assert result.best_entry is None

    def test_best_entry(self):
        best = ScannedQuote.at_spot(Quote(strike=5750.0, bid=1.0), 6000.0)
        other = ScannedQuote.at_spot(Quote(strike=5700.0, bid=0.5), 6000.0)
        result = ScanResult(
            spot=6000.0,
            candidates=[best],
            best=best,
            context_window=[
                ContextEntry(other, QualificationStatus.PARTIAL),
                ContextEntry(best, QualificationStatus.QUALIFIES, is_best=True),
            ],
        )
        assert result.has_trade
        assert result.best_entry.row is best
        assert "best=5750P@1.00" in repr(result)


class TestExpirationChoice:
    """Test suite for ExpirationChoice."""

    def test_repr_exact(self):
        choice = ExpirationChoice(date(2025, 1, 10), date(2025, 1, 10), True, 1)
        assert "exact" in repr(choice)

    def test_repr_fallback(self):
        choice = ExpirationChoice(date(2025, 1, 13), date(2025, 1, 10), False, 1)
        assert "fallback from 2025-01-10" in repr(choice)
