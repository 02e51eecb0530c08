"""Unit tests for market data providers (network calls mocked)."""

import pytest
from datetime import date
from unittest.mock import MagicMock, PropertyMock, patch

import pandas as pd
import requests

from spx_screener.data.providers import (
    CSVChainProvider,
    TradierProvider,
    YFinanceProvider,
    create_provider,
)
from spx_screener.utils.error_handling import ConfigurationError, MarketDataError

EXPIRATION = date(2025, 1, 10)


def tradier_response(payload, status_code=200):
    response = MagicMock()
    response.status_code = status_code
    response.json.return_value = payload
    response.text = str(payload)
    return response


class TestYFinanceProvider:
    """Test suite for the yfinance provider."""

    @pytest.fixture
    def ticker(self):
        with patch("spx_screener.data.providers.yf.Ticker") as ticker_cls:
            yield ticker_cls.return_value

    def test_spot_from_info(self, ticker):
        ticker.info = {'regularMarketPrice': 6012.5}
        assert YFinanceProvider().get_spot("^SPX") == 6012.5

    def test_spot_falls_back_to_history(self, ticker):
        ticker.info = {}
        ticker.history.return_value = pd.DataFrame({'Close': [5990.0, 6001.25]})
        assert YFinanceProvider().get_spot("^SPX") == 6001.25

    def test_no_price(self, ticker):
        ticker.info = {}
        ticker.history.return_value = pd.DataFrame({'Close': []})
        with pytest.raises(MarketDataError, match="No price available"):
            YFinanceProvider().get_spot("^SPX")

    def test_spot_error_wrapped(self, ticker):
        type(ticker).info = PropertyMock(side_effect=RuntimeError("rate limited"))
        with pytest.raises(MarketDataError, match="rate limited"):
            YFinanceProvider().get_spot("^SPX")

    def test_expirations_sorted(self, ticker):
        ticker.options = ("2025-01-13", "2025-01-10")
        assert YFinanceProvider().get_expirations("^SPX") == [date(2025, 1, 10), date(2025, 1, 13)]

    def test_put_chain(self, ticker):
        puts = pd.DataFrame([
            {'contractSymbol': 'SPXW250110P05750000', 'strike': 5750.0, 'bid': 1.0, 'ask': 1.1,
             'lastPrice': 1.05, 'volume': float('nan'), 'openInterest': 800, 'impliedVolatility': 0.2},
            {'contractSymbol': 'SPXW250110P05800000', 'strike': 5800.0, 'bid': 2.0, 'ask': 1.0,
             'lastPrice': 2.0, 'volume': 10, 'openInterest': 900, 'impliedVolatility': 0.18},
        ])
        ticker.option_chain.return_value = MagicMock(puts=puts)

        quotes = YFinanceProvider().get_put_chain("^SPX", EXPIRATION)

        ticker.option_chain.assert_called_once_with("2025-01-10")
        assert [q.strike for q in quotes] == [5750.0, 5800.0]
        assert quotes[1].bid == 2.0
        assert quotes[0].volume == 0
        assert quotes[0].implied_volatility == pytest.approx(20.0)
        assert quotes[0].expiration == EXPIRATION

    def test_chain_error_wrapped(self, ticker):
        ticker.option_chain.side_effect = ValueError("Expiration not found")
        with pytest.raises(MarketDataError, match="Failed to retrieve option chain"):
            YFinanceProvider().get_put_chain("^SPX", EXPIRATION)


class TestTradierProvider:
    """Test suite for the Tradier provider."""

    @pytest.fixture
    def provider(self):
        return TradierProvider(api_token="test-token")

    @pytest.fixture
    def mock_get(self):
        with patch("spx_screener.data.providers.requests.get") as get:
            yield get

    def test_token_required(self, monkeypatch):
        monkeypatch.delenv("TRADIER_SANDBOX_TOKEN", raising=False)
        with pytest.raises(ConfigurationError, match="TRADIER_SANDBOX_TOKEN"):
            TradierProvider()

    def test_token_from_environment(self, monkeypatch):
        monkeypatch.setenv("TRADIER_TOKEN", "prod-token")
        provider = TradierProvider(sandbox=False)
        assert provider.base_url == "https://api.tradier.com/v1"
        assert provider.headers['Authorization'] == "Bearer prod-token"

    def test_spot(self, provider, mock_get):
        mock_get.return_value = tradier_response({'quotes': {'quote': {'symbol': 'SPX', 'last': 6005.3}}})

        assert provider.get_spot("^SPX") == 6005.3
        _, kwargs = mock_get.call_args
        assert kwargs['params'] == {'symbols': 'SPX'}
        assert kwargs['timeout'] == 10.0

    def test_spot_uses_previous_close(self, provider, mock_get):
        mock_get.return_value = tradier_response({'quotes': {'quote': [{'last': None, 'prevclose': 5990.0}]}})
        assert provider.get_spot("SPX") == 5990.0

    def test_expirations_single_string(self, provider, mock_get):
        mock_get.return_value = tradier_response({'expirations': {'date': '2025-01-10'}})
        assert provider.get_expirations("SPX") == [EXPIRATION]

    def test_expirations_empty(self, provider, mock_get):
        mock_get.return_value = tradier_response({'expirations': None})
        assert provider.get_expirations("SPX") == []

    def test_put_chain_filters_calls(self, provider, mock_get):
        mock_get.return_value = tradier_response({'options': {'option': [
            {'symbol': 'SPXW250110P05750000', 'option_type': 'put', 'strike': 5750.0,
             'bid': 1.0, 'ask': 1.1, 'last': 1.0, 'volume': 5, 'open_interest': 100,
             'expiration_date': '2025-01-10', 'greeks': {'mid_iv': 0.21}},
            {'symbol': 'SPXW250110C05750000', 'option_type': 'call', 'strike': 5750.0,
             'bid': 250.0, 'ask': 252.0},
        ]}})

        quotes = provider.get_put_chain("SPX", EXPIRATION)

        assert len(quotes) == 1
        assert quotes[0].contract_symbol == 'SPXW250110P05750000'
        assert quotes[0].open_interest == 100
        assert quotes[0].implied_volatility == pytest.approx(21.0)

    def test_http_error(self, provider, mock_get):
        mock_get.return_value = tradier_response({'fault': 'unauthorized'}, status_code=401)
        with pytest.raises(MarketDataError, match="401"):
            provider.get_spot("SPX")

    def test_transport_error(self, provider, mock_get):
        mock_get.side_effect = requests.ConnectionError("connection reset")
        with pytest.raises(MarketDataError, match="connection reset"):
            provider.get_expirations("SPX")

    def test_invalid_json(self, provider, mock_get):
        response = tradier_response(None)
        response.json.side_effect = ValueError("Expecting value")
        mock_get.return_value = response
        with pytest.raises(MarketDataError, match="Invalid JSON"):
            provider.get_spot("SPX")


class TestCSVChainProvider:
    """Test suite for the offline CSV provider."""

    @pytest.fixture
    def chain_csv(self, tmp_path):
        path = tmp_path / "chain.csv"
        path.write_text(
            "strike,bid,ask,expiration\n"
            "5700,0.50,0.60,2025-01-10\n"
            "5750,1.00,1.10,2025-01-10\n"
            "5800,2.00,2.20,2025-01-13\n"
        )
        return path

    def test_expirations_from_file(self, chain_csv):
        provider = CSVChainProvider(chain_csv, spot=6000.0)
        assert provider.get_expirations("SPX") == [date(2025, 1, 10), date(2025, 1, 13)]

    def test_chain_for_expiration(self, chain_csv):
        provider = CSVChainProvider(chain_csv, spot=6000.0)
        assert [q.strike for q in provider.get_put_chain("SPX", EXPIRATION)] == [5700.0, 5750.0]

    def test_undated_rows_take_given_expiration(self, tmp_path):
        path = tmp_path / "undated.csv"
        path.write_text("strike,bid\n5700,0.50\n5750,1.00\n")
        provider = CSVChainProvider(path, spot=6000.0, expiration=EXPIRATION)

        assert provider.get_expirations("SPX") == [EXPIRATION]
        assert len(provider.get_put_chain("SPX", EXPIRATION)) == 2

    def test_crossed_quote_in_chain(self, tmp_path):
        path = tmp_path / "crossed.csv"
        path.write_text("strike,bid,ask\n5700,2.0,1.5\n5750,1.0,1.2\n")
        provider = CSVChainProvider(path, spot=6000.0, expiration=EXPIRATION)

        assert [q.strike for q in provider.get_put_chain("SPX", EXPIRATION)] == [5700.0, 5750.0]

    def test_undated_without_expiration(self, tmp_path):
        path = tmp_path / "undated.csv"
        path.write_text("strike,bid\n5700,0.50\n")
        with pytest.raises(MarketDataError, match="no expiration column"):
            CSVChainProvider(path, spot=6000.0).get_expirations("SPX")

    def test_spot_required(self, chain_csv):
        with pytest.raises(MarketDataError, match="explicit spot"):
            CSVChainProvider(chain_csv).get_spot("SPX")

    def test_missing_file(self, tmp_path):
        with pytest.raises(MarketDataError, match="not found"):
            CSVChainProvider(tmp_path / "missing.csv", spot=6000.0).get_expirations("SPX")


class TestCreateProvider:
    """Test suite for the provider factory."""

    def test_by_name(self, tmp_path):
        provider = create_provider(" CSV ", csv_path=tmp_path / "x.csv", spot=6000.0)
        assert isinstance(provider, CSVChainProvider)

    def test_yfinance(self):
        assert isinstance(create_provider("yfinance"), YFinanceProvider)

    def test_unknown(self):
        with pytest.raises(ConfigurationError, match="Unknown provider"):
            create_provider("bloomberg")

    def test_bad_arguments(self):
        with pytest.raises(ConfigurationError, match="Invalid arguments"):
            create_provider("yfinance", api_token="x")
