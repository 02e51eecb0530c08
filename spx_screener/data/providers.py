"""Market data providers for SPX put chains.

Every provider answers the same three questions: the current spot price,
the listed expirations and the put chain for one expiration. Failures are
raised as MarketDataError so the runner can retry them uniformly.

Providers:
    YFinanceProvider  - Yahoo Finance via yfinance (free, delayed)
    TradierProvider   - Tradier REST API (sandbox or production token)
    CSVChainProvider  - offline chain file plus an explicit spot price
"""

import logging
import os
from abc import ABC, abstractmethod
from dataclasses import replace
from datetime import date
from pathlib import Path
from typing import Any, Dict, List

import requests
import yfinance as yf

from ..models.quote import Quote
from ..utils.error_handling import ConfigurationError, DataValidationError, MarketDataError
from .loaders import load_quotes_from_csv, parse_date, quote_from_record, safe_float

logger = logging.getLogger("spx_screener.providers")

# Tradier API endpoints
SANDBOX_BASE = "https://sandbox.tradier.com/v1"
PRODUCTION_BASE = "https://api.tradier.com/v1"


class MarketDataProvider(ABC):
    """Abstract base class for market data providers."""

    name = "abstract"

    @abstractmethod
    def get_spot(self, symbol: str) -> float:
        """Current price of the underlying.

        Raises:
            MarketDataError: If the price cannot be retrieved
        """

    @abstractmethod
    def get_expirations(self, symbol: str) -> List[date]:
        """Listed option expirations, ascending.

        Raises:
            MarketDataError: If the expirations cannot be retrieved
        """

    @abstractmethod
    def get_put_chain(self, symbol: str, expiration: date) -> List[Quote]:
        """Put quotes for one expiration.

        Raises:
            MarketDataError: If the chain cannot be retrieved
        """


def _quotes_from_records(records, expiration: date, source: str) -> List[Quote]:
    """Normalize raw records, skipping the ones that fail validation."""
    quotes = []
    skipped = 0
    for record in records:
        try:
            quotes.append(quote_from_record(record, expiration=expiration))
        except (DataValidationError, ValueError) as e:
            logger.debug("Skipping %s record: %s", source, e)
            skipped += 1
    if skipped:
        logger.warning("Skipped %d invalid %s records for %s", skipped, source, expiration)
    return quotes


class YFinanceProvider(MarketDataProvider):
    """Yahoo Finance data via yfinance.

    Index symbols use Yahoo's caret form (``^SPX``).
    """

    name = "yfinance"

    def get_spot(self, symbol: str) -> float:
        try:
            stock = yf.Ticker(symbol)
            info = stock.info
            price = safe_float(info.get("currentPrice") or info.get("regularMarketPrice"))

            if price <= 0:
                # Fallback: last close from history
                hist = stock.history(period="1d")
                if not hist.empty:
                    price = float(hist["Close"].iloc[-1])
        except Exception as e:
            logger.error("Error fetching quote for %s: %s", symbol, e)
            raise MarketDataError(f"Failed to retrieve quote for {symbol}: {e}") from e

        if price <= 0:
            raise MarketDataError(f"No price available for {symbol}")

        logger.debug("Retrieved quote for %s: %.2f", symbol, price)
        return price

    def get_expirations(self, symbol: str) -> List[date]:
        try:
            expirations = yf.Ticker(symbol).options  # tuple of YYYY-MM-DD strings
        except Exception as e:
            logger.error("Error fetching expirations for %s: %s", symbol, e)
            raise MarketDataError(f"Failed to retrieve expirations for {symbol}: {e}") from e

        if not expirations:
            logger.warning("No options expiration dates available for %s", symbol)
        return sorted(parse_date(exp) for exp in expirations)

    def get_put_chain(self, symbol: str, expiration: date) -> List[Quote]:
        try:
            chain = yf.Ticker(symbol).option_chain(expiration.isoformat())
        except Exception as e:
            logger.error("Error fetching %s chain for %s: %s", symbol, expiration, e)
            raise MarketDataError(
                f"Failed to retrieve option chain for {symbol} {expiration}: {e}"
            ) from e

        records = [row.to_dict() for _, row in chain.puts.iterrows()]
        quotes = _quotes_from_records(records, expiration, "yfinance")
        logger.debug("Retrieved %d puts for %s %s", len(quotes), symbol, expiration)
        return quotes


class TradierProvider(MarketDataProvider):
    """Tradier REST API client.

    Sandbox tokens are free with 15-minute delayed data; production tokens
    need a Tradier brokerage account.
    """

    name = "tradier"

    def __init__(self, api_token: str | None = None, sandbox: bool = True, timeout: float = 10.0):
        """Initialize Tradier API client.

        Args:
            api_token: Tradier API token (falls back to TRADIER_SANDBOX_TOKEN
                or TRADIER_TOKEN depending on sandbox)
            sandbox: Use sandbox endpoint (default True)
            timeout: Request timeout in seconds

        Raises:
            ConfigurationError: If no token is available
        """
        env_var = 'TRADIER_SANDBOX_TOKEN' if sandbox else 'TRADIER_TOKEN'
        api_token = api_token or os.environ.get(env_var)
        if not api_token:
            raise ConfigurationError(f"Tradier API token required (pass api_token or set {env_var})")

        self.base_url = SANDBOX_BASE if sandbox else PRODUCTION_BASE
        self.headers = {
            'Authorization': f'Bearer {api_token}',
            'Accept': 'application/json'
        }
        self.sandbox = sandbox
        self.timeout = timeout

    @staticmethod
    def _symbol(symbol: str) -> str:
        # Tradier uses plain index symbols (SPX, not ^SPX)
        return symbol.lstrip('^').upper()

    def _get(self, endpoint: str, params: Dict[str, Any] | None = None) -> Dict[str, Any]:
        """Make GET request to Tradier API.

        Args:
            endpoint: API endpoint (e.g., '/markets/quotes')
            params: Query parameters

        Returns:
            JSON response as dictionary

        Raises:
            MarketDataError: On transport errors or non-200 responses
        """
        url = f"{self.base_url}{endpoint}"
        try:
            response = requests.get(url, headers=self.headers, params=params or {}, timeout=self.timeout)
        except requests.RequestException as e:
            raise MarketDataError(f"Tradier request failed for {endpoint}: {e}") from e

        if response.status_code != 200:
            raise MarketDataError(f"Tradier API error {response.status_code}: {response.text}")

        try:
            return response.json() or {}
        except ValueError as e:
            raise MarketDataError(f"Invalid JSON from Tradier {endpoint}: {e}") from e

    def get_spot(self, symbol: str) -> float:
        data = self._get('/markets/quotes', {'symbols': self._symbol(symbol)})
        quote = (data.get('quotes') or {}).get('quote') or {}
        if isinstance(quote, list):
            quote = quote[0] if quote else {}

        price = safe_float(quote.get('last')) or safe_float(quote.get('close')) \
            or safe_float(quote.get('prevclose'))
        if price <= 0:
            raise MarketDataError(f"No price available for {symbol}")
        return price

    def get_expirations(self, symbol: str) -> List[date]:
        data = self._get('/markets/options/expirations', {
            'symbol': self._symbol(symbol),
            'includeAllRoots': 'true',
        })
        expirations = (data.get('expirations') or {}).get('date') or []

        # Single expiration comes back as a bare string
        if isinstance(expirations, str):
            expirations = [expirations]

        return sorted(parse_date(exp) for exp in expirations)

    def get_put_chain(self, symbol: str, expiration: date) -> List[Quote]:
        data = self._get('/markets/options/chains', {
            'symbol': self._symbol(symbol),
            'expiration': expiration.isoformat(),
            'greeks': 'true',
        })
        options = (data.get('options') or {}).get('option') or []
        if isinstance(options, dict):
            options = [options]

        records = []
        for option in options:
            if option.get('option_type') != 'put':
                continue
            record = dict(option)
            greeks = option.get('greeks') or {}
            record['iv'] = greeks.get('mid_iv') or greeks.get('smv_vol')
            records.append(record)

        quotes = _quotes_from_records(records, expiration, "tradier")
        logger.debug("Retrieved %d puts for %s %s", len(quotes), symbol, expiration)
        return quotes


class CSVChainProvider(MarketDataProvider):
    """Offline provider backed by a chain CSV file.

    The file may hold several expirations (an ``expiration`` column); rows
    without one belong to ``expiration``. The spot price is not in the file
    and must be supplied.
    """

    name = "csv"

    def __init__(self, csv_path: str | Path, spot: float | None = None, expiration: date | None = None):
        self.csv_path = Path(csv_path)
        self.spot = spot
        self.expiration = expiration
        self._quotes: List[Quote] | None = None

    def _load(self) -> List[Quote]:
        if self._quotes is None:
            try:
                quotes = load_quotes_from_csv(self.csv_path)
            except (FileNotFoundError, DataValidationError) as e:
                raise MarketDataError(str(e)) from e
            self._quotes = [
                q if q.expiration is not None or self.expiration is None
                else replace(q, expiration=self.expiration)
                for q in quotes
            ]
        return self._quotes

    def get_spot(self, symbol: str) -> float:
        if self.spot is None or self.spot <= 0:
            raise MarketDataError(f"CSV provider needs an explicit spot price for {symbol}")
        return float(self.spot)

    def get_expirations(self, symbol: str) -> List[date]:
        quotes = self._load()
        expirations = sorted({q.expiration for q in quotes if q.expiration is not None})
        if not expirations:
            raise MarketDataError(
                f"{self.csv_path.name} has no expiration column; pass an expiration date"
            )
        return expirations

    def get_put_chain(self, symbol: str, expiration: date) -> List[Quote]:
        return [q for q in self._load() if q.expiration == expiration]


PROVIDERS = {
    'yfinance': YFinanceProvider,
    'tradier': TradierProvider,
    'csv': CSVChainProvider,
}


def create_provider(name: str, **kwargs) -> MarketDataProvider:
    """Create a provider by name.

    Args:
        name: 'yfinance', 'tradier' or 'csv'
        **kwargs: Constructor arguments for the chosen provider

    Raises:
        ConfigurationError: If the name is unknown or arguments are invalid
    """
    key = (name or '').strip().lower()
    if key not in PROVIDERS:
        raise ConfigurationError(f"Unknown provider {name!r} (choose from {', '.join(PROVIDERS)})")
    try:
        return PROVIDERS[key](**kwargs)
    except TypeError as e:
        raise ConfigurationError(f"Invalid arguments for {key} provider: {e}") from e
