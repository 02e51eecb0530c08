#!/usr/bin/env python3
"""Fetch SPX put chains and save them for offline screening.

The CSV keeps one row per put with its expiration, so a single file can hold
several expirations and be replayed later with the screener's --csv option.

Usage:
    # Yahoo Finance (free, delayed): today's and tomorrow's expirations
    python3 fetch_spx_chain.py --trading-days 0 1

    # Tradier sandbox
    export TRADIER_SANDBOX_TOKEN="your_token"
    python3 fetch_spx_chain.py --provider tradier --trading-days 1 2 3

    # Replay offline
    spx-screener --csv data/SPX_puts.csv --spot 6000 scan --preset tomorrow
"""

import argparse
import sys
from datetime import date

from spx_screener.data.export import save_chain_to_csv
from spx_screener.data.providers import create_provider
from spx_screener.market.trading_calendar import create_calendar
from spx_screener.scanning.runner import RetryPolicy, fetch_priced_chain
from spx_screener.utils.config import load_config
from spx_screener.utils.error_handling import ConfigurationError, MarketDataError
from spx_screener.utils.logging_config import setup_logging


def main():
    parser = argparse.ArgumentParser(
        description='Fetch SPX put chains to CSV',
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Today's chain from Yahoo Finance
  python3 fetch_spx_chain.py

  # Next three trading days from Tradier (production token)
  export TRADIER_TOKEN="your_token"
  python3 fetch_spx_chain.py --provider tradier --production --trading-days 1 2 3
        """
    )

    parser.add_argument('--provider', choices=['yfinance', 'tradier'],
                        help='Market data provider (default from config)')
    parser.add_argument('--symbol', help='Underlying symbol (default from config, ^SPX)')
    parser.add_argument('--trading-days', type=int, nargs='+', default=[0],
                        help='Trading days out to fetch (default: 0)')
    parser.add_argument('--production', action='store_true',
                        help='Use the Tradier production endpoint instead of sandbox')
    parser.add_argument('--config', help='YAML file merged over the default parameters')
    parser.add_argument('--output', default='data/SPX_puts.csv',
                        help='Output file (default: data/SPX_puts.csv)')

    args = parser.parse_args()

    try:
        config = load_config(args.config)
        setup_logging(config.log_level, config.log_file)
        name = args.provider or config.provider
        if name == 'tradier':
            provider = create_provider(name, sandbox=not args.production)
        else:
            provider = create_provider(name)
    except (ConfigurationError, ValueError) as e:
        print(f"❌ Error: {e}")
        return 2

    symbol = args.symbol or config.symbol
    calendar = create_calendar(config.calendar)
    retry = RetryPolicy(config.max_retries, config.backoff_factor, config.max_wait)

    print(f"🔗 Using {name}")
    print(f"📊 Fetching {symbol} puts for {', '.join(f'{n}DTE' for n in args.trading_days)}")

    quotes = []
    fetched = set()
    spot = None
    for trading_days in args.trading_days:
        try:
            priced = fetch_priced_chain(provider, symbol, trading_days, calendar, date.today(), retry)
        except (MarketDataError, ValueError) as e:
            print(f"\n❌ Error fetching {trading_days}DTE: {e}")
            continue

        spot = priced.spot
        if priced.choice is None:
            print(f"⚠️  No {trading_days}DTE expiration listed")
            continue
        if priced.expiration in fetched:
            continue
        fetched.add(priced.expiration)

        print(f"  - {priced.expiration} ({trading_days}DTE): {len(priced.chain)} puts")
        quotes.extend(priced.chain)

    if not quotes:
        print("\n⚠️  Nothing to save")
        return 1

    count = save_chain_to_csv(quotes, args.output)
    print(f"\n✅ Saved {count} puts to {args.output}")
    if spot is not None:
        print(f"   Spot at fetch time: {spot:.2f}  (pass --spot {spot:.2f} when replaying)")
    return 0


if __name__ == '__main__':
    sys.exit(main())
