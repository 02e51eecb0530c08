"""Command-line interface for the SPX premium screener.

Usage:
    spx-screener scan "tradingdays=1 AND minbid>=2.00 AND distance>=300"
    spx-screener scan "td0 minbid0.80 distance200"
    spx-screener scan --preset today
    spx-screener scan --trading-days 1 --min-premium 2.00 --min-distance 300
    spx-screener filter "bid>=0.05 AND distance_from_spx BETWEEN 250 AND 400" --trading-days 0
    spx-screener target 0 0.05
    spx-screener levels 0
    spx-screener ladder 1 --distances 150 200 250 350

Offline (no network):
    spx-screener --csv data/spx_chain.csv --spot 6000 --today 2025-01-10 scan --preset tomorrow

Exit codes: 0 success (including "no trade"), 1 market data failure, 2 invalid input.
"""

import argparse
import logging
import sys
from datetime import date
from pathlib import Path
from typing import List, Tuple

from .analytics.bid_levels import distance_ladder, summarize_bid_levels
from .criteria.expression import ExpressionCriteria
from .criteria.query import ScanRequest, parse_query
from .criteria.ranges import RangeCriteria, ScanCriteria, TargetBid
from .data.loaders import parse_date
from .data.providers import CSVChainProvider, MarketDataProvider, create_provider
from .market.trading_calendar import create_calendar
from .output.console import (
    print_bid_levels,
    print_context_window,
    print_header,
    print_ladder,
    print_no_expiration,
    print_scan_summary,
    print_suggested_trade,
    print_target_summary,
)
from .scanning.runner import RetryPolicy, fetch_priced_chain, run_scan
from .utils.config import ScreenerConfig, load_config
from .utils.error_handling import ConfigurationError, CriteriaError, MarketDataError
from .utils.logging_config import setup_logging

logger = logging.getLogger("spx_screener.cli")

EXIT_OK = 0
EXIT_MARKET_DATA = 1
EXIT_USAGE = 2


def _date_arg(value: str) -> date:
    try:
        parsed = parse_date(value)
    except ValueError as e:
        raise argparse.ArgumentTypeError(str(e))
    if parsed is None:
        raise argparse.ArgumentTypeError(f"invalid date: {value!r}")
    return parsed


def _non_negative_int(value: str) -> int:
    try:
        number = int(value)
    except ValueError:
        raise argparse.ArgumentTypeError(f"expected a whole number, got {value!r}")
    if number < 0:
        raise argparse.ArgumentTypeError(f"must be >= 0, got {number}")
    return number


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog='spx-screener',
        description='Scan SPX put chains for deep out-of-the-money premium',
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Query string (flag form or legacy positional form)
  spx-screener scan "tradingdays=1 AND minbid>=2.00 AND distance>=300"
  spx-screener scan "td0 minbid0.80 distance200"

  # Named preset from the config file
  spx-screener scan --preset today

  # Expression filter
  spx-screener filter "bid>=0.05 AND distance_from_spx BETWEEN 250 AND 400"

  # Furthest strike paying exactly $0.05 today
  spx-screener target 0 0.05
        """
    )

    parser.add_argument('--config', help='YAML file merged over the default parameters')
    parser.add_argument('--provider', choices=['yfinance', 'tradier', 'csv'],
                        help='Market data provider (default from config)')
    parser.add_argument('--symbol', help='Underlying symbol (default from config, ^SPX)')
    parser.add_argument('--csv', help='Offline chain CSV (implies --provider csv)')
    parser.add_argument('--spot', type=float, help='Spot price for the CSV provider')
    parser.add_argument('--expiration', type=_date_arg,
                        help='Expiration for CSV rows without an expiration column')
    parser.add_argument('--context', type=_non_negative_int,
                        help='Strikes shown on each side of the best strike')
    parser.add_argument('--today', type=_date_arg, help='Reference date (YYYY-MM-DD)')
    parser.add_argument('--dry', action='store_true', help='Skip the order preview')
    parser.add_argument('--log-level', help='DEBUG, INFO, WARNING, ERROR (default from config)')
    parser.add_argument('--log-file', help='Also write logs to this file')

    sub = parser.add_subparsers(dest='command', required=True)

    scan_p = sub.add_parser('scan', help='Premium scan from a query, preset or range flags')
    scan_p.add_argument('query', nargs='?', help='Query string')
    scan_p.add_argument('--preset', help='Named preset (e.g. today, tomorrow)')
    scan_p.add_argument('--trading-days', type=_non_negative_int, help='Trading days out')
    scan_p.add_argument('--min-premium', type=float, help='Minimum bid')
    scan_p.add_argument('--max-premium', type=float, help='Maximum bid')
    scan_p.add_argument('--min-distance', type=float, help='Minimum points below spot')
    scan_p.add_argument('--max-distance', type=float, help='Maximum points below spot')

    filter_p = sub.add_parser('filter', help='Premium scan with an expression filter')
    filter_p.add_argument('expression', help='e.g. "bid>=0.05 AND distance_from_spx>=300"')
    filter_p.add_argument('--trading-days', type=_non_negative_int, default=0,
                          help='Trading days out (default: 0)')

    target_p = sub.add_parser('target', help='Find the strike paying a target bid')
    target_p.add_argument('trading_days', type=_non_negative_int, help='Trading days out')
    target_p.add_argument('bid', type=float, help='Target bid (e.g. 0.05)')

    levels_p = sub.add_parser('levels', help='Bid level summary for an expiration')
    levels_p.add_argument('trading_days', type=_non_negative_int, help='Trading days out')

    ladder_p = sub.add_parser('ladder', help='Bids at fixed distances below spot')
    ladder_p.add_argument('trading_days', type=_non_negative_int, help='Trading days out')
    ladder_p.add_argument('--distances', type=float, nargs='+',
                          help='Distances below spot (default from config)')

    return parser


def build_scan_request(args: argparse.Namespace, config: ScreenerConfig) -> ScanRequest:
    """Resolve the scan subcommand's inputs into a ScanRequest.

    Exactly one of a query string, --preset or --trading-days is accepted.
    Range flags refine a preset or complete --trading-days.

    Raises:
        CriteriaError: If the inputs conflict or are malformed
        ConfigurationError: If the preset does not exist
    """
    bounds = {
        'min_premium': args.min_premium,
        'max_premium': args.max_premium,
        'min_distance': args.min_distance,
        'max_distance': args.max_distance,
    }
    overrides = {k: v for k, v in bounds.items() if v is not None}

    sources = [s for s in (args.query, args.preset, args.trading_days) if s is not None]
    if len(sources) != 1:
        raise CriteriaError("Give exactly one of QUERY, --preset or --trading-days")

    if args.query is not None:
        if overrides:
            raise CriteriaError("Range flags cannot be combined with a query string")
        return parse_query(args.query, config.query_defaults)

    if args.preset is not None:
        preset = config.preset(args.preset)
        c = preset.criteria
        merged = {
            'min_premium': c.min_premium,
            'max_premium': c.max_premium,
            'min_distance': c.min_distance,
            'max_distance': c.max_distance,
            **overrides,
        }
        return ScanRequest(trading_days=preset.trading_days, criteria=RangeCriteria(**merged))

    defaults = {
        'min_premium': config.query_defaults.min_premium,
        'min_distance': config.query_defaults.min_distance,
        **overrides,
    }
    return ScanRequest(trading_days=args.trading_days, criteria=RangeCriteria(**defaults))


def build_criteria(
    args: argparse.Namespace,
    config: ScreenerConfig,
) -> Tuple[int, ScanCriteria | TargetBid | None, ScanRequest | None]:
    """Validate the subcommand's inputs before anything is fetched.

    Returns:
        (trading_days, criteria, request); criteria is None for levels/ladder
        and request is only set for the scan subcommand.
    """
    if args.command == 'scan':
        request = build_scan_request(args, config)
        return request.trading_days, request.criteria, request
    if args.command == 'filter':
        return args.trading_days, ExpressionCriteria.from_string(args.expression), None
    if args.command == 'target':
        return args.trading_days, TargetBid(args.bid), None
    return args.trading_days, None, None


def build_provider(args: argparse.Namespace, config: ScreenerConfig) -> MarketDataProvider:
    """Create the market data provider from flags and config.

    Raises:
        ConfigurationError: If the provider cannot be configured
    """
    if args.csv:
        if args.spot is None or args.spot <= 0:
            raise ConfigurationError("--csv needs a positive --spot price")
        if not Path(args.csv).is_file():
            raise ConfigurationError(f"--csv file not found: {args.csv}")
        return CSVChainProvider(args.csv, spot=args.spot, expiration=args.expiration)

    name = args.provider or config.provider
    if name == 'csv':
        raise ConfigurationError("The csv provider needs --csv PATH and --spot PRICE")
    if name == 'tradier':
        return create_provider(name, sandbox=config.tradier_sandbox)
    return create_provider(name)


def _print_error(message: str):
    print(f"spx-screener: error: {message}", file=sys.stderr)


def main(argv: List[str] | None = None) -> int:
    """Run the CLI and return the process exit code."""
    parser = build_parser()
    args = parser.parse_args(argv)

    try:
        config = load_config(args.config)
        setup_logging(
            log_level=args.log_level or config.log_level,
            log_file=args.log_file or config.log_file,
        )
        trading_days, criteria, request = build_criteria(args, config)
        calendar = create_calendar(config.calendar)
        provider = build_provider(args, config)
    except (CriteriaError, ConfigurationError, ValueError) as e:
        parser.print_usage(sys.stderr)
        _print_error(str(e))
        return EXIT_USAGE

    symbol = args.symbol or config.symbol
    context_size = args.context if args.context is not None else config.context_size
    retry = RetryPolicy(max_retries=config.max_retries, backoff_factor=config.backoff_factor,
                        max_wait=config.max_wait)

    try:
        if criteria is None:
            return _run_chain_summary(args, config, provider, symbol, trading_days, calendar, retry)

        outcome = run_scan(
            provider,
            symbol,
            trading_days,
            criteria,
            calendar,
            today=args.today,
            context_size=context_size,
            strike_step=config.strike_step,
            retry=retry,
        )
    except MarketDataError as e:
        logger.error("Market data failure: %s", e)
        _print_error(f"market data unavailable: {e}")
        return EXIT_MARKET_DATA

    if outcome.result is None:
        print_no_expiration(symbol, trading_days)
        return EXIT_OK

    print_header(symbol, outcome.spot, outcome.expiration, criteria, outcome.timestamp)
    result = outcome.result
    if isinstance(criteria, TargetBid):
        print_target_summary(result, criteria)
    else:
        print_scan_summary(result)
    print_context_window(result, criteria, dte=trading_days)
    print_suggested_trade(result, symbol, dry=args.dry)

    if request is not None:
        print(f"\nRefresh: spx-screener scan \"{request.to_query()}\"")
    return EXIT_OK


def _run_chain_summary(args, config, provider, symbol, trading_days, calendar, retry) -> int:
    priced = fetch_priced_chain(provider, symbol, trading_days, calendar, args.today, retry)
    if priced.choice is None:
        print_no_expiration(symbol, trading_days)
        return EXIT_OK

    print_header(symbol, priced.spot, priced.choice)
    if args.command == 'levels':
        print_bid_levels(summarize_bid_levels(priced.chain, config.bid_levels), priced.spot)
    else:
        distances = args.distances or config.ladder_distances
        print_ladder(distance_ladder(priced.spot, priced.chain, distances, config.strike_step))
    return EXIT_OK


if __name__ == '__main__':
    sys.exit(main())
