"""Expiration selection by trading days out.

Resolves "N trading days from today" to one of the expirations a provider
lists. No expiration is a normal outcome (``None``): callers report it as
"no trade today" rather than as an error.
"""

import logging
from datetime import date, datetime, timedelta
from typing import Callable, Iterable, List

from ..models.scan import ExpirationChoice

logger = logging.getLogger("spx_screener.expiration")

# Forward walk gives up after this many calendar days
MAX_WALK_DAYS = 365


def find_target_date(
    today: date,
    trading_days_out: int,
    is_trading_day: Callable[[date], bool],
    max_walk_days: int = MAX_WALK_DAYS,
) -> date | None:
    """Walk forward from tomorrow counting trading days.

    Args:
        today: Reference day (not counted)
        trading_days_out: Number of trading days to count (must be > 0)
        is_trading_day: Trading-day predicate
        max_walk_days: Calendar-day limit for the walk

    Returns:
        The day on which the count reaches trading_days_out, or None if the
        limit is reached first
    """
    if trading_days_out <= 0:
        raise ValueError(f"trading_days_out must be positive, got {trading_days_out}")

    found = 0
    current = today
    while True:
        current += timedelta(days=1)
        if (current - today).days > max_walk_days:
            logger.warning(
                "Could not find %d trading days within %d calendar days of %s",
                trading_days_out, max_walk_days, today
            )
            return None
        if is_trading_day(current):
            found += 1
            if found == trading_days_out:
                return current


def select_expiration(
    trading_days_out: int,
    available_expirations: Iterable[date | datetime | str],
    today: date,
    is_trading_day: Callable[[date], bool],
) -> ExpirationChoice | None:
    """Choose the expiration to scan.

    Args:
        trading_days_out: 0 for same-day expiration, N > 0 for N trading days out
        available_expirations: Expirations listed by the provider
        today: Reference day
        is_trading_day: Trading-day predicate (only consulted when N > 0)

    Returns:
        ExpirationChoice, or None when no suitable expiration is listed

    Rules:
        - 0 DTE: the expiration dated today, if any.
        - N DTE: the listed expiration on or after the Nth trading day that is
          closest to it; is_exact_match tells whether it falls on that day.
    """
    if trading_days_out < 0:
        raise ValueError(f"trading_days_out must be >= 0, got {trading_days_out}")

    expirations = _normalize_expirations(available_expirations)

    if trading_days_out == 0:
        if today in expirations:
            return ExpirationChoice(
                expiration=today,
                target_date=today,
                is_exact_match=True,
                trading_days_out=0,
            )
        logger.info("No expiration listed for today (%s)", today)
        return None

    target = find_target_date(today, trading_days_out, is_trading_day)
    if target is None:
        return None

    on_or_after = [exp for exp in expirations if exp >= target]
    if not on_or_after:
        logger.info("No expiration on or after target date %s", target)
        return None

    chosen = min(on_or_after, key=lambda exp: (exp - target).days)
    choice = ExpirationChoice(
        expiration=chosen,
        target_date=target,
        is_exact_match=chosen == target,
        trading_days_out=trading_days_out,
    )
    logger.debug("Selected %r", choice)
    return choice


def _normalize_expirations(values: Iterable[date | datetime | str]) -> List[date]:
    result = []
    for value in values:
        if isinstance(value, datetime):
            result.append(value.date())
        elif isinstance(value, date):
            result.append(value)
        else:
            result.append(datetime.strptime(str(value).strip(), '%Y-%m-%d').date())
    return result
