"""Trading-day calendars.

The expiration selector only needs a predicate ``is_trading_day(date)``.
Two implementations are provided:

- NYSEHolidayCalendar: weekdays minus NYSE full-day closures, generated
  from holiday rules for any year.
- HolidayListCalendar: weekdays minus an explicit list of dates (e.g. a
  holiday table kept in configuration).
"""

import logging
from abc import ABC, abstractmethod
from datetime import date, datetime
from typing import Any, Dict, Iterable, Set

import pandas as pd
from pandas.tseries.holiday import (
    AbstractHolidayCalendar,
    GoodFriday,
    Holiday,
    USLaborDay,
    USMartinLutherKingJr,
    USMemorialDay,
    USPresidentsDay,
    USThanksgivingDay,
    nearest_workday,
    sunday_to_monday,
)

from ..utils.error_handling import ConfigurationError

logger = logging.getLogger("spx_screener.calendar")


class TradingCalendar(ABC):
    """Answers whether the market is open on a given calendar day."""

    @abstractmethod
    def is_trading_day(self, day: date) -> bool:
        """Return True if the market trades on ``day``."""

    def __call__(self, day: date) -> bool:
        return self.is_trading_day(day)

    @staticmethod
    def is_weekday(day: date) -> bool:
        return day.weekday() < 5


class _NYSERules(AbstractHolidayCalendar):
    """NYSE full-day closures."""

    rules = [
        # A Saturday New Year's Day is not observed on the Friday before
        Holiday("New Year's Day", month=1, day=1, observance=sunday_to_monday),
        USMartinLutherKingJr,
        USPresidentsDay,
        GoodFriday,
        USMemorialDay,
        Holiday("Juneteenth", month=6, day=19, start_date="2022-06-19",
                observance=nearest_workday),
        Holiday("Independence Day", month=7, day=4, observance=nearest_workday),
        USLaborDay,
        USThanksgivingDay,
        Holiday("Christmas Day", month=12, day=25, observance=nearest_workday),
    ]


class NYSEHolidayCalendar(TradingCalendar):
    """Weekdays that are not NYSE holidays.

    Holidays are generated per year on first use and kept for the lifetime
    of the calendar instance.
    """

    def __init__(self, extra_closures: Iterable[date] = ()):
        """Initialize the calendar.

        Args:
            extra_closures: Additional full-day closures (e.g. national days of mourning)
        """
        self._rules = _NYSERules()
        self._extra: Set[date] = {_as_date(d) for d in extra_closures}
        self._by_year: Dict[int, Set[date]] = {}

    def holidays(self, year: int) -> Set[date]:
        """All rule-based and extra closures falling in ``year``."""
        if year not in self._by_year:
            index = self._rules.holidays(
                start=pd.Timestamp(year=year, month=1, day=1),
                end=pd.Timestamp(year=year, month=12, day=31),
            )
            days = {ts.date() for ts in index}
            days.update(d for d in self._extra if d.year == year)
            self._by_year[year] = days
            logger.debug("Generated %d NYSE closures for %d", len(days), year)
        return self._by_year[year]

    def is_trading_day(self, day: date) -> bool:
        day = _as_date(day)
        return self.is_weekday(day) and day not in self.holidays(day.year)


class HolidayListCalendar(TradingCalendar):
    """Weekdays that are not in an explicit holiday list."""

    def __init__(self, holidays: Iterable[date | str]):
        self.holidays = frozenset(_as_date(d) for d in holidays)

    def is_trading_day(self, day: date) -> bool:
        day = _as_date(day)
        return self.is_weekday(day) and day not in self.holidays

    def __repr__(self) -> str:
        return f"HolidayListCalendar({len(self.holidays)} holidays)"


def create_calendar(config: Dict[str, Any] | None = None) -> TradingCalendar:
    """Build a trading calendar from configuration.

    Args:
        config: Dictionary like ``{'type': 'nyse', 'holidays': [...]}``.
            ``type`` is 'nyse' (default) or 'list'; ``holidays`` are ISO dates,
            used as extra closures for 'nyse' and as the full table for 'list'.

    Returns:
        TradingCalendar instance

    Raises:
        ConfigurationError: If the type is unknown or a date is malformed
    """
    config = config or {}
    kind = str(config.get('type', 'nyse')).lower()
    try:
        holidays = [_as_date(d) for d in config.get('holidays', []) or []]
    except ValueError as e:
        raise ConfigurationError(f"Invalid holiday date in calendar config: {e}")

    if kind == 'nyse':
        return NYSEHolidayCalendar(extra_closures=holidays)
    if kind == 'list':
        return HolidayListCalendar(holidays)
    raise ConfigurationError(f"Unknown calendar type: {kind!r} (expected 'nyse' or 'list')")


def _as_date(value: date | datetime | str) -> date:
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    return datetime.strptime(str(value).strip(), '%Y-%m-%d').date()
