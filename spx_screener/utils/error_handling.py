"""Error handling utilities for the SPX screener.

Provides the exception hierarchy, retry logic for provider calls and
sanity checks for raw quote records.
"""

import logging
import time
from functools import wraps
from typing import Any, Callable, Mapping, Tuple, Type, TypeVar

logger = logging.getLogger("spx_screener.error_handling")

T = TypeVar('T')

RetryHook = Callable[[int, BaseException, float], None]


def backoff_delay(attempt: int, backoff_factor: float, max_wait: float | None = None) -> float:
    """Seconds to wait after failed attempt number ``attempt`` (0-based).

    >>> [backoff_delay(n, 2.0, max_wait=3.0) for n in range(4)]
    [1.0, 2.0, 3.0, 3.0]
    """
    delay = float(backoff_factor) ** attempt
    if max_wait is not None:
        delay = min(delay, max_wait)
    return delay


def retry_with_backoff(
    max_retries: int = 3,
    backoff_factor: float = 2.0,
    exceptions: Tuple[Type[Exception], ...] = (Exception,),
    max_wait: float | None = None,
    on_retry: RetryHook | None = None,
):
    """Decorator that re-invokes a provider call when it raises.

    Only ``exceptions`` are retried; anything else propagates on the first
    failure. After the last attempt the original exception is re-raised.

    Args:
        max_retries: Total attempts including the first (1 disables retrying)
        backoff_factor: Wait after attempt n is backoff_factor ** n seconds
        exceptions: Exception types worth another attempt
        max_wait: Upper bound on a single wait, in seconds
        on_retry: Called as on_retry(attempt, error, wait) before each sleep,
            attempt being 1-based

    Example:
        >>> @retry_with_backoff(max_retries=3, exceptions=(MarketDataError,))
        >>> def fetch_chain():
        >>>     return provider.get_put_chain("^SPX", expiration)
    """
    if max_retries < 1:
        raise ValueError(f"max_retries must be at least 1, got {max_retries}")
    if max_wait is not None and max_wait < 0:
        raise ValueError(f"max_wait must be non-negative, got {max_wait}")

    def decorator(func: Callable[..., T]) -> Callable[..., T]:
        name = getattr(func, '__name__', repr(func))

        @wraps(func)
        def wrapper(*args, **kwargs) -> T:
            attempt = 0
            while True:
                try:
                    return func(*args, **kwargs)
                except exceptions as e:
                    attempt += 1
                    if attempt >= max_retries:
                        logger.error("%s gave up after %d attempt(s): %s", name, attempt, e)
                        raise

                    wait = backoff_delay(attempt - 1, backoff_factor, max_wait)
                    logger.warning("%s failed (attempt %d/%d): %s; retrying in %.1fs",
                                   name, attempt, max_retries, e, wait)
                    if on_retry is not None:
                        on_retry(attempt, e, wait)
                    time.sleep(wait)

        return wrapper
    return decorator


def validate_quote_record(record: Mapping[str, Any]) -> Tuple[bool, str]:
    """Validate a normalized quote record for completeness and sanity.

    A crossed market (bid above a non-zero ask) is a stale quote, not an
    invalid one, and passes.

    Args:
        record: Dictionary with at least strike and bid (already converted to numbers)

    Returns:
        Tuple of (is_valid, error_message)

    Example:
        >>> ok, error = validate_quote_record({"strike": 5800.0, "bid": 1.1, "ask": 1.3})
        >>> ok
        True
    """
    for field in ('strike', 'bid'):
        if field not in record:
            return False, f"Missing required field: {field}"

    if record['strike'] <= 0:
        return False, f"Invalid strike price: {record['strike']}"

    for field in ('bid', 'ask', 'last_price'):
        value = record.get(field, 0.0)
        if value < 0:
            return False, f"Negative {field}: {value}"

    for field in ('volume', 'open_interest'):
        value = record.get(field, 0)
        if value < 0:
            return False, f"Negative {field}: {value}"

    return True, ""


class ScreeningError(Exception):
    """Base class for screener errors."""
    pass


class DataValidationError(ValueError, ScreeningError):
    """Raised when a quote record or chain file fails validation."""
    pass


class CriteriaError(ValueError, ScreeningError):
    """Raised when a filter expression or query string cannot be parsed."""

    def __init__(self, message: str, position: int | None = None):
        if position is not None:
            message = f"{message} (at position {position})"
        super().__init__(message)
        self.position = position


class ConfigurationError(ScreeningError):
    """Raised for a malformed YAML file or an out-of-range setting."""
    pass


class MarketDataError(ScreeningError):
    """Raised when a market data provider cannot deliver spot, expirations or a chain."""
    pass
