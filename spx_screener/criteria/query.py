"""Query strings that describe a whole scan request.

Two forms are accepted:

- Flag form: ``tradingdays=1 AND minbid>=2.00 AND distance BETWEEN 300 AND 450``
  (``distance>=300 AND distance<=450`` sets the same two bounds)
- Legacy positional form: ``td1 minbid2.00 distance300`` (all three tokens
  required, each an implicit ``>=``)

Both parse into a ScanRequest, which renders back to the flag form with
``to_query()``. A caller that wants to refresh a scan keeps the request it
ran and submits it again.
"""

import logging
import re
from dataclasses import dataclass
from typing import Any, Callable, Dict

from ..utils.error_handling import CriteriaError
from .expression import Between, Comparison, parse_expression
from .ranges import RangeCriteria

logger = logging.getLogger("spx_screener.query")

# Query key aliases -> canonical key
QUERY_FIELDS = {
    'tradingdays': 'tradingdays',
    'td': 'tradingdays',
    'dte': 'tradingdays',
    'minbid': 'minbid',
    'bid': 'minbid',
    'premium': 'minbid',
    'distance': 'distance',
    'distance_from_spx': 'distance',
}

_LEGACY_TOKEN = re.compile(
    r"^(?:td(?P<td>\d+)|minbid(?P<minbid>\d*\.?\d+)|distance(?P<distance>\d*\.?\d+))$",
    re.IGNORECASE,
)


@dataclass(frozen=True)
class QueryDefaults:
    """Lower bounds applied when a flag-form query omits them."""

    min_premium: float = 0.10
    min_distance: float = 0.0

    @classmethod
    def from_dict(cls, config: Dict[str, Any]) -> "QueryDefaults":
        return cls(
            min_premium=float(config.get('min_premium', 0.10)),
            min_distance=float(config.get('min_distance', 0.0)),
        )


@dataclass(frozen=True)
class ScanRequest:
    """Everything needed to (re)run a premium scan."""

    trading_days: int
    criteria: RangeCriteria

    def to_query(self) -> str:
        """Render as a canonical flag-form query."""
        c = self.criteria
        parts = [f"tradingdays={self.trading_days}"]
        parts.append(_render('minbid', c.min_premium, c.max_premium, _money))
        parts.append(_render('distance', c.min_distance, c.max_distance, '{:g}'.format))
        return " AND ".join(p for p in parts if p)


def parse_query(text: str, defaults: QueryDefaults | None = None) -> ScanRequest:
    """Parse a flag-form or legacy positional query.

    Args:
        text: Query string
        defaults: Lower bounds for omitted minbid/distance (flag form only)

    Returns:
        ScanRequest

    Raises:
        CriteriaError: If the query is malformed or tradingdays is missing
    """
    text = (text or '').strip()
    if not text:
        raise CriteriaError("Empty query; expected e.g. 'tradingdays=1 AND minbid>=2.00 AND distance>=300'")

    if is_legacy_query(text):
        return parse_legacy_query(text)
    return _parse_flag_query(text, defaults or QueryDefaults())


def is_legacy_query(text: str) -> bool:
    """True if every whitespace-separated token is a legacy ``tdN``/``minbidX``/``distanceN`` token."""
    tokens = text.split()
    return bool(tokens) and all(_LEGACY_TOKEN.match(t) for t in tokens)


def parse_legacy_query(text: str) -> ScanRequest:
    """Parse ``tdN minbidX distanceN`` (any order, all required).

    Raises:
        CriteriaError: If a token is unrecognised, repeated or missing
    """
    values: Dict[str, str] = {}
    for token in text.split():
        match = _LEGACY_TOKEN.match(token)
        if not match:
            raise CriteriaError(f"Unrecognised token {token!r}; expected tdN, minbidX or distanceN")
        key, value = next((k, v) for k, v in match.groupdict().items() if v is not None)
        if key in values:
            raise CriteriaError(f"Duplicate {key} in query")
        values[key] = value

    missing = [key for key in ('td', 'minbid', 'distance') if key not in values]
    if missing:
        raise CriteriaError(
            f"Missing {', '.join(missing)}; legacy queries need all of tdN minbidX distanceN"
        )

    return ScanRequest(
        trading_days=int(values['td']),
        criteria=RangeCriteria(
            min_premium=float(values['minbid']),
            min_distance=float(values['distance']),
        ),
    )


def _parse_flag_query(text: str, defaults: QueryDefaults) -> ScanRequest:
    expression = parse_expression(text, field_map=QUERY_FIELDS)
    if 'OR' in expression.conjunctions:
        raise CriteriaError("Query clauses can only be combined with AND")

    trading_days = None
    bounds: Dict[str, list] = {'minbid': [None, None], 'distance': [None, None]}
    # One lower and one upper bound per key, from >=/<= pairs, = or BETWEEN
    filled: Dict[str, set] = {'minbid': set(), 'distance': set()}
    seen = set()

    for clause in expression.clauses:
        key = clause.field
        if key == 'tradingdays':
            if key in seen:
                raise CriteriaError("Duplicate tradingdays in query")
            seen.add(key)
            if not isinstance(clause, Comparison) or clause.op not in ('=', '=='):
                raise CriteriaError("tradingdays must be given as tradingdays=N")
            if clause.value < 0 or clause.value != int(clause.value):
                raise CriteriaError(f"tradingdays must be a non-negative integer, got {clause.value:g}")
            trading_days = int(clause.value)
            continue
        seen.add(key)

        if isinstance(clause, Between) or clause.op in ('=', '=='):
            sides = {'low', 'high'}
        elif clause.op == '>=':
            sides = {'low'}
        elif clause.op == '<=':
            sides = {'high'}
        else:
            raise CriteriaError(
                f"Unsupported operator {clause.op!r} for {key}; use >=, <=, = or BETWEEN"
            )
        if sides & filled[key]:
            raise CriteriaError(f"Duplicate {key} bound in query")
        filled[key] |= sides

        if isinstance(clause, Between):
            bounds[key] = [clause.low, clause.high]
        elif clause.op == '>=':
            bounds[key][0] = clause.value
        elif clause.op == '<=':
            bounds[key][1] = clause.value
        else:
            bounds[key] = [clause.value, clause.value]

    if trading_days is None:
        raise CriteriaError("tradingdays is required (e.g. tradingdays=1)")

    min_premium, max_premium = bounds['minbid']
    min_distance, max_distance = bounds['distance']
    if 'minbid' not in seen:
        min_premium = defaults.min_premium
    if 'distance' not in seen:
        min_distance = defaults.min_distance

    request = ScanRequest(
        trading_days=trading_days,
        criteria=RangeCriteria(
            min_premium=min_premium,
            max_premium=max_premium,
            min_distance=min_distance,
            max_distance=max_distance,
        ),
    )
    logger.debug("Parsed query %r -> %s", text, request.to_query())
    return request


def _money(value: float) -> str:
    return f"{value:.2f}" if round(value, 2) == value else f"{value:g}"


def _render(name: str, low: float | None, high: float | None, fmt: Callable[[float], str]) -> str:
    if low is None and high is None:
        return ""
    if high is None:
        return f"{name}>={fmt(low)}"
    if low is None:
        return f"{name}<={fmt(high)}"
    return f"{name} BETWEEN {fmt(low)} AND {fmt(high)}"
