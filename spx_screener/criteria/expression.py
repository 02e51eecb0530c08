"""SQL-like filter expressions over option quotes.

Grammar::

    expression := clause (("AND" | "OR") clause)*
    clause     := IDENT OP NUMBER
                | IDENT "BETWEEN" NUMBER "AND" NUMBER
    OP         := "=" | "==" | ">" | ">=" | "<" | "<="

Keywords are case-insensitive and numbers may be quoted ('0.05').
Conjunctions are applied strictly left to right with no precedence, so
``a OR b AND c`` means ``(a OR b) AND c``. The ``AND`` inside ``BETWEEN``
belongs to the clause rule and is never read as a conjunction.

Example:
    >>> expr = parse_expression("bid>=0.05 AND distance_from_spx BETWEEN 250 AND 400")
    >>> expr.to_string()
    'bid >= 0.05 AND distance_from_spx BETWEEN 250 AND 400'
"""

import operator
import re
from dataclasses import dataclass
from typing import Callable, Iterable, List, Tuple

from ..models.scan import FIELD_ALIASES, ScannedQuote
from ..utils.error_handling import CriteriaError
from .ranges import ScanCriteria

COMPARATORS: dict[str, Callable[[float, float], bool]] = {
    '=': operator.eq,
    '==': operator.eq,
    '>': operator.gt,
    '>=': operator.ge,
    '<': operator.lt,
    '<=': operator.le,
}

KEYWORDS = {'AND', 'OR', 'BETWEEN'}

_TOKEN_RE = re.compile(r"""
    (?P<WS>\s+)
  | (?P<NUMBER>-?(?:\d+\.?\d*|\.\d+))
  | (?P<QUOTED>'[^']*'|"[^"]*")
  | (?P<OP>==|>=|<=|=|>|<)
  | (?P<IDENT>[A-Za-z_][A-Za-z0-9_]*)
""", re.VERBOSE)

DISTANCE_FIELDS = {'distance'}
PREMIUM_FIELDS = {'bid'}


@dataclass(frozen=True)
class Token:
    kind: str   # NUMBER, OP, IDENT, AND, OR, BETWEEN, END
    text: str
    position: int


def tokenize(text: str) -> List[Token]:
    """Split an expression into tokens.

    Raises:
        CriteriaError: On any character that starts no token
    """
    tokens = []
    pos = 0
    while pos < len(text):
        match = _TOKEN_RE.match(text, pos)
        if not match:
            raise CriteriaError(f"Unexpected character {text[pos]!r}", position=pos)
        kind = match.lastgroup
        value = match.group()
        if kind == 'QUOTED':
            tokens.append(Token('NUMBER', value[1:-1].strip(), pos))
        elif kind == 'IDENT' and value.upper() in KEYWORDS:
            tokens.append(Token(value.upper(), value, pos))
        elif kind != 'WS':
            tokens.append(Token(kind, value, pos))
        pos = match.end()
    tokens.append(Token('END', '', len(text)))
    return tokens


@dataclass(frozen=True)
class Comparison:
    """``field op value``."""

    field: str
    op: str
    value: float

    def evaluate(self, lookup: Callable[[str], float]) -> bool:
        return COMPARATORS[self.op](lookup(self.field), self.value)

    def to_string(self) -> str:
        return f"{self.field} {self.op} {self.value:g}"


@dataclass(frozen=True)
class Between:
    """``field BETWEEN low AND high`` (inclusive)."""

    field: str
    low: float
    high: float

    def evaluate(self, lookup: Callable[[str], float]) -> bool:
        return self.low <= lookup(self.field) <= self.high

    def to_string(self) -> str:
        return f"{self.field} BETWEEN {self.low:g} AND {self.high:g}"


Clause = Comparison | Between


@dataclass(frozen=True)
class FilterExpression:
    """A first clause followed by (conjunction, clause) pairs."""

    first: Clause
    rest: Tuple[Tuple[str, Clause], ...] = ()

    @property
    def clauses(self) -> List[Clause]:
        return [self.first] + [clause for _, clause in self.rest]

    @property
    def conjunctions(self) -> List[str]:
        return [conj for conj, _ in self.rest]

    def evaluate(self, lookup: Callable[[str], float]) -> bool:
        """Fold the clauses left to right."""
        result = self.first.evaluate(lookup)
        for conj, clause in self.rest:
            value = clause.evaluate(lookup)
            result = (result and value) if conj == 'AND' else (result or value)
        return result

    def restrict(self, fields: Iterable[str]) -> "FilterExpression | None":
        """Sub-expression keeping only clauses on ``fields`` (None if nothing is left)."""
        wanted = set(fields)
        kept: List[Tuple[str, Clause]] = []
        for conj, clause in [('AND', self.first)] + list(self.rest):
            if clause.field in wanted:
                kept.append((conj, clause))
        if not kept:
            return None
        return FilterExpression(first=kept[0][1], rest=tuple(kept[1:]))

    def to_string(self) -> str:
        parts = [self.first.to_string()]
        for conj, clause in self.rest:
            parts.append(f"{conj} {clause.to_string()}")
        return " ".join(parts)


class _Parser:
    """Recursive-descent parser over the token list."""

    def __init__(self, text: str, field_map: dict[str, str] | None):
        self.tokens = tokenize(text)
        self.index = 0
        self.field_map = field_map

    @property
    def current(self) -> Token:
        return self.tokens[self.index]

    def advance(self) -> Token:
        token = self.current
        self.index += 1
        return token

    def expect(self, kind: str, what: str) -> Token:
        token = self.current
        if token.kind != kind:
            found = token.text or 'end of input'
            raise CriteriaError(f"Expected {what}, found {found!r}", position=token.position)
        return self.advance()

    def parse(self) -> FilterExpression:
        if self.current.kind == 'END':
            raise CriteriaError("Empty filter expression", position=0)
        first = self.clause()
        rest = []
        while self.current.kind in ('AND', 'OR'):
            conj = self.advance().kind
            rest.append((conj, self.clause()))
        if self.current.kind != 'END':
            raise CriteriaError(
                f"Expected AND/OR, found {self.current.text!r}", position=self.current.position
            )
        return FilterExpression(first=first, rest=tuple(rest))

    def clause(self) -> Clause:
        name_token = self.expect('IDENT', 'a field name')
        field = self.resolve(name_token)
        if self.current.kind == 'BETWEEN':
            self.advance()
            low = self.number()
            self.expect('AND', "AND inside BETWEEN")
            high = self.number()
            if low > high:
                raise CriteriaError(
                    f"BETWEEN lower bound {low:g} exceeds upper bound {high:g}",
                    position=name_token.position,
                )
            return Between(field=field, low=low, high=high)
        op = self.expect('OP', 'a comparison operator').text
        return Comparison(field=field, op=op, value=self.number())

    def number(self) -> float:
        token = self.expect('NUMBER', 'a number')
        try:
            return float(token.text)
        except ValueError:
            raise CriteriaError(f"Invalid number {token.text!r}", position=token.position)

    def resolve(self, token: Token) -> str:
        name = token.text.lower()
        if self.field_map is None:
            return name
        if name not in self.field_map:
            known = ", ".join(sorted(set(self.field_map)))
            raise CriteriaError(f"Unknown field {token.text!r} (known: {known})",
                                position=token.position)
        return self.field_map[name]


def parse_expression(text: str, field_map: dict[str, str] | None = None) -> FilterExpression:
    """Parse expression text into a FilterExpression.

    Args:
        text: Expression such as "bid>=0.05 AND distance_from_spx>=300"
        field_map: Optional alias -> canonical field mapping; when given,
            unknown fields are rejected and names are canonicalised.
            When None, field names are only lower-cased.

    Raises:
        CriteriaError: If the text does not follow the grammar
    """
    return _Parser(text, field_map).parse()


# Quote filters accept every alias and canonicalise to the ScannedQuote attribute name
QUOTE_FIELDS = dict(FIELD_ALIASES)


class ExpressionCriteria(ScanCriteria):
    """Scan criteria backed by a parsed filter expression."""

    def __init__(self, expression: FilterExpression):
        self.expression = expression
        self._premium = expression.restrict(PREMIUM_FIELDS)
        self._distance = expression.restrict(DISTANCE_FIELDS)

    @classmethod
    def from_string(cls, text: str) -> "ExpressionCriteria":
        return cls(parse_expression(text, field_map=QUOTE_FIELDS))

    def matches(self, row: ScannedQuote) -> bool:
        return self.expression.evaluate(row.value)

    def premium_ok(self, row: ScannedQuote) -> bool:
        return self._premium is None or self._premium.evaluate(row.value)

    def distance_ok(self, row: ScannedQuote) -> bool:
        return self._distance is None or self._distance.evaluate(row.value)

    @property
    def anchor_distance(self) -> float | None:
        """Largest lower bound any clause places on distance."""
        bounds = []
        for clause in self.expression.clauses:
            if clause.field not in DISTANCE_FIELDS:
                continue
            if isinstance(clause, Between):
                bounds.append(clause.low)
            elif clause.op in ('>=', '>', '=', '=='):
                bounds.append(clause.value)
        return max(bounds) if bounds else None

    def describe(self) -> str:
        return self.expression.to_string()

    def __eq__(self, other: object) -> bool:
        return isinstance(other, ExpressionCriteria) and other.expression == self.expression

    def __hash__(self) -> int:
        return hash(self.expression)

    def __repr__(self) -> str:
        return f"ExpressionCriteria({self.describe()!r})"
