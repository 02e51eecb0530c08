"""Scan criteria: range bounds, filter expressions, target bids and query strings."""

from .expression import ExpressionCriteria, FilterExpression, parse_expression
from .query import QueryDefaults, ScanRequest, parse_query
from .ranges import RangeCriteria, ScanCriteria, TargetBid

__all__ = [
    "ScanCriteria",
    "RangeCriteria",
    "TargetBid",
    "ExpressionCriteria",
    "FilterExpression",
    "parse_expression",
    "ScanRequest",
    "QueryDefaults",
    "parse_query",
]
