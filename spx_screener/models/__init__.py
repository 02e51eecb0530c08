"""Core data models for SPX premium screening."""

from .quote import Quote
from .scan import (
    ContextEntry,
    ExpirationChoice,
    QualificationStatus,
    ScannedQuote,
    ScanResult,
)

__all__ = [
    "Quote",
    "ScannedQuote",
    "ScanResult",
    "ContextEntry",
    "QualificationStatus",
    "ExpirationChoice",
]
