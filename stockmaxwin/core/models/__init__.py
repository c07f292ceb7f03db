"""Data models module."""

from stockmaxwin.core.models.records import (
    Bar,
    BriefRecord,
    EnrichedRecord,
    IndexQuote,
    QuoteRecord,
    as_float,
    as_int,
)

__all__ = [
    "Bar",
    "BriefRecord",
    "EnrichedRecord",
    "IndexQuote",
    "QuoteRecord",
    "as_float",
    "as_int",
]
