"""Wire payload decoding."""

from stockmaxwin.core.data.decoding import (
    BriefListDecoder,
    DecodedPage,
    ListDecoder,
    QuoteListDecoder,
    parse_index_quotes,
    parse_klines,
)

__all__ = [
    "BriefListDecoder",
    "DecodedPage",
    "ListDecoder",
    "QuoteListDecoder",
    "parse_index_quotes",
    "parse_klines",
]
