"""Symbol naming scheme shared by both extraction strategies."""

from symbols.scheme import (
    MalformedSymbolError,
    Symbol,
    build_symbol,
    parse_symbol,
)

__all__ = ["MalformedSymbolError", "Symbol", "build_symbol", "parse_symbol"]
