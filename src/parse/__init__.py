"""Parsing utilities for Go sources and SCIP index artifacts."""

from parse.scip_index import ScipIndex, ScipIndexError, decode_scip_index, load_scip_index
from parse.treesitter_go import GoFileOutline, GoParseError, extract_go_definitions

__all__ = [
    "GoFileOutline",
    "GoParseError",
    "ScipIndex",
    "ScipIndexError",
    "decode_scip_index",
    "extract_go_definitions",
    "load_scip_index",
]
