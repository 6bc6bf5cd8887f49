"""Interchangeable extraction strategies."""

from indexers.base import ExtractionStrategy, SourceFile, StrategyUnavailableError
from indexers.native import NativeIndexer
from indexers.scip import ScipIndexer, ScipToolError, ToolNotFoundError

__all__ = [
    "ExtractionStrategy",
    "NativeIndexer",
    "ScipIndexer",
    "ScipToolError",
    "SourceFile",
    "StrategyUnavailableError",
    "ToolNotFoundError",
]
