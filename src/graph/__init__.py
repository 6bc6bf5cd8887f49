"""Entity model and graph store implementations."""

from graph.models import FileExtraction, NodeLabel, RelType
from graph.store import GraphStore, GraphStoreError, GraphStoreUnavailableError, PurgeResult

__all__ = [
    "FileExtraction",
    "GraphStore",
    "GraphStoreError",
    "GraphStoreUnavailableError",
    "NodeLabel",
    "PurgeResult",
    "RelType",
]
