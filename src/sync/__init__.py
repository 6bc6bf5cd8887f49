"""Incremental synchronization of a Go project into the code graph."""

from sync.context import RunContext
from sync.engine import FatalSyncError, SyncEngine, SyncPlan, SyncResult

__all__ = ["FatalSyncError", "RunContext", "SyncEngine", "SyncPlan", "SyncResult"]
