"""State/store layer.

This package is the single source of truth for how fetched pages and live
updates are merged into the in-memory list.
"""

from pyfblist.state.events import ChangeKind, ListStatus, LiveUpdate
from pyfblist.state.merge import Merger, merge_items
from pyfblist.state.store import DocumentStore, ListState

__all__ = [
    "ChangeKind",
    "DocumentStore",
    "ListState",
    "ListStatus",
    "LiveUpdate",
    "Merger",
    "merge_items",
]
