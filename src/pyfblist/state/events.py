"""Live-update events and list status.

Both backends translate their SDK callbacks into :class:`LiveUpdate`
records. Only the synchronizer applies them to the list.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import StrEnum
from typing import Any


class ChangeKind(StrEnum):
    ADDED = "added"
    CHANGED = "changed"
    REMOVED = "removed"


class ListStatus(StrEnum):
    IDLE = "idle"
    LOADING = "loading"
    LOADING_MORE = "loading_more"
    COMPLETE = "complete"
    EXHAUSTED = "exhausted"
    ERROR = "error"


@dataclass(frozen=True)
class LiveUpdate:
    """A single pushed change for one record.

    ``record`` is the backend's raw record (a Firestore ``DocumentSnapshot``
    or a :class:`pyfblist.models.RealtimeRecord`); it is ``None`` for
    removals that carry no payload.
    """

    kind: ChangeKind
    key: str
    record: Any = None
