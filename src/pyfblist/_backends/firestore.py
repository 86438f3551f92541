"""Cloud Firestore page fetcher and live listener.

Pages:
  - first page: ``query.limit(first_page_size).get()``
  - next page: ``query.limit(page_size).start_after(<last snapshot>).get()``

Live updates:
  - ``query.limit(window).on_snapshot(callback)``; the callback runs on the
    SDK's watch thread and is re-dispatched onto the asyncio loop.
  - the first callback replays the whole window as ADDED changes.
  - a REMOVED change is only reported when the document is gone; documents
    pushed out of the window by newer ones are not removals.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable, Sequence
from typing import Any

from google.cloud.firestore import DocumentSnapshot, Query

from pyfblist._backends._base import ListenerSubscription, LoopDispatcher, call_backend
from pyfblist.exceptions import FBListFetchError
from pyfblist.state.events import ChangeKind, LiveUpdate

_logger = logging.getLogger(__name__)

BACKEND_NAME = "cloud_firestore"

# google.cloud.firestore_v1.watch.ChangeType member names.
_CHANGE_KINDS: dict[str, ChangeKind] = {
    "ADDED": ChangeKind.ADDED,
    "MODIFIED": ChangeKind.CHANGED,
    "REMOVED": ChangeKind.REMOVED,
}


def _change_kind(change_type: Any) -> ChangeKind | None:
    name = getattr(change_type, "name", change_type)
    if not isinstance(name, str):
        return None
    return _CHANGE_KINDS.get(name.upper())


def _exists(snapshot: DocumentSnapshot) -> bool:
    return bool(getattr(snapshot, "exists", True))


def _left_window(document: DocumentSnapshot) -> bool:
    """True when a REMOVED document still exists (it only fell out of the limit)."""
    reference = getattr(document, "reference", None)
    if reference is None:
        return False
    return _exists(reference.get())


class FirestorePageFetcher:
    """Cursor-tracking page fetcher over a Firestore query."""

    backend = BACKEND_NAME

    def __init__(self, query: Query, *, first_page_size: int, page_size: int) -> None:
        self._query = query
        self._first_page_size = first_page_size
        self._page_size = page_size
        self._cursor: DocumentSnapshot | None = None

    @property
    def cursor(self) -> DocumentSnapshot | None:
        return self._cursor

    def reset(self) -> None:
        self._cursor = None

    def _page_query(self, is_continuation: bool) -> Query:
        if not is_continuation:
            return self._query.limit(self._first_page_size)
        query = self._query.limit(self._page_size)
        if self._cursor is not None:
            query = query.start_after(self._cursor)
        return query

    async def fetch_page(self, *, is_continuation: bool, items: Sequence[Any] = ()) -> list[DocumentSnapshot]:
        query = self._page_query(is_continuation)
        _logger.debug(
            "Firestore fetch continuation=%s cursor=%s",
            is_continuation,
            getattr(self._cursor, "id", None),
        )
        try:
            result = await call_backend(query.get)
        except asyncio.CancelledError:
            raise
        except Exception as exc:
            raise FBListFetchError(
                f"Firestore page fetch failed: {exc}",
                backend=BACKEND_NAME,
                is_continuation=is_continuation,
            ) from exc

        snapshots = [snapshot for snapshot in (result or []) if _exists(snapshot)]
        if not is_continuation:
            self._cursor = None
        if snapshots:
            self._cursor = snapshots[-1]
        _logger.debug("Firestore page returned %d documents", len(snapshots))
        return snapshots


class FirestoreLiveListener:
    """Streams document changes of the most recent ``window`` documents."""

    def __init__(self, query: Query, *, window: int) -> None:
        self._query = query
        self._window = window

    def subscribe(self, on_update: Callable[[LiveUpdate], None]) -> ListenerSubscription:
        loop = asyncio.get_running_loop()
        dispatcher = LoopDispatcher(loop, on_update, name="firestore-listener")

        def on_snapshot(_docs: Any, changes: Sequence[Any], _read_time: Any) -> None:
            for change in changes or ():
                kind = _change_kind(getattr(change, "type", None))
                document = getattr(change, "document", None)
                if kind is None or document is None:
                    _logger.debug("Ignoring unsupported Firestore change %r", change)
                    continue
                if kind == ChangeKind.REMOVED:
                    try:
                        if _left_window(document):
                            _logger.debug("Document %s left the live window", document.id)
                            continue
                    except Exception:  # noqa: BLE001
                        _logger.warning("Could not confirm removal of %s", document.id, exc_info=True)
                        continue
                record = None if kind == ChangeKind.REMOVED else document
                dispatcher.dispatch(LiveUpdate(kind=kind, key=str(document.id), record=record))

        watch = self._query.limit(self._window).on_snapshot(on_snapshot)
        _logger.debug("Firestore listener started window=%d", self._window)
        return ListenerSubscription(dispatcher, watch.unsubscribe, name="firestore-listener")
