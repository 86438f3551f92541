"""Firebase Realtime Database page fetcher and live listener.

Pages:
  - first page: ``reference.order_by_key().limit_to_last(first_page_size).get()``
    (or a copy of the caller's own query)
  - next page: ``end_at(<smallest key of the previous page>)``; ``end_at`` is
    inclusive so the boundary child is dropped from the result, or the
    caller's ``next_query(query, items)`` builds the continuation query.

Live updates:
  ``firebase_admin`` only offers ``Reference.listen()`` (server-sent
  ``put``/``patch`` events on the whole node). :class:`ChildEventTranslator`
  turns those into per-child added/changed/removed events and bounds the
  initial replay to the most recent ``window`` children.
"""

from __future__ import annotations

import asyncio
import copy
import logging
from collections.abc import Callable, Mapping, Sequence
from typing import Any

from firebase_admin import db

from pyfblist._backends._base import ListenerSubscription, LoopDispatcher, call_backend
from pyfblist._constants import RTDB_EVENT_PATCH, RTDB_EVENT_PUT
from pyfblist.exceptions import FBListConfigError, FBListFetchError
from pyfblist.models.records import RealtimeRecord
from pyfblist.state.events import ChangeKind, LiveUpdate

_logger = logging.getLogger(__name__)

BACKEND_NAME = "realtime_database"


def to_records(value: Any) -> list[RealtimeRecord]:
    """Convert a ``get()`` payload into records, keeping the server's key order."""
    if value is None:
        return []
    if isinstance(value, Mapping):
        return [RealtimeRecord(key=str(key), value=child) for key, child in value.items()]
    if isinstance(value, list):
        # Array-like nodes (integer keys) come back as lists with None holes.
        return [RealtimeRecord(key=str(index), value=child) for index, child in enumerate(value) if child is not None]
    _logger.warning("Realtime Database node holds a scalar (%s), expected children", type(value).__name__)
    return []


def _fresh_query(query: Any) -> Any:
    """Copy of a ``db.Query``; its builder methods mutate the query in place."""
    clone = copy.copy(query)
    params = getattr(query, "_params", None)
    if isinstance(params, dict):
        clone._params = dict(params)
    return clone


class RealtimePageFetcher:
    """Key-range page fetcher over a Realtime Database reference or query.

    A caller-supplied query is copied before every fetch; the stored query
    is never modified.
    """

    backend = BACKEND_NAME

    def __init__(
        self,
        *,
        reference: db.Reference | None = None,
        query: db.Query | None = None,
        first_page_size: int,
        page_size: int,
        next_query: Callable[[Any, list[Any]], Any] | None = None,
    ) -> None:
        if reference is None and query is None:
            raise FBListConfigError("Realtime Database pages need a query or a reference")
        self._reference = reference
        self._query = query
        self._first_page_size = first_page_size
        self._page_size = page_size
        self._next_query = next_query
        self._cursor: str | None = None

    @property
    def cursor(self) -> str | None:
        return self._cursor

    def reset(self) -> None:
        self._cursor = None

    def _base_query(self, limit: int) -> Any:
        if self._query is not None:
            return _fresh_query(self._query)
        return self._reference.order_by_key().limit_to_last(limit)

    async def fetch_page(self, *, is_continuation: bool, items: Sequence[Any] = ()) -> list[RealtimeRecord]:
        boundary: str | None = None
        if is_continuation and self._next_query is None and self._cursor is None:
            _logger.debug("Realtime Database continuation without cursor, nothing to fetch")
            return []

        try:
            if not is_continuation:
                query = self._base_query(self._first_page_size)
            elif self._next_query is not None:
                query = self._next_query(self._base_query(self._page_size), list(items))
            else:
                boundary = self._cursor
                query = self._base_query(self._page_size + 1).end_at(boundary)
            _logger.debug("Realtime Database fetch continuation=%s end_at=%s", is_continuation, boundary)
            result = await call_backend(query.get)
        except asyncio.CancelledError:
            raise
        except Exception as exc:
            raise FBListFetchError(
                f"Realtime Database page fetch failed: {exc}",
                backend=BACKEND_NAME,
                is_continuation=is_continuation,
            ) from exc

        records = to_records(result)
        if boundary is not None:
            records = [record for record in records if record.key != boundary]
        if not is_continuation:
            self._cursor = None
        if records:
            self._cursor = records[0].key
        _logger.debug("Realtime Database page returned %d children", len(records))
        return records


def _path_segments(path: str | None) -> list[str]:
    return [segment for segment in (path or "/").split("/") if segment]


class ChildEventTranslator:
    """Translate ``put``/``patch`` node events into per-child live updates.

    Not thread-safe; a single SDK listener thread feeds it.
    """

    def __init__(self, *, window: int, fetch_child: Callable[[str], Any]) -> None:
        self._window = window
        self._fetch_child = fetch_child
        self._seen: set[str] = set()
        self._initialized = False

    def translate(self, event_type: str, path: str | None, data: Any) -> list[LiveUpdate]:
        segments = _path_segments(path)
        if not segments:
            if event_type == RTDB_EVENT_PUT:
                if not self._initialized:
                    self._initialized = True
                    return self._initial(data)
                return self._replace_all(data)
            if event_type == RTDB_EVENT_PATCH and isinstance(data, Mapping):
                return [self._child(str(key), value) for key, value in data.items()]
            return []

        key = segments[0]
        if len(segments) == 1 and event_type == RTDB_EVENT_PUT:
            return [self._child(key, data)]
        # Partial change below a child: re-read the whole child.
        return [self._child(key, self._fetch_child(key), force_change=True)]

    def _initial(self, data: Any) -> list[LiveUpdate]:
        records = sorted(to_records(data), key=lambda record: record.key)
        self._seen = {record.key for record in records}
        recent = records[-self._window :] if records else []
        return [LiveUpdate(kind=ChangeKind.ADDED, key=record.key, record=record) for record in recent]

    def _replace_all(self, data: Any) -> list[LiveUpdate]:
        records = to_records(data)
        incoming = {record.key for record in records}
        updates = [
            LiveUpdate(kind=ChangeKind.REMOVED, key=key) for key in sorted(self._seen - incoming)
        ]
        updates.extend(self._child(record.key, record.value) for record in records)
        self._seen = incoming
        return updates

    def _child(self, key: str, value: Any, *, force_change: bool = False) -> LiveUpdate:
        if value is None:
            self._seen.discard(key)
            return LiveUpdate(kind=ChangeKind.REMOVED, key=key)
        kind = ChangeKind.CHANGED if key in self._seen or force_change else ChangeKind.ADDED
        self._seen.add(key)
        return LiveUpdate(kind=kind, key=key, record=RealtimeRecord(key=key, value=value))


class RealtimeLiveListener:
    """Streams child changes of a Realtime Database reference."""

    def __init__(self, reference: db.Reference, *, window: int) -> None:
        self._reference = reference
        self._window = window

    def subscribe(self, on_update: Callable[[LiveUpdate], None]) -> ListenerSubscription:
        loop = asyncio.get_running_loop()
        dispatcher = LoopDispatcher(loop, on_update, name="rtdb-listener")
        translator = ChildEventTranslator(
            window=self._window,
            fetch_child=lambda key: self._reference.child(key).get(),
        )

        def on_event(event: db.Event) -> None:
            if dispatcher.closed:
                return
            try:
                updates = translator.translate(event.event_type, event.path, event.data)
            except Exception:  # noqa: BLE001
                _logger.warning("Could not translate Realtime Database event at %s", event.path, exc_info=True)
                return
            for update in updates:
                dispatcher.dispatch(update)

        registration = self._reference.listen(on_event)
        _logger.debug("Realtime Database listener started window=%d", self._window)
        return ListenerSubscription(dispatcher, registration.close, name="rtdb-listener")
