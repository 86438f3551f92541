"""Refresh / load-more state machine.

States::

    IDLE -> LOADING -> COMPLETE | ERROR                       (refresh)
    COMPLETE -> LOADING_MORE -> COMPLETE | EXHAUSTED | ERROR  (load_more)

Fetch and decode errors are reported through callbacks and never raised.
Results of fetches that finish after :meth:`RefreshController.dispose` are
discarded.
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
from collections.abc import AsyncIterator, Callable
from typing import Any, Generic, Protocol, TypeVar

from pyfblist._backends._base import PageFetcher
from pyfblist.exceptions import FBListFetchError
from pyfblist.state.events import ListStatus
from pyfblist.state.merge import Merger
from pyfblist.state.store import ListState

_logger = logging.getLogger(__name__)

T = TypeVar("T")


class RefreshIndicator(Protocol):
    """Pull-to-refresh UI collaborator. Purely observational."""

    def refresh_completed(self) -> None: ...

    def refresh_failed(self) -> None: ...

    def load_complete(self) -> None: ...

    def load_no_data(self) -> None: ...

    def load_failed(self) -> None: ...


def safe_call(name: str, callback: Callable[..., Any] | None, *args: Any) -> None:
    """Invoke an observer callback, logging (not raising) its failures."""
    if callback is None:
        return
    try:
        callback(*args)
    except Exception:  # noqa: BLE001
        _logger.exception("%s callback failed", name)


class RefreshController(Generic[T]):
    """Drives refresh and pagination for one list."""

    def __init__(
        self,
        *,
        fetcher: PageFetcher,
        merger: Merger[T],
        state: ListState[T],
        serialize_fetches: bool = False,
        indicator: RefreshIndicator | None = None,
        on_fetch_error: Callable[[Exception], None] | None = None,
        on_first_fetch_status: Callable[[bool], None] | None = None,
        on_changed: Callable[[ListState[T]], None] | None = None,
    ) -> None:
        self._fetcher = fetcher
        self._merger = merger
        self._state = state
        self._indicator = indicator
        self._on_fetch_error = on_fetch_error
        self._on_first_fetch_status = on_first_fetch_status
        self._on_changed = on_changed
        self._lock: asyncio.Lock | None = asyncio.Lock() if serialize_fetches else None
        self._disposed = False

    @property
    def state(self) -> ListState[T]:
        return self._state

    @property
    def disposed(self) -> bool:
        return self._disposed

    def dispose(self) -> None:
        self._disposed = True

    # ------------------------------------------------------------------
    # Entry points
    # ------------------------------------------------------------------

    async def refresh(self) -> bool:
        """Reload the first page and replace the list. Returns ``True`` on success."""
        if self._disposed:
            return False
        async with self._guard():
            return await self._refresh()

    async def load_more(self) -> bool:
        """Append the next page. Returns ``True`` when new records were merged."""
        if self._disposed:
            return False
        async with self._guard():
            return await self._load_more()

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    @contextlib.asynccontextmanager
    async def _guard(self) -> AsyncIterator[None]:
        if self._lock is None:
            yield
            return
        async with self._lock:
            yield

    async def _refresh(self) -> bool:
        if self._disposed:
            return False
        self._set_status(ListStatus.LOADING)
        try:
            records = await self._fetcher.fetch_page(is_continuation=False, items=self._state.items)
        except FBListFetchError as exc:
            if self._disposed:
                return False
            self._fail(exc, self._indicator.refresh_failed if self._indicator else None)
            return False

        if self._disposed:
            return False
        items = await self._merger.decode_batch(records)
        if self._disposed:
            _logger.debug("Discarding refresh result after dispose (%d records)", len(records))
            return False

        self._merger.replace(self._state.store, items)
        self._state.is_exhausted = False
        self._state.last_error = None
        self._mark_first_fetch_complete()
        self._set_status(ListStatus.COMPLETE)
        if self._indicator is not None:
            safe_call("refresh_completed", self._indicator.refresh_completed)
        _logger.debug("Refresh complete: %d records, %d items", len(records), len(self._state.store))
        return True

    async def _load_more(self) -> bool:
        if self._disposed:
            return False
        if not self._state.is_first_fetch_complete:
            _logger.debug("load_more ignored: first fetch not complete")
            return False
        if self._state.is_exhausted:
            _logger.debug("load_more ignored: no more pages")
            if self._indicator is not None:
                safe_call("load_no_data", self._indicator.load_no_data)
            return False

        self._set_status(ListStatus.LOADING_MORE)
        try:
            records = await self._fetcher.fetch_page(is_continuation=True, items=self._state.items)
        except FBListFetchError as exc:
            if self._disposed:
                return False
            self._fail(exc, self._indicator.load_failed if self._indicator else None)
            return False

        if self._disposed:
            return False
        if not records:
            self._state.is_exhausted = True
            self._set_status(ListStatus.EXHAUSTED)
            if self._indicator is not None:
                safe_call("load_no_data", self._indicator.load_no_data)
            _logger.debug("Pagination exhausted at %d items", len(self._state.store))
            return False

        items = await self._merger.decode_batch(records)
        if self._disposed:
            _logger.debug("Discarding page after dispose (%d records)", len(records))
            return False

        self._merger.append(self._state.store, items)
        self._state.last_error = None
        self._set_status(ListStatus.COMPLETE)
        if self._indicator is not None:
            safe_call("load_complete", self._indicator.load_complete)
        _logger.debug("Loaded %d more records, %d items", len(records), len(self._state.store))
        return True

    def _fail(self, exc: FBListFetchError, indicator_callback: Callable[[], None] | None) -> None:
        _logger.warning("%s", exc, exc_info=exc.__cause__ is not None)
        self._state.last_error = exc
        self._set_status(ListStatus.ERROR)
        safe_call("indicator", indicator_callback)
        safe_call("on_fetch_error", self._on_fetch_error, exc)

    def _mark_first_fetch_complete(self) -> None:
        if self._state.is_first_fetch_complete:
            return
        self._state.is_first_fetch_complete = True
        safe_call("on_first_fetch_status", self._on_first_fetch_status, True)

    def _set_status(self, status: ListStatus) -> None:
        self._state.status = status
        self.notify_changed()

    def notify_changed(self) -> None:
        safe_call("on_changed", self._on_changed, self._state)
