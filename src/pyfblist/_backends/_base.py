"""Backend-neutral fetch/listen contracts and SDK call helpers."""

from __future__ import annotations

import asyncio
import functools
import inspect
import logging
import threading
from collections.abc import Callable, Sequence
from typing import Any, Protocol, TypeVar

from pyfblist.state.events import LiveUpdate

_logger = logging.getLogger(__name__)

R = TypeVar("R")


class PageFetcher(Protocol):
    """Fetches one page of raw records and owns the pagination cursor."""

    backend: str

    async def fetch_page(self, *, is_continuation: bool, items: Sequence[Any] = ()) -> list[Any]: ...

    def reset(self) -> None: ...


class Subscription(Protocol):
    def unsubscribe(self) -> None: ...


class LiveUpdateListener(Protocol):
    """Subscribes to pushed changes of a bounded recent window of records."""

    def subscribe(self, on_update: Callable[[LiveUpdate], None]) -> Subscription: ...


async def call_backend(fn: Callable[..., Any], *args: Any) -> Any:
    """Invoke an SDK call without blocking the event loop.

    Coroutine functions (async SDK clients) are awaited directly; blocking
    calls (``google-cloud-firestore`` and ``firebase_admin.db``) run in the
    loop's default executor.
    """
    if inspect.iscoroutinefunction(fn):
        return await fn(*args)
    loop = asyncio.get_running_loop()
    result = await loop.run_in_executor(None, functools.partial(fn, *args))
    if inspect.isawaitable(result):
        return await result
    return result


class LoopDispatcher:
    """Hops SDK-thread callbacks onto the owning asyncio loop.

    SDK listeners call :meth:`dispatch` from their own threads; the update is
    delivered with ``call_soon_threadsafe`` in call order. Once
    :meth:`close` has been called, or if the loop is already closed, late
    callbacks are dropped.
    """

    def __init__(
        self,
        loop: asyncio.AbstractEventLoop,
        on_update: Callable[[LiveUpdate], None],
        *,
        name: str,
    ) -> None:
        self._loop = loop
        self._on_update = on_update
        self._name = name
        self._closed = threading.Event()

    @property
    def closed(self) -> bool:
        return self._closed.is_set()

    def close(self) -> None:
        self._closed.set()

    def dispatch(self, update: LiveUpdate) -> None:
        if self._closed.is_set():
            _logger.debug("%s: dropping %s for %s after unsubscribe", self._name, update.kind, update.key)
            return
        try:
            self._loop.call_soon_threadsafe(self._deliver, update)
        except RuntimeError:
            _logger.debug("%s: event loop closed, dropping %s for %s", self._name, update.kind, update.key)

    def _deliver(self, update: LiveUpdate) -> None:
        # Re-checked on the loop thread: unsubscribe may have happened after dispatch.
        if self._closed.is_set():
            return
        self._on_update(update)


class ListenerSubscription:
    """Idempotent subscription handle wrapping an SDK-specific close call."""

    def __init__(self, dispatcher: LoopDispatcher, close: Callable[[], None], *, name: str) -> None:
        self._dispatcher = dispatcher
        self._close = close
        self._name = name
        self._lock = threading.Lock()
        self._active = True

    @property
    def active(self) -> bool:
        return self._active

    def unsubscribe(self) -> None:
        with self._lock:
            if not self._active:
                return
            self._active = False
        self._dispatcher.close()
        try:
            self._close()
        except Exception:  # noqa: BLE001
            _logger.debug("%s: listener close failed", self._name, exc_info=True)
        _logger.debug("%s: unsubscribed", self._name)
