"""List view-model: paginated, live-updating list over Firestore or Realtime Database."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from typing import Any, Generic, TypeVar

from pyfblist._backends._base import LiveUpdateListener, PageFetcher, Subscription
from pyfblist._backends.firestore import FirestoreLiveListener, FirestorePageFetcher
from pyfblist._backends.realtime import RealtimeLiveListener, RealtimePageFetcher
from pyfblist._constants import DEFAULT_REALTIME_LIVE_WINDOW
from pyfblist.config import ListConfig, ListHandlers
from pyfblist.controller import RefreshController, RefreshIndicator, safe_call
from pyfblist.exceptions import FBListConfigError
from pyfblist.source import BackendType, FirestoreSource, RealtimeDatabaseSource
from pyfblist.state.events import ChangeKind, LiveUpdate
from pyfblist.state.merge import Merger
from pyfblist.state.store import ListState

_logger = logging.getLogger(__name__)

T = TypeVar("T")


class FBListViewLogic(Generic[T]):
    """Keeps an in-memory list in sync with a Firebase query.

    Usage::

        logic = FBListViewLogic.cloud_firestore(
            query=db.collection("posts").order_by("createdAt", direction="DESCENDING"),
            decode=lambda snap: Post.model_validate({"id": snap.id, **snap.to_dict()}),
        )
        async with logic:
            await logic.load_more()
            print(logic.items)

    ``start()`` (or entering the context) waits ``fetch_delay_ms``, fetches
    the first page and then subscribes to live updates. All list mutations
    happen on the event-loop thread.
    """

    def __init__(
        self,
        source: FirestoreSource[T] | RealtimeDatabaseSource[T],
        *,
        config: ListConfig | None = None,
        handlers: ListHandlers | None = None,
        indicator: RefreshIndicator | None = None,
        fetcher: PageFetcher | None = None,
        listener: LiveUpdateListener | None = None,
    ) -> None:
        if not isinstance(source, (FirestoreSource, RealtimeDatabaseSource)):
            raise FBListConfigError(f"Unsupported list source: {type(source).__name__}")
        self._source = source
        self._config = config or ListConfig()
        self._handlers = handlers or ListHandlers()
        if not self._config.merge_live_updates and self._handlers.on_live_update is None:
            raise FBListConfigError("merge_live_updates=False requires an on_live_update handler")

        self._state: ListState[T] = ListState()
        self._merger: Merger[T] = Merger(
            source.decode_record,
            record_key=source.record_key,
            comparator=self._config.comparator,
            concurrent_decode=self._config.concurrent_decode,
            on_decode_error=self._handlers.on_decode_error,
        )
        self._fetcher = fetcher if fetcher is not None else self._build_fetcher()
        self._listener = listener if listener is not None else self._build_listener()
        self._controller: RefreshController[T] = RefreshController(
            fetcher=self._fetcher,
            merger=self._merger,
            state=self._state,
            serialize_fetches=self._config.serialize_fetches,
            indicator=indicator,
            on_fetch_error=self._handlers.on_fetch_error,
            on_first_fetch_status=self._handlers.on_first_fetch_status,
            on_changed=self._handlers.on_changed,
        )

        self._subscriptions: list[Subscription] = []
        self._live_queue: asyncio.Queue[LiveUpdate] | None = None
        self._live_task: asyncio.Task[None] | None = None
        self._started = False
        self._disposed = False

    # ------------------------------------------------------------------
    # Constructors
    # ------------------------------------------------------------------

    @classmethod
    def cloud_firestore(
        cls,
        *,
        query: Any,
        decode: Callable[[Any], T | Awaitable[T]],
        config: ListConfig | None = None,
        handlers: ListHandlers | None = None,
        indicator: RefreshIndicator | None = None,
    ) -> FBListViewLogic[T]:
        """List backed by a Cloud Firestore query."""
        return cls(
            FirestoreSource(query=query, decode=decode),
            config=config,
            handlers=handlers,
            indicator=indicator,
        )

    @classmethod
    def realtime_database(
        cls,
        *,
        decode: Callable[[str, dict[str, Any]], T | Awaitable[T]],
        query: Any = None,
        reference: Any = None,
        next_query: Callable[[Any, list[Any]], Any] | None = None,
        config: ListConfig | None = None,
        handlers: ListHandlers | None = None,
        indicator: RefreshIndicator | None = None,
    ) -> FBListViewLogic[T]:
        """List backed by a Realtime Database reference and/or query."""
        return cls(
            RealtimeDatabaseSource(decode=decode, query=query, reference=reference, next_query=next_query),
            config=config,
            handlers=handlers,
            indicator=indicator,
        )

    def _build_fetcher(self) -> PageFetcher:
        source = self._source
        if isinstance(source, FirestoreSource):
            return FirestorePageFetcher(
                source.query,
                first_page_size=self._config.first_page_size,
                page_size=self._config.page_size,
            )
        return RealtimePageFetcher(
            reference=source.reference,
            query=source.query,
            first_page_size=self._config.first_page_size,
            page_size=self._config.page_size,
            next_query=source.next_query,
        )

    def _build_listener(self) -> LiveUpdateListener | None:
        source = self._source
        if not self._config.listen or not source.can_listen:
            return None
        if isinstance(source, FirestoreSource):
            window = self._config.live_window or self._config.first_page_size
            return FirestoreLiveListener(source.query, window=window)
        window = self._config.live_window or DEFAULT_REALTIME_LIVE_WINDOW
        return RealtimeLiveListener(source.reference, window=window)

    # ------------------------------------------------------------------
    # Read accessors
    # ------------------------------------------------------------------

    @property
    def backend_type(self) -> BackendType:
        return self._source.type

    @property
    def config(self) -> ListConfig:
        return self._config

    @property
    def state(self) -> ListState[T]:
        return self._state

    @property
    def items(self) -> list[T]:
        return self._state.items

    @property
    def is_disposed(self) -> bool:
        return self._disposed

    @property
    def is_listening(self) -> bool:
        return bool(self._subscriptions)

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def __aenter__(self) -> FBListViewLogic[T]:
        await self.start()
        return self

    async def __aexit__(self, *exc: Any) -> None:
        self.dispose()

    async def start(self) -> None:
        """Run the delayed first refresh, then subscribe to live updates."""
        if self._started or self._disposed:
            return
        self._started = True
        safe_call("on_first_fetch_status", self._handlers.on_first_fetch_status, False)
        safe_call("refresher", self._handlers.refresher, self.refresh)

        if self._config.fetch_delay_ms > 0:
            await asyncio.sleep(self._config.fetch_delay_seconds)
            if self._disposed:
                return
        await self.refresh()
        if self._disposed:
            return
        self.listen()

    def listen(self) -> None:
        """Subscribe to live updates (no-op without a listener or when already listening)."""
        if self._disposed or self._listener is None or self._subscriptions:
            return
        self._live_queue = asyncio.Queue()
        self._live_task = asyncio.get_running_loop().create_task(self._consume_live_updates(self._live_queue))
        self._subscriptions.append(self._listener.subscribe(self._on_live_update))
        _logger.debug("Listening for live updates on %s", self.backend_type.value)

    def dispose(self) -> None:
        """Cancel live subscriptions; later callbacks and fetch results are ignored."""
        if self._disposed:
            return
        self._disposed = True
        self._controller.dispose()
        subscriptions, self._subscriptions = self._subscriptions, []
        for subscription in subscriptions:
            subscription.unsubscribe()
        task, self._live_task = self._live_task, None
        if task is not None and not task.done():
            task.cancel()
        self._drain_live_queue()
        _logger.debug("Disposed %s list with %d items", self.backend_type.value, len(self._state.store))

    def _drain_live_queue(self) -> None:
        # Pending updates are dropped; release anyone blocked in queue.join().
        queue = self._live_queue
        if queue is None:
            return
        while True:
            try:
                queue.get_nowait()
            except asyncio.QueueEmpty:
                break
            queue.task_done()

    # ------------------------------------------------------------------
    # Fetching
    # ------------------------------------------------------------------

    async def refresh(self) -> bool:
        """Reload the first page, replacing the list."""
        return await self._controller.refresh()

    async def load_more(self) -> bool:
        """Append the next page; ``False`` when nothing new was loaded."""
        return await self._controller.load_more()

    # ------------------------------------------------------------------
    # Live updates
    # ------------------------------------------------------------------

    def _on_live_update(self, update: LiveUpdate) -> None:
        if self._disposed or self._live_queue is None:
            return
        self._live_queue.put_nowait(update)

    async def wait_for_live_updates(self) -> None:
        """Wait until every live update received so far has been applied."""
        queue = self._live_queue
        if queue is not None and not self._disposed:
            await queue.join()

    async def _consume_live_updates(self, queue: asyncio.Queue[LiveUpdate]) -> None:
        while True:
            update = await queue.get()
            try:
                await self._apply_live_update(update)
            except Exception:  # noqa: BLE001
                _logger.exception("Failed to apply live %s for %s", update.kind, update.key)
            finally:
                queue.task_done()

    async def _apply_live_update(self, update: LiveUpdate) -> None:
        if self._disposed:
            return
        _logger.debug("Live %s: %s", update.kind, update.key)

        if update.kind == ChangeKind.REMOVED:
            if self._config.merge_live_updates and self._state.store.remove(update.key):
                self._controller.notify_changed()
            safe_call("on_live_update", self._handlers.on_live_update, update.kind, None)
            return

        items = await self._merger.decode_batch([update.record])
        if self._disposed or not items:
            return
        item = items[0]
        if self._config.merge_live_updates:
            self._merger.append(self._state.store, [item])
            self._controller.notify_changed()
        safe_call("on_live_update", self._handlers.on_live_update, update.kind, item)
