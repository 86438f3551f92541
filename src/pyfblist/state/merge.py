"""Decode raw records and merge items into the document store.

Merge semantics:

- identity is the item's ``id``; a known id is replaced in place,
  unknown ids are appended;
- when a comparator is configured the whole collection is re-sorted
  (stable) after every merge, otherwise insertion order is kept.
"""

from __future__ import annotations

import asyncio
import inspect
import logging
from collections.abc import Awaitable, Callable, Iterable, Sequence
from typing import Any, Generic, TypeVar

from pyfblist._redact import describe_record
from pyfblist.exceptions import FBListDecodeError
from pyfblist.state.store import DocumentStore

_logger = logging.getLogger(__name__)

T = TypeVar("T")

_MISSING = object()


def merge_items(
    current: Iterable[T],
    incoming: Iterable[T],
    comparator: Callable[[T, T], int] | None = None,
) -> list[T]:
    """Return *current* with *incoming* merged in (dedup by id, optional sort)."""
    store: DocumentStore[T] = DocumentStore(current)
    store.append_all(incoming)
    if comparator is not None:
        store.sort(comparator)
    return store.items


def _has_valid_id(item: Any) -> bool:
    value = getattr(item, "id", None)
    return isinstance(value, str) and bool(value)


class Merger(Generic[T]):
    """Decodes batches of raw records and applies them to a store."""

    def __init__(
        self,
        decode: Callable[[Any], T | Awaitable[T]],
        *,
        record_key: Callable[[Any], str | None] = lambda _record: None,
        comparator: Callable[[T, T], int] | None = None,
        concurrent_decode: bool = True,
        on_decode_error: Callable[[FBListDecodeError], None] | None = None,
    ) -> None:
        self._decode = decode
        self._record_key = record_key
        self._comparator = comparator
        self._concurrent_decode = concurrent_decode
        self._on_decode_error = on_decode_error

    @property
    def comparator(self) -> Callable[[T, T], int] | None:
        return self._comparator

    async def decode_batch(self, records: Sequence[Any]) -> list[T]:
        """Decode *records*, skipping (and reporting) the ones that fail.

        The output order follows the input order in both decode modes.
        """
        if not records:
            return []
        if self._concurrent_decode:
            results = await asyncio.gather(*(self._decode_one(record) for record in records))
        else:
            results = [await self._decode_one(record) for record in records]
        return [item for item in results if item is not _MISSING]

    async def _decode_one(self, record: Any) -> Any:
        key = self._safe_key(record)
        try:
            result = self._decode(record)
            if inspect.isawaitable(result):
                result = await result
        except asyncio.CancelledError:
            raise
        except Exception as exc:  # noqa: BLE001
            self._report(FBListDecodeError(f"Could not decode record {key!r}: {exc}", key=key), exc)
            _logger.debug("Undecodable record: %s", describe_record(record))
            return _MISSING

        if not _has_valid_id(result):
            self._report(
                FBListDecodeError(f"Decoded record {key!r} has no usable string id", key=key),
                None,
            )
            return _MISSING
        return result

    def _safe_key(self, record: Any) -> str | None:
        try:
            return self._record_key(record)
        except Exception:  # noqa: BLE001
            return None

    def _report(self, error: FBListDecodeError, cause: Exception | None) -> None:
        if cause is not None:
            error.__cause__ = cause
        _logger.warning("%s", error)
        if self._on_decode_error is None:
            return
        try:
            self._on_decode_error(error)
        except Exception:  # noqa: BLE001
            _logger.exception("on_decode_error handler failed")

    def replace(self, store: DocumentStore[T], items: Iterable[T]) -> None:
        """Refresh semantics: the store's contents become *items*."""
        store.replace_all(items)
        self._sort(store)

    def append(self, store: DocumentStore[T], items: Iterable[T]) -> None:
        """Load-more / live semantics: dedup-replace *items* into the store."""
        store.append_all(items)
        self._sort(store)

    def _sort(self, store: DocumentStore[T]) -> None:
        if self._comparator is not None:
            store.sort(self._comparator)

