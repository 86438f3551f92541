"""Ordered, id-deduplicated in-memory document store.

This is the only component that mutates the list contents; the merger and
the refresh controller call into it.
"""

from __future__ import annotations

import functools
from collections.abc import Callable, Iterable, Iterator
from typing import Any, Generic, TypeVar

from pyfblist.state.events import ListStatus

T = TypeVar("T")


def item_id(item: Any) -> str:
    """Return the identity of *item* (its ``id`` attribute)."""
    return str(item.id)


class DocumentStore(Generic[T]):
    """Ordered collection holding at most one item per id.

    An incoming item whose id is already present replaces the existing entry
    at its current position; unknown ids are appended.
    """

    def __init__(self, items: Iterable[T] = ()) -> None:
        self._items: list[T] = []
        self._index: dict[str, int] = {}
        self.append_all(items)

    def __len__(self) -> int:
        return len(self._items)

    def __iter__(self) -> Iterator[T]:
        return iter(list(self._items))

    def __contains__(self, key: object) -> bool:
        return key in self._index

    @property
    def items(self) -> list[T]:
        return list(self._items)

    @property
    def ids(self) -> list[str]:
        return [item_id(item) for item in self._items]

    def get(self, key: str) -> T | None:
        position = self._index.get(key)
        if position is None:
            return None
        return self._items[position]

    def insert_or_replace(self, item: T) -> None:
        key = item_id(item)
        position = self._index.get(key)
        if position is None:
            self._index[key] = len(self._items)
            self._items.append(item)
        else:
            self._items[position] = item

    def append_all(self, items: Iterable[T]) -> None:
        for item in items:
            self.insert_or_replace(item)

    def replace_all(self, items: Iterable[T]) -> None:
        """Drop the current contents and load *items* (last duplicate wins)."""
        self._items = []
        self._index = {}
        self.append_all(items)

    def remove(self, key: str) -> bool:
        if key not in self._index:
            return False
        self._items = [item for item in self._items if item_id(item) != key]
        self._reindex()
        return True

    def sort(self, comparator: Callable[[T, T], int]) -> None:
        """Stable sort by a ``(a, b) -> int`` comparator."""
        self._items.sort(key=functools.cmp_to_key(comparator))
        self._reindex()

    def _reindex(self) -> None:
        self._index = {item_id(item): position for position, item in enumerate(self._items)}


class ListState(Generic[T]):
    """Current list contents plus loading/pagination flags."""

    def __init__(self, store: DocumentStore[T] | None = None) -> None:
        self.store: DocumentStore[T] = store if store is not None else DocumentStore()
        self.status = ListStatus.IDLE
        self.is_first_fetch_complete = False
        self.is_exhausted = False
        self.last_error: Exception | None = None

    @property
    def items(self) -> list[T]:
        return self.store.items

    @property
    def is_loading(self) -> bool:
        return self.status in (ListStatus.LOADING, ListStatus.LOADING_MORE)

    @property
    def is_empty(self) -> bool:
        return len(self.store) == 0

    def __repr__(self) -> str:
        return (
            f"ListState(status={self.status.value}, items={len(self.store)}, "
            f"first_fetch_complete={self.is_first_fetch_complete}, exhausted={self.is_exhausted})"
        )
