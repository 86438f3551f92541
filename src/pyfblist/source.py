"""Backend selection: one source object per Firebase product.

A list is backed by exactly one of :class:`FirestoreSource` or
:class:`RealtimeDatabaseSource`; each carries only the fields relevant to its
backend and validates them at construction.
"""

from __future__ import annotations

from collections.abc import Awaitable, Callable, Mapping
from dataclasses import dataclass
from enum import StrEnum
from typing import Any, ClassVar, Generic, TypeVar

from pyfblist.exceptions import FBListConfigError
from pyfblist.models.records import RealtimeRecord

T = TypeVar("T")


class BackendType(StrEnum):
    CLOUD_FIRESTORE = "cloud_firestore"
    REALTIME_DATABASE = "realtime_database"


@dataclass(frozen=True)
class FirestoreSource(Generic[T]):
    """A Firestore query plus the decoder turning snapshots into items.

    Parameters
    ----------
    query
        ``google.cloud.firestore.Query`` (or collection reference). Must not
        carry its own ``limit``; page sizes come from the list config.
    decode
        ``(snapshot) -> item`` or an async equivalent. May raise; failures
        skip the record.
    """

    type: ClassVar[BackendType] = BackendType.CLOUD_FIRESTORE

    query: Any
    decode: Callable[[Any], T | Awaitable[T]]

    def __post_init__(self) -> None:
        if self.query is None:
            raise FBListConfigError("Cloud Firestore lists need a query")
        if not callable(self.decode):
            raise FBListConfigError("Cloud Firestore lists need a callable decode(snapshot)")

    @property
    def can_listen(self) -> bool:
        return True

    def record_key(self, record: Any) -> str | None:
        doc_id = getattr(record, "id", None)
        return None if doc_id is None else str(doc_id)

    def decode_record(self, record: Any) -> T | Awaitable[T]:
        return self.decode(record)


@dataclass(frozen=True)
class RealtimeDatabaseSource(Generic[T]):
    """A Realtime Database reference and/or query plus the item decoder.

    Parameters
    ----------
    decode
        ``(key, json) -> item`` or an async equivalent.
    query
        Explicit ``firebase_admin.db.Query`` used for pages. When unset the
        pages are ``reference.order_by_key().limit_to_last(page_size)``.
    reference
        ``firebase_admin.db.Reference``. Required for live updates.
    next_query
        ``(query, items) -> query`` building the continuation query from the
        current list, for pagination by an arbitrary ordering field, e.g.
        ``lambda q, items: q.end_at(items[-1].timestamp - 1)``.
    """

    type: ClassVar[BackendType] = BackendType.REALTIME_DATABASE

    decode: Callable[[str, dict[str, Any]], T | Awaitable[T]]
    query: Any = None
    reference: Any = None
    next_query: Callable[[Any, list[Any]], Any] | None = None

    def __post_init__(self) -> None:
        if self.query is None and self.reference is None:
            raise FBListConfigError("Realtime Database lists need a query or a reference")
        if not callable(self.decode):
            raise FBListConfigError("Realtime Database lists need a callable decode(key, json)")
        if self.next_query is not None and not callable(self.next_query):
            raise FBListConfigError("next_query must be callable")

    @property
    def can_listen(self) -> bool:
        return self.reference is not None

    def record_key(self, record: RealtimeRecord) -> str | None:
        return record.key

    def decode_record(self, record: RealtimeRecord) -> T | Awaitable[T]:
        value = record.value
        if value is None:
            payload: dict[str, Any] = {}
        elif isinstance(value, Mapping):
            payload = dict(value)
        else:
            raise TypeError(f"expected an object at {record.key!r}, got {type(value).__name__}")
        return self.decode(record.key, payload)


ListSource = FirestoreSource[Any] | RealtimeDatabaseSource[Any]
