"""Base item model and ordering helpers.

Any object with a non-empty ``str`` attribute ``id`` can live in a list.
:class:`FBModel` is an optional pydantic base that additionally provides:

* ``alias_generator=to_camel`` so camelCase document keys
  (``createdAt``) map to snake_case fields.
* Coercion of Firestore timestamps, datetimes and epoch seconds or
  milliseconds into UTC ``created_at`` datetimes.
* A ``raw`` dict that captures the original payload.
"""

from __future__ import annotations

from datetime import UTC, datetime
from typing import Annotated, Any

from pydantic import BaseModel, BeforeValidator, ConfigDict, Field, field_validator, model_validator
from pydantic.alias_generators import to_camel

# Threshold to distinguish seconds from milliseconds.
_MS_THRESHOLD = 1_000_000_000_000


def parse_timestamp(value: Any) -> datetime | None:
    """Convert a datetime or epoch timestamp (seconds **or** milliseconds) to UTC.

    Firestore returns ``DatetimeWithNanoseconds`` (a ``datetime`` subclass);
    Realtime Database payloads usually carry ``ServerValue.TIMESTAMP``
    epoch milliseconds.
    """
    if value is None:
        return None
    if isinstance(value, datetime):
        if value.tzinfo is None:
            return value.replace(tzinfo=UTC)
        return value
    ts = float(value)
    if ts >= _MS_THRESHOLD:
        ts = ts / 1000.0
    return datetime.fromtimestamp(ts, tz=UTC)


Timestamp = Annotated[datetime | None, BeforeValidator(parse_timestamp)]
"""Annotated type that coerces epoch numbers (seconds or ms) to UTC datetimes."""


class FBModel(BaseModel):
    """Base for list items decoded from Firestore or Realtime Database."""

    model_config = ConfigDict(
        frozen=True,
        extra="ignore",
        populate_by_name=True,
        alias_generator=to_camel,
    )

    id: str
    created_at: Timestamp = None
    raw: dict[str, Any] = Field(default_factory=dict)
    """Original payload."""

    @field_validator("id", mode="before")
    @classmethod
    def _normalize_id(cls, value: Any) -> str:
        if not isinstance(value, str):
            raise ValueError("id must be a string")
        item_id = value.strip()
        if not item_id:
            raise ValueError("id must be non-empty")
        return item_id

    @model_validator(mode="before")
    @classmethod
    def _stash_raw(cls, values: Any) -> Any:
        if not isinstance(values, dict) or "raw" in values:
            return values
        stashed = dict(values)
        stashed["raw"] = {k: v for k, v in values.items() if k != "id"}
        return stashed


def order_by_recent(a: Any, b: Any) -> int:
    """Comparator: newest ``created_at`` first, undated items last.

    Equal timestamps compare equal so a stable sort keeps their insertion
    order.
    """
    a_ts = getattr(a, "created_at", None)
    b_ts = getattr(b, "created_at", None)
    if a_ts is None and b_ts is None:
        return 0
    if a_ts is None:
        return 1
    if b_ts is None:
        return -1
    if a_ts > b_ts:
        return -1
    if a_ts < b_ts:
        return 1
    return 0
