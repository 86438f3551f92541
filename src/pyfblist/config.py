"""Synchronizer and connection configuration for pyfblist."""

from __future__ import annotations

import dataclasses
import os
from collections.abc import Awaitable, Callable, Mapping
from typing import Any

from pyfblist._constants import DEFAULT_FIRST_PAGE_SIZE, DEFAULT_PAGE_SIZE
from pyfblist.exceptions import FBListConfigError


def _env_bool(value: str | None, default: bool) -> bool:
    if value is None:
        return default
    normalized = value.strip().lower()
    if normalized in {"1", "true", "yes", "y", "on"}:
        return True
    if normalized in {"0", "false", "no", "n", "off"}:
        return False
    return default


def _env_int(env: Mapping[str, str], key: str) -> int | None:
    raw = env.get(key)
    if raw is None or not raw.strip():
        return None
    try:
        return int(raw)
    except ValueError as exc:
        raise FBListConfigError(f"{key} must be an integer, got {raw!r}") from exc


@dataclasses.dataclass(frozen=True)
class ListConfig:
    """Pagination and live-update behaviour of a list synchronizer.

    Parameters
    ----------
    first_page_size : int
        Number of records requested by a refresh (first page).
    page_size : int
        Number of records requested by every ``load_more()`` call.
    fetch_delay_ms : int
        Delay in milliseconds before the very first refresh issued by
        ``start()``. Lets dependent consumers settle before the first
        network round trip.
    live_window : int or None
        How many of the most recent records the live listener replays.
        ``None`` picks the backend default (Firestore: ``page_size``,
        Realtime Database: 1).
    concurrent_decode : bool
        Decode the records of a batch concurrently. When ``False`` records
        are decoded one at a time, which gives a deterministic order of
        decode-error notifications at the cost of latency.
    serialize_fetches : bool
        Serialize ``refresh()`` and ``load_more()`` behind a lock. By
        default overlapping fetches are allowed and the id-based merge keeps
        the list convergent.
    merge_live_updates : bool
        Merge live-update items into the list automatically. When ``False``
        the items are only handed to ``ListHandlers.on_live_update`` and the
        caller decides what to do with them.
    listen : bool
        Subscribe to live updates after the first refresh.
    comparator : callable or None
        ``(a, b) -> int`` ordering applied (stable) after every merge.
        ``None`` keeps insertion order.
    """

    first_page_size: int = DEFAULT_FIRST_PAGE_SIZE
    page_size: int = DEFAULT_PAGE_SIZE
    fetch_delay_ms: int = 0
    live_window: int | None = None
    concurrent_decode: bool = True
    serialize_fetches: bool = False
    merge_live_updates: bool = True
    listen: bool = True
    comparator: Callable[[Any, Any], int] | None = None

    def __post_init__(self) -> None:
        if self.first_page_size < 1:
            raise FBListConfigError(f"first_page_size must be >= 1, got {self.first_page_size}")
        if self.page_size < 1:
            raise FBListConfigError(f"page_size must be >= 1, got {self.page_size}")
        if self.fetch_delay_ms < 0:
            raise FBListConfigError(f"fetch_delay_ms must be >= 0, got {self.fetch_delay_ms}")
        if self.live_window is not None and self.live_window < 1:
            raise FBListConfigError(f"live_window must be >= 1, got {self.live_window}")
        if self.comparator is not None and not callable(self.comparator):
            raise FBListConfigError("comparator must be callable")

    @property
    def fetch_delay_seconds(self) -> float:
        return self.fetch_delay_ms / 1000.0

    @classmethod
    def from_env(cls, **overrides: Any) -> ListConfig:
        """Create configuration from ``FBLIST_*`` environment variables.

        Explicit keyword arguments override environment values.
        """
        env = os.environ
        config_kwargs: dict[str, Any] = {}

        _ENV_INT_MAP = {
            "FBLIST_FIRST_PAGE_SIZE": "first_page_size",
            "FBLIST_PAGE_SIZE": "page_size",
            "FBLIST_FETCH_DELAY_MS": "fetch_delay_ms",
            "FBLIST_LIVE_WINDOW": "live_window",
        }
        for env_key, field_name in _ENV_INT_MAP.items():
            value = _env_int(env, env_key)
            if value is not None and field_name not in overrides:
                config_kwargs[field_name] = value

        _ENV_BOOL_MAP = {
            "FBLIST_CONCURRENT_DECODE": ("concurrent_decode", True),
            "FBLIST_SERIALIZE_FETCHES": ("serialize_fetches", False),
            "FBLIST_MERGE_LIVE_UPDATES": ("merge_live_updates", True),
            "FBLIST_LISTEN": ("listen", True),
        }
        for env_key, (field_name, default) in _ENV_BOOL_MAP.items():
            if field_name not in overrides:
                config_kwargs[field_name] = _env_bool(env.get(env_key), default)

        config_kwargs.update(overrides)
        return cls(**config_kwargs)


@dataclasses.dataclass(frozen=True)
class ListHandlers:
    """Optional observer callbacks of a list synchronizer.

    Every handler is invoked on the event-loop thread. Exceptions raised by
    a handler are logged and swallowed.

    Parameters
    ----------
    on_fetch_error : callable or None
        ``(error)``; a page fetch failed. The list is left untouched.
    on_decode_error : callable or None
        ``(error)``; a single record could not be decoded and was skipped.
    on_first_fetch_status : callable or None
        ``(is_complete)``; ``False`` when the synchronizer starts and
        ``True`` once the first refresh succeeded.
    on_live_update : callable or None
        ``(kind, item)``; every live change, after decoding. ``item`` is
        ``None`` for removals. Required when ``merge_live_updates`` is off.
    on_changed : callable or None
        ``(state)``; the list state changed (status or items).
    refresher : callable or None
        ``(refresh)``; receives the synchronizer's ``refresh`` coroutine
        function at start so outer code can trigger a reload.
    """

    on_fetch_error: Callable[[Exception], None] | None = None
    on_decode_error: Callable[[Exception], None] | None = None
    on_first_fetch_status: Callable[[bool], None] | None = None
    on_live_update: Callable[[Any, Any], None] | None = None
    on_changed: Callable[[Any], None] | None = None
    refresher: Callable[[Callable[[], Awaitable[bool]]], None] | None = None

    def __post_init__(self) -> None:
        for field in dataclasses.fields(self):
            value = getattr(self, field.name)
            if value is not None and not callable(value):
                raise FBListConfigError(f"handler {field.name} must be callable")


@dataclasses.dataclass(frozen=True)
class FirebaseSettings:
    """Connection settings for :class:`pyfblist.connection.FirebaseConnection`.

    Parameters
    ----------
    service_account_path : str or None
        Path to a service-account JSON file. ``None`` uses application
        default credentials.
    database_url : str or None
        Realtime Database URL (``https://<db>.firebaseio.com``). Required
        for Realtime Database references.
    project_id : str or None
        Google Cloud project id; inferred from the credentials when unset.
    app_name : str
        Name of the ``firebase_admin`` app created for this connection.
    """

    service_account_path: str | None = None
    database_url: str | None = None
    project_id: str | None = None
    app_name: str = "pyfblist"

    @classmethod
    def from_env(cls, **overrides: Any) -> FirebaseSettings:
        """Create settings from ``FIREBASE_*`` environment variables.

        ``FIREBASE_SERVICE_ACCOUNT`` falls back to
        ``GOOGLE_APPLICATION_CREDENTIALS``.
        """
        env = os.environ
        settings_kwargs: dict[str, Any] = {}

        service_account = env.get("FIREBASE_SERVICE_ACCOUNT") or env.get("GOOGLE_APPLICATION_CREDENTIALS")
        if service_account:
            settings_kwargs["service_account_path"] = service_account

        _ENV_SETTINGS_MAP = {
            "FIREBASE_DATABASE_URL": "database_url",
            "FIREBASE_PROJECT_ID": "project_id",
            "FIREBASE_APP_NAME": "app_name",
        }
        for env_key, field_name in _ENV_SETTINGS_MAP.items():
            val = env.get(env_key)
            if val:
                settings_kwargs[field_name] = val

        settings_kwargs.update(overrides)
        return cls(**settings_kwargs)
