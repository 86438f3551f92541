"""Shared defaults for list pagination and live updates."""

from __future__ import annotations

#: Items requested by the very first (non-continuation) page.
DEFAULT_FIRST_PAGE_SIZE: int = 10

#: Items requested by every subsequent page.
DEFAULT_PAGE_SIZE: int = 30

#: Realtime Database live updates only replay the most recent child.
DEFAULT_REALTIME_LIVE_WINDOW: int = 1

#: Realtime Database listener event types (firebase_admin.db.Event.event_type).
RTDB_EVENT_PUT = "put"
RTDB_EVENT_PATCH = "patch"
