"""Raw record shapes delivered by the backends."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any


@dataclass(frozen=True)
class RealtimeRecord:
    """One Realtime Database child: its key and its JSON value."""

    key: str
    value: Any
