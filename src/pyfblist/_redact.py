"""Redacted views of list payloads for DEBUG logs.

Documents synced into lists are application data and often hold personal
details or credentials; field names matching ``_SENSITIVE_FIELDS`` (case,
``_`` and ``-`` insensitive) are masked and long values are cut short.
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from typing import Any

_SENSITIVE_FIELDS: frozenset[str] = frozenset(
    {
        "password",
        "passwd",
        "secret",
        "token",
        "idtoken",
        "accesstoken",
        "refreshtoken",
        "fcmtoken",
        "apikey",
        "privatekey",
        "authorization",
        "cookie",
        # personal data
        "email",
        "phone",
        "phonenumber",
    }
)

_MAX_DEPTH = 20


@dataclass(frozen=True)
class _Limits:
    max_string: int
    max_items: int


def _is_sensitive(field: Any) -> bool:
    return str(field).replace("_", "").replace("-", "").lower() in _SENSITIVE_FIELDS


def _redact(value: Any, limits: _Limits, depth: int) -> Any:
    if depth > _MAX_DEPTH:
        return "<max-depth>"
    if value is None or isinstance(value, (bool, int, float)):
        return value
    if isinstance(value, str):
        if len(value) <= limits.max_string:
            return value
        return value[: limits.max_string] + "…<truncated>"
    if isinstance(value, (bytes, bytearray)):
        return f"<bytes:{len(value)}b>"

    if isinstance(value, Mapping):
        out: dict[str, Any] = {}
        for count, (field, child) in enumerate(value.items()):
            if count == limits.max_items:
                out["…"] = f"<{len(value) - limits.max_items} more>"
                break
            out[str(field)] = "<redacted>" if _is_sensitive(field) else _redact(child, limits, depth + 1)
        return out

    if isinstance(value, Sequence):
        head = [_redact(child, limits, depth + 1) for child in list(value)[: limits.max_items]]
        if len(value) > limits.max_items:
            head.append(f"<{len(value) - limits.max_items} more>")
        return head

    # Unknown objects (SDK types, models) are shown by repr only.
    return repr(value)


def redact_for_log(value: Any, *, max_string: int = 256, max_items: int = 50) -> Any:
    """Return a redacted copy of *value* suitable for debug logs."""
    return _redact(value, _Limits(max_string=max_string, max_items=max_items), 0)


def describe_record(record: Any) -> Any:
    """Log-friendly view of a raw record (``RealtimeRecord`` or Firestore snapshot)."""
    if hasattr(record, "key") and hasattr(record, "value"):
        return {"key": record.key, "value": redact_for_log(record.value)}
    to_dict = getattr(record, "to_dict", None)
    if hasattr(record, "id") and callable(to_dict):
        try:
            data = to_dict()
        except Exception:  # noqa: BLE001
            data = "<unreadable>"
        return {"id": record.id, "data": redact_for_log(data)}
    return redact_for_log(record)
