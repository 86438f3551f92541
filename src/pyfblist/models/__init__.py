"""Item models and raw record shapes."""

from pyfblist.models._base import FBModel, Timestamp, order_by_recent, parse_timestamp
from pyfblist.models.records import RealtimeRecord

__all__ = [
    "FBModel",
    "RealtimeRecord",
    "Timestamp",
    "order_by_recent",
    "parse_timestamp",
]
