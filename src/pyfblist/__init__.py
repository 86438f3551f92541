"""pyfblist - Paginated, live-updating lists over Firebase queries."""

from importlib.metadata import PackageNotFoundError, version

try:
    __version__ = version("pyfblist")
except PackageNotFoundError:
    __version__ = "0+local"
from pyfblist.config import FirebaseSettings, ListConfig, ListHandlers
from pyfblist.connection import FirebaseConnection
from pyfblist.controller import RefreshIndicator
from pyfblist.exceptions import (
    FBListConfigError,
    FBListDecodeError,
    FBListError,
    FBListFetchError,
)
from pyfblist.logic import FBListViewLogic
from pyfblist.models import FBModel, RealtimeRecord, order_by_recent
from pyfblist.source import BackendType, FirestoreSource, ListSource, RealtimeDatabaseSource
from pyfblist.state import ChangeKind, ListState, ListStatus

__all__ = [
    "__version__",
    "BackendType",
    "ChangeKind",
    "FBListConfigError",
    "FBListDecodeError",
    "FBListError",
    "FBListFetchError",
    "FBListViewLogic",
    "FBModel",
    "FirebaseConnection",
    "FirebaseSettings",
    "FirestoreSource",
    "ListConfig",
    "ListHandlers",
    "ListSource",
    "ListState",
    "ListStatus",
    "RealtimeDatabaseSource",
    "RealtimeRecord",
    "RefreshIndicator",
    "order_by_recent",
]
