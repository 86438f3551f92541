"""Backend adapters: page fetchers and live listeners per Firebase product."""

from pyfblist._backends._base import LiveUpdateListener, PageFetcher, Subscription, call_backend
from pyfblist._backends.firestore import FirestoreLiveListener, FirestorePageFetcher
from pyfblist._backends.realtime import ChildEventTranslator, RealtimeLiveListener, RealtimePageFetcher

__all__ = [
    "ChildEventTranslator",
    "FirestoreLiveListener",
    "FirestorePageFetcher",
    "LiveUpdateListener",
    "PageFetcher",
    "RealtimeLiveListener",
    "RealtimePageFetcher",
    "Subscription",
    "call_backend",
]
