"""Firebase app bootstrap for building list sources."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any

import firebase_admin
from firebase_admin import credentials, db, firestore

from pyfblist.config import FirebaseSettings
from pyfblist.exceptions import FBListConfigError

_logger = logging.getLogger(__name__)


class FirebaseConnection:
    """Owns one named ``firebase_admin`` app.

    Usage::

        with FirebaseConnection(FirebaseSettings.from_env()) as conn:
            query = conn.firestore().collection("posts").order_by("createdAt")
    """

    def __init__(self, settings: FirebaseSettings | None = None) -> None:
        self._settings = settings or FirebaseSettings.from_env()
        self._app: firebase_admin.App | None = None

    def __enter__(self) -> FirebaseConnection:
        self.open()
        return self

    def __exit__(self, *exc: Any) -> None:
        self.close()

    @property
    def settings(self) -> FirebaseSettings:
        return self._settings

    @property
    def app(self) -> firebase_admin.App:
        if self._app is None:
            raise FBListConfigError("Firebase connection is not open")
        return self._app

    def open(self) -> firebase_admin.App:
        """Initialize (or reuse) the named app."""
        if self._app is not None:
            return self._app
        name = self._settings.app_name
        try:
            self._app = firebase_admin.get_app(name)
            _logger.debug("Reusing Firebase app %s", name)
            return self._app
        except ValueError:
            pass

        options: dict[str, Any] = {}
        if self._settings.database_url:
            options["databaseURL"] = self._settings.database_url
        if self._settings.project_id:
            options["projectId"] = self._settings.project_id
        try:
            self._app = firebase_admin.initialize_app(self._credential(), options or None, name=name)
        except (ValueError, OSError) as exc:
            raise FBListConfigError(f"Failed to initialize Firebase app {name!r}: {exc}") from exc
        _logger.info("Firebase app %s initialized (project=%s)", name, self._app.project_id)
        return self._app

    def close(self) -> None:
        app, self._app = self._app, None
        if app is not None:
            firebase_admin.delete_app(app)
            _logger.debug("Firebase app %s deleted", app.name)

    def _credential(self) -> credentials.Base:
        path = self._settings.service_account_path
        if path is None:
            return credentials.ApplicationDefault()
        if not Path(path).is_file():
            raise FBListConfigError(f"Service account file not found: {path}")
        return credentials.Certificate(path)

    def firestore(self) -> Any:
        """Cloud Firestore client bound to this app."""
        return firestore.client(self.app)

    def reference(self, path: str = "/") -> db.Reference:
        """Realtime Database reference bound to this app."""
        if not self._settings.database_url:
            raise FBListConfigError("Realtime Database references need database_url (FIREBASE_DATABASE_URL)")
        return db.reference(path, app=self.app)

    def collection(self, path: str) -> Any:
        """Firestore collection reference (a query over all its documents)."""
        return self.firestore().collection(path)
