from __future__ import annotations

import pytest

from pyfblist.config import FirebaseSettings, ListConfig, ListHandlers
from pyfblist.exceptions import FBListConfigError
from pyfblist.models import RealtimeRecord
from pyfblist.source import FirestoreSource, RealtimeDatabaseSource


def test_list_config_defaults() -> None:
    config = ListConfig()

    assert config.first_page_size == 10
    assert config.page_size == 30
    assert config.live_window is None
    assert config.concurrent_decode is True
    assert config.serialize_fetches is False
    assert config.fetch_delay_seconds == 0.0


@pytest.mark.parametrize(
    "kwargs",
    [
        {"first_page_size": 0},
        {"page_size": -1},
        {"fetch_delay_ms": -5},
        {"live_window": 0},
        {"comparator": "newest"},
    ],
)
def test_list_config_rejects_invalid_values(kwargs: dict) -> None:
    with pytest.raises(FBListConfigError):
        ListConfig(**kwargs)


def test_list_config_from_env(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("FBLIST_FIRST_PAGE_SIZE", "5")
    monkeypatch.setenv("FBLIST_PAGE_SIZE", "15")
    monkeypatch.setenv("FBLIST_FETCH_DELAY_MS", "250")
    monkeypatch.setenv("FBLIST_SERIALIZE_FETCHES", "yes")
    monkeypatch.setenv("FBLIST_LISTEN", "off")

    config = ListConfig.from_env(page_size=20)

    assert config.first_page_size == 5
    assert config.page_size == 20
    assert config.fetch_delay_seconds == 0.25
    assert config.serialize_fetches is True
    assert config.listen is False
    assert config.merge_live_updates is True


def test_list_config_from_env_rejects_non_integers(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("FBLIST_PAGE_SIZE", "lots")

    with pytest.raises(FBListConfigError, match="FBLIST_PAGE_SIZE"):
        ListConfig.from_env()


def test_handlers_must_be_callable() -> None:
    with pytest.raises(FBListConfigError, match="on_changed"):
        ListHandlers(on_changed="print")  # type: ignore[arg-type]


def test_firebase_settings_from_env(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.delenv("FIREBASE_SERVICE_ACCOUNT", raising=False)
    monkeypatch.setenv("GOOGLE_APPLICATION_CREDENTIALS", "/secrets/sa.json")
    monkeypatch.setenv("FIREBASE_DATABASE_URL", "https://demo.firebaseio.com")
    monkeypatch.delenv("FIREBASE_PROJECT_ID", raising=False)
    monkeypatch.delenv("FIREBASE_APP_NAME", raising=False)

    settings = FirebaseSettings.from_env(app_name="tests")

    assert settings.service_account_path == "/secrets/sa.json"
    assert settings.database_url == "https://demo.firebaseio.com"
    assert settings.project_id is None
    assert settings.app_name == "tests"


def test_firestore_source_validation() -> None:
    with pytest.raises(FBListConfigError):
        FirestoreSource(query=None, decode=lambda snap: snap)
    with pytest.raises(FBListConfigError):
        FirestoreSource(query=object(), decode=None)  # type: ignore[arg-type]


def test_realtime_source_validation_and_listen_capability() -> None:
    decode = lambda key, payload: (key, payload)  # noqa: E731

    with pytest.raises(FBListConfigError):
        RealtimeDatabaseSource(decode=decode)
    with pytest.raises(FBListConfigError):
        RealtimeDatabaseSource(decode=decode, reference=object(), next_query="end_at")  # type: ignore[arg-type]

    assert RealtimeDatabaseSource(decode=decode, reference=object()).can_listen
    assert not RealtimeDatabaseSource(decode=decode, query=object()).can_listen


def test_realtime_source_decode_record() -> None:
    source = RealtimeDatabaseSource(decode=lambda key, payload: (key, payload), reference=object())

    assert source.decode_record(RealtimeRecord("a", {"x": 1})) == ("a", {"x": 1})
    assert source.decode_record(RealtimeRecord("b", None)) == ("b", {})
    with pytest.raises(TypeError):
        source.decode_record(RealtimeRecord("c", "scalar"))
