from __future__ import annotations

import asyncio
from typing import Any

import pytest
from fakes import (
    FakeCollection,
    FakeReference,
    FakeSnapshot,
    Post,
    RecordingIndicator,
    decode_child,
    decode_snapshot,
    settle,
)

from pyfblist import (
    BackendType,
    ChangeKind,
    FBListConfigError,
    FBListViewLogic,
    ListConfig,
    ListHandlers,
    ListStatus,
    order_by_recent,
)


def _docs(*ids: str) -> FakeCollection:
    return FakeCollection([FakeSnapshot(doc_id, {"title": doc_id.upper()}) for doc_id in ids])


def _ids(logic: FBListViewLogic[Post]) -> list[str]:
    return [item.id for item in logic.items]


@pytest.mark.asyncio
async def test_first_page_load_more_and_live_add() -> None:
    collection = _docs("a", "b", "c")
    indicator = RecordingIndicator()
    logic: FBListViewLogic[Post] = FBListViewLogic.cloud_firestore(
        query=collection.query(),
        decode=decode_snapshot,
        config=ListConfig(first_page_size=2, page_size=2),
        indicator=indicator,
    )

    async with logic:
        assert _ids(logic) == ["a", "b"]
        assert await logic.load_more() is True
        assert _ids(logic) == ["a", "b", "c"]

        collection.watches[0].emit(("ADDED", FakeSnapshot("d", {"title": "D"})))
        await settle(logic)
        assert _ids(logic) == ["a", "b", "c", "d"]

    assert logic.is_disposed
    assert logic.backend_type == BackendType.CLOUD_FIRESTORE
    assert indicator.events == ["refresh_completed", "load_complete"]


@pytest.mark.asyncio
async def test_live_updates_dedup_and_sort() -> None:
    collection = FakeCollection(
        [
            FakeSnapshot("old", {"title": "old", "createdAt": 1_000}),
            FakeSnapshot("mid", {"title": "mid", "createdAt": 2_000}),
        ]
    )
    logic: FBListViewLogic[Post] = FBListViewLogic.cloud_firestore(
        query=collection.query(),
        decode=decode_snapshot,
        config=ListConfig(comparator=order_by_recent),
    )

    async with logic:
        assert _ids(logic) == ["mid", "old"]

        watch = collection.watches[0]
        watch.emit_from_thread(
            ("ADDED", FakeSnapshot("new", {"title": "new", "createdAt": 3_000})),
            ("MODIFIED", FakeSnapshot("old", {"title": "edited", "createdAt": 1_000})),
            ("ADDED", FakeSnapshot("mid", {"title": "mid again", "createdAt": 2_000})),
        )
        await settle(logic)

        assert _ids(logic) == ["new", "mid", "old"]
        assert logic.items[2].title == "edited"
        assert logic.items[1].title == "mid again"


@pytest.mark.asyncio
async def test_live_removal_reports_none() -> None:
    collection = _docs("a", "b")
    seen: list[tuple[ChangeKind, Any]] = []
    logic: FBListViewLogic[Post] = FBListViewLogic.cloud_firestore(
        query=collection.query(),
        decode=decode_snapshot,
        handlers=ListHandlers(on_live_update=lambda kind, item: seen.append((kind, item))),
    )

    async with logic:
        collection.watches[0].emit(("REMOVED", collection.delete("a")))
        await settle(logic)

        assert _ids(logic) == ["b"]
        assert [kind for kind, _ in seen] == [ChangeKind.ADDED, ChangeKind.ADDED, ChangeKind.REMOVED]
        assert seen[-1] == (ChangeKind.REMOVED, None)


@pytest.mark.asyncio
async def test_unmerged_live_updates_go_to_the_handler_only() -> None:
    collection = _docs("a")
    seen: list[tuple[ChangeKind, str]] = []
    logic: FBListViewLogic[Post] = FBListViewLogic.cloud_firestore(
        query=collection.query(),
        decode=decode_snapshot,
        config=ListConfig(merge_live_updates=False),
        handlers=ListHandlers(on_live_update=lambda kind, item: seen.append((kind, item.id))),
    )

    async with logic:
        collection.watches[0].emit(("ADDED", FakeSnapshot("z", {"title": "Z"})))
        await settle(logic)

        assert _ids(logic) == ["a"]
        assert seen == [(ChangeKind.ADDED, "a"), (ChangeKind.ADDED, "z")]


def test_unmerged_live_updates_require_a_handler() -> None:
    with pytest.raises(FBListConfigError):
        FBListViewLogic.cloud_firestore(
            query=_docs().query(),
            decode=decode_snapshot,
            config=ListConfig(merge_live_updates=False),
        )


@pytest.mark.asyncio
async def test_one_bad_record_is_skipped() -> None:
    collection = FakeCollection(
        [
            FakeSnapshot("a", {"title": "A"}),
            FakeSnapshot("b", {"title": {"not": "a string"}}),
            FakeSnapshot("c", {"title": "C"}),
        ]
    )
    errors: list[Exception] = []
    logic: FBListViewLogic[Post] = FBListViewLogic.cloud_firestore(
        query=collection.query(),
        decode=decode_snapshot,
        config=ListConfig(listen=False),
        handlers=ListHandlers(on_decode_error=errors.append),
    )

    async with logic:
        assert _ids(logic) == ["a", "c"]
        assert len(errors) == 1
        assert logic.state.status == ListStatus.COMPLETE


@pytest.mark.asyncio
async def test_nothing_happens_after_dispose() -> None:
    collection = _docs("a", "b", "c")
    seen: list[Any] = []
    changes: list[ListStatus] = []
    logic: FBListViewLogic[Post] = FBListViewLogic.cloud_firestore(
        query=collection.query(),
        decode=decode_snapshot,
        config=ListConfig(first_page_size=1, page_size=1),
        handlers=ListHandlers(
            on_live_update=lambda kind, item: seen.append(item),
            on_changed=lambda state: changes.append(state.status),
        ),
    )

    await logic.start()
    watch = collection.watches[0]
    logic.dispose()
    logic.dispose()
    changes.clear()

    watch.emit_from_thread(("ADDED", FakeSnapshot("z", {"title": "Z"})))
    await asyncio.sleep(0)

    assert watch.unsubscribed
    assert await logic.load_more() is False
    assert await logic.refresh() is False
    assert _ids(logic) == ["a"]
    assert seen == []
    assert changes == []
    assert len(collection.calls) == 1


@pytest.mark.asyncio
async def test_start_reports_first_fetch_and_hands_out_refresh() -> None:
    collection = _docs("a")
    first_status: list[bool] = []
    refreshers: list[Any] = []
    logic: FBListViewLogic[Post] = FBListViewLogic.cloud_firestore(
        query=collection.query(),
        decode=decode_snapshot,
        handlers=ListHandlers(on_first_fetch_status=first_status.append, refresher=refreshers.append),
    )

    await logic.start()
    await logic.start()
    try:
        assert first_status == [False, True]
        assert len(refreshers) == 1
        assert len(collection.calls) == 1
        assert len(collection.watches) == 1

        collection.docs.append(FakeSnapshot("b", {"title": "B"}))
        assert await refreshers[0]() is True
        assert _ids(logic) == ["a", "b"]
    finally:
        logic.dispose()


@pytest.mark.asyncio
async def test_dispose_during_fetch_delay_skips_first_fetch() -> None:
    collection = _docs("a")
    logic: FBListViewLogic[Post] = FBListViewLogic.cloud_firestore(
        query=collection.query(),
        decode=decode_snapshot,
        config=ListConfig(fetch_delay_ms=50),
    )

    task = asyncio.create_task(logic.start())
    await asyncio.sleep(0)
    logic.dispose()
    await task

    assert collection.calls == []
    assert collection.watches == []


@pytest.mark.asyncio
async def test_live_window_replay_does_not_grow_the_first_page() -> None:
    collection = _docs("a", "b", "c", "d", "e")
    logic: FBListViewLogic[Post] = FBListViewLogic.cloud_firestore(
        query=collection.query(),
        decode=decode_snapshot,
        config=ListConfig(first_page_size=2, page_size=30),
    )

    async with logic:
        await settle(logic)
        assert collection.watches[0].limit == 2
        assert _ids(logic) == ["a", "b"]

        assert await logic.load_more() is True
        assert _ids(logic) == ["a", "b", "c", "d", "e"]
        assert collection.calls == [(2, None), (30, "b")]


@pytest.mark.asyncio
async def test_listen_disabled() -> None:
    collection = _docs("a")
    logic: FBListViewLogic[Post] = FBListViewLogic.cloud_firestore(
        query=collection.query(),
        decode=decode_snapshot,
        config=ListConfig(listen=False),
    )

    async with logic:
        assert _ids(logic) == ["a"]
        assert not logic.is_listening
        assert collection.watches == []


@pytest.mark.asyncio
async def test_raising_live_handler_does_not_stop_updates() -> None:
    collection = _docs("a")

    def explode(_kind: ChangeKind, _item: Any) -> None:
        raise RuntimeError("observer bug")

    logic: FBListViewLogic[Post] = FBListViewLogic.cloud_firestore(
        query=collection.query(),
        decode=decode_snapshot,
        handlers=ListHandlers(on_live_update=explode),
    )

    async with logic:
        watch = collection.watches[0]
        watch.emit(("ADDED", FakeSnapshot("b", {"title": "B"})))
        watch.emit(("ADDED", FakeSnapshot("c", {"title": "C"})))
        await settle(logic)

        assert _ids(logic) == ["a", "b", "c"]


@pytest.mark.asyncio
async def test_realtime_database_list() -> None:
    reference = FakeReference({f"k{i}": {"title": f"T{i}"} for i in range(5)})
    logic: FBListViewLogic[Post] = FBListViewLogic.realtime_database(
        reference=reference,
        decode=decode_child,
        config=ListConfig(first_page_size=2, page_size=3),
    )

    async with logic:
        assert logic.backend_type == BackendType.REALTIME_DATABASE
        assert _ids(logic) == ["k3", "k4"]
        assert await logic.load_more() is True
        assert _ids(logic) == ["k3", "k4", "k0", "k1", "k2"]
        assert reference.calls == [(2, None), (4, "k3")]

        registration = reference.registrations[0]
        registration.emit("put", "/", dict(reference.data))
        registration.emit("put", "/k5", {"title": "T5"})
        registration.emit("put", "/k1", None)
        await settle(logic)

        assert _ids(logic) == ["k3", "k4", "k0", "k2", "k5"]

    assert reference.registrations[0].closed


@pytest.mark.asyncio
async def test_realtime_query_without_reference_is_fetch_only() -> None:
    reference = FakeReference({"a": {"title": "A"}, "b": {"title": "B"}})
    logic: FBListViewLogic[Post] = FBListViewLogic.realtime_database(
        query=reference.order_by_key().limit_to_last(10),
        decode=decode_child,
    )

    async with logic:
        assert _ids(logic) == ["a", "b"]
        assert not logic.is_listening
        assert reference.registrations == []


def test_realtime_source_needs_query_or_reference() -> None:
    with pytest.raises(FBListConfigError):
        FBListViewLogic.realtime_database(decode=decode_child)


@pytest.mark.asyncio
async def test_dispose_releases_callers_waiting_on_live_updates() -> None:
    collection = _docs("a")
    gate = asyncio.Event()

    async def gated_decode(snapshot: Any) -> Post:
        if snapshot.id == "slow":
            await gate.wait()
        return decode_snapshot(snapshot)

    logic: FBListViewLogic[Post] = FBListViewLogic.cloud_firestore(query=collection.query(), decode=gated_decode)
    await logic.start()
    collection.watches[0].emit(("ADDED", FakeSnapshot("slow", {})), ("ADDED", FakeSnapshot("b", {})))
    await asyncio.sleep(0)

    waiter = asyncio.create_task(logic.wait_for_live_updates())
    await asyncio.sleep(0)
    logic.dispose()

    await asyncio.wait_for(waiter, 1.0)
    assert _ids(logic) == ["a"]
