from __future__ import annotations

from dataclasses import dataclass

from pyfblist.state.events import ListStatus
from pyfblist.state.store import DocumentStore, ListState


@dataclass(frozen=True)
class Item:
    id: str
    rank: int = 0


def _by_rank(a: Item, b: Item) -> int:
    return a.rank - b.rank


def test_known_id_is_replaced_in_place() -> None:
    store = DocumentStore([Item("a", 1), Item("b", 2), Item("c", 3)])

    store.insert_or_replace(Item("b", 20))

    assert store.ids == ["a", "b", "c"]
    assert store.get("b") == Item("b", 20)


def test_unknown_ids_are_appended() -> None:
    store = DocumentStore([Item("a")])
    store.append_all([Item("b"), Item("a", 5), Item("c")])

    assert store.ids == ["a", "b", "c"]
    assert store.get("a") == Item("a", 5)
    assert len(store) == 3


def test_replace_all_keeps_last_duplicate() -> None:
    store = DocumentStore([Item("old")])
    store.replace_all([Item("x", 1), Item("y"), Item("x", 2)])

    assert store.ids == ["x", "y"]
    assert store.get("x") == Item("x", 2)
    assert "old" not in store


def test_remove_reindexes() -> None:
    store = DocumentStore([Item("a"), Item("b"), Item("c")])

    assert store.remove("b") is True
    assert store.remove("missing") is False

    store.insert_or_replace(Item("c", 9))
    assert store.ids == ["a", "c"]
    assert store.get("c") == Item("c", 9)


def test_sort_is_stable() -> None:
    store = DocumentStore([Item("a", 2), Item("b", 1), Item("c", 2), Item("d", 1)])
    store.sort(_by_rank)

    assert store.ids == ["b", "d", "a", "c"]
    store.insert_or_replace(Item("a", 0))
    assert store.ids == ["b", "d", "a", "c"]


def test_items_is_a_copy() -> None:
    store = DocumentStore([Item("a")])
    items = store.items
    items.append(Item("b"))

    assert store.ids == ["a"]


def test_list_state_flags() -> None:
    state: ListState[Item] = ListState()

    assert state.status == ListStatus.IDLE
    assert state.is_empty
    assert not state.is_loading

    state.status = ListStatus.LOADING_MORE
    state.store.insert_or_replace(Item("a"))

    assert state.is_loading
    assert state.items == [Item("a")]
    assert "items=1" in repr(state)
