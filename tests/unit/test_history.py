"""Tests for undo/redo history."""

import pytest

from nerdcalci.config import MAX_HISTORY_SIZE
from nerdcalci.core.database.store import DocumentStore
from nerdcalci.core.history import HistoryStore, restore_snapshot
from nerdcalci.models.document import Line, Snapshot, SnapshotLine


def _lines(*expressions: str) -> list[Line]:
    return [
        Line(id=i + 1, document_id=1, sort_order=i, expression=expr)
        for i, expr in enumerate(expressions)
    ]


def _expressions(snapshot: Snapshot | None) -> list[str]:
    assert snapshot is not None
    return [line.expression for line in snapshot.lines]


def test_empty_history() -> None:
    history = HistoryStore()
    assert not history.can_undo(1)
    assert not history.can_redo(1)
    assert history.undo(1, _lines("a")) is None
    assert history.redo(1, _lines("a")) is None


def test_undo_returns_recorded_state_and_enables_redo() -> None:
    history = HistoryStore()
    history.record(1, _lines("a"))

    snapshot = history.undo(1, _lines("a", "b"))

    assert _expressions(snapshot) == ["a"]
    assert not history.can_undo(1)
    assert history.can_redo(1)
    assert _expressions(history.redo(1, _lines("a"))) == ["a", "b"]
    assert history.can_undo(1)


def test_record_clears_redo() -> None:
    history = HistoryStore()
    history.record(1, _lines("a"))
    history.undo(1, _lines("a", "b"))
    history.record(1, _lines("a"))
    assert not history.can_redo(1)


def test_depth_is_bounded_and_oldest_evicted() -> None:
    history = HistoryStore()
    for i in range(MAX_HISTORY_SIZE + 5):
        history.record(1, _lines(f"v{i}"))

    assert history.depth(1) == (MAX_HISTORY_SIZE, 0)
    popped = []
    while history.can_undo(1):
        popped.append(_expressions(history.undo(1, _lines("now")))[0])
    assert popped[0] == f"v{MAX_HISTORY_SIZE + 4}"
    assert popped[-1] == "v5"


def test_documents_have_separate_histories() -> None:
    history = HistoryStore()
    history.record(1, _lines("a"))
    assert not history.can_undo(2)
    history.clear(1)
    assert not history.can_undo(1)


def test_rejects_non_positive_size() -> None:
    with pytest.raises(ValueError):
        HistoryStore(max_size=0)


def test_snapshot_sorts_lines() -> None:
    lines = [
        Line(id=1, document_id=1, sort_order=1, expression="b", result="2"),
        Line(id=2, document_id=1, sort_order=0, expression="a", result="1"),
    ]
    assert Snapshot.of(lines).lines == (
        SnapshotLine(sort_order=0, expression="a", result="1"),
        SnapshotLine(sort_order=1, expression="b", result="2"),
    )


def _snapshot(*expressions: str) -> Snapshot:
    return Snapshot(
        lines=tuple(
            SnapshotLine(sort_order=i, expression=e, result="") for i, e in enumerate(expressions)
        )
    )


@pytest.mark.parametrize(
    ("before", "target"),
    [
        (["a = 1", "a + 1"], ["a = 5", "a * 2"]),
        (["a = 1"], ["a = 1", "a + 1", "a + 2"]),
        (["a = 1", "a + 1", "a + 2"], ["a = 7"]),
    ],
)
def test_restore_snapshot_reconciles_by_position(
    store: DocumentStore, before: list[str], target: list[str]
) -> None:
    doc = store.create_document("Doc")
    store.replace_lines(doc.id, [(e, "") for e in before])

    restored = restore_snapshot(store, doc.id, _snapshot(*target))

    lines = store.get_lines(doc.id)
    assert lines == restored
    assert [ln.expression for ln in lines] == target
    assert [ln.sort_order for ln in lines] == list(range(len(target)))
    assert all(ln.result not in ("", "Err") for ln in lines)


def test_peek_leaves_stacks_unchanged() -> None:
    history = HistoryStore()
    assert history.peek_undo(1) is None
    history.record(1, _lines("a"))

    assert _expressions(history.peek_undo(1)) == ["a"]
    assert history.depth(1) == (1, 0)

    history.undo(1, _lines("a", "b"))
    assert _expressions(history.peek_redo(1)) == ["a", "b"]
    assert history.peek_undo(1) is None
    assert history.depth(1) == (0, 1)
