"""Per-document undo/redo history of line snapshots."""

import threading
from collections import deque
from collections.abc import Sequence

from loguru import logger

from nerdcalci.config import MAX_HISTORY_SIZE
from nerdcalci.core.database import queries
from nerdcalci.core.database.store import DocumentStore
from nerdcalci.models.document import Line, Snapshot


class _DocumentHistory:
    def __init__(self, max_size: int) -> None:
        self.undo: deque[Snapshot] = deque(maxlen=max_size)
        self.redo: deque[Snapshot] = deque(maxlen=max_size)


class HistoryStore:
    """Two bounded stacks of snapshots per document.

    Snapshots of the pre-edit state are pushed once a structural edit has
    been committed. When a stack is full the oldest snapshot is dropped.
    """

    def __init__(self, max_size: int = MAX_HISTORY_SIZE) -> None:
        if max_size < 1:
            msg = f"max_size must be positive, got {max_size}"
            raise ValueError(msg)
        self._max_size = max_size
        self._lock = threading.Lock()
        self._histories: dict[int, _DocumentHistory] = {}

    def _history(self, document_id: int) -> _DocumentHistory:
        history = self._histories.get(document_id)
        if history is None:
            history = _DocumentHistory(self._max_size)
            self._histories[document_id] = history
        return history

    def record(self, document_id: int, lines: Sequence[Line]) -> None:
        """Save the pre-edit state and forget anything that could be redone."""
        with self._lock:
            history = self._history(document_id)
            history.undo.append(Snapshot.of(list(lines)))
            history.redo.clear()

    def undo(self, document_id: int, current_lines: Sequence[Line]) -> Snapshot | None:
        """Pop the latest undo snapshot, saving ``current_lines`` for redo."""
        with self._lock:
            history = self._history(document_id)
            if not history.undo:
                return None
            history.redo.append(Snapshot.of(list(current_lines)))
            return history.undo.pop()

    def redo(self, document_id: int, current_lines: Sequence[Line]) -> Snapshot | None:
        """Pop the latest redo snapshot, saving ``current_lines`` for undo."""
        with self._lock:
            history = self._history(document_id)
            if not history.redo:
                return None
            history.undo.append(Snapshot.of(list(current_lines)))
            return history.redo.pop()

    def peek_undo(self, document_id: int) -> Snapshot | None:
        """The snapshot ``undo`` would return, leaving both stacks untouched."""
        with self._lock:
            history = self._histories.get(document_id)
            return history.undo[-1] if history and history.undo else None

    def peek_redo(self, document_id: int) -> Snapshot | None:
        with self._lock:
            history = self._histories.get(document_id)
            return history.redo[-1] if history and history.redo else None

    def clear(self, document_id: int) -> None:
        with self._lock:
            self._histories.pop(document_id, None)

    def can_undo(self, document_id: int) -> bool:
        with self._lock:
            history = self._histories.get(document_id)
            return bool(history and history.undo)

    def can_redo(self, document_id: int) -> bool:
        with self._lock:
            history = self._histories.get(document_id)
            return bool(history and history.redo)

    def depth(self, document_id: int) -> tuple[int, int]:
        """Return ``(undo, redo)`` stack sizes."""
        with self._lock:
            history = self._histories.get(document_id)
            if history is None:
                return 0, 0
            return len(history.undo), len(history.redo)


def restore_snapshot(store: DocumentStore, document_id: int, snapshot: Snapshot) -> list[Line]:
    """Make the document's lines match ``snapshot`` and recompute results.

    Existing rows are overwritten position by position, missing rows are
    inserted and surplus rows deleted, all in one transaction.

    Returns:
        The document's lines after restoring, in order.
    """
    with store.transaction() as conn:
        current = queries.get_lines(conn, document_id)
        for position, saved in enumerate(snapshot.lines):
            if position < len(current):
                queries.update_line(
                    conn,
                    Line(
                        id=current[position].id,
                        document_id=document_id,
                        sort_order=position,
                        expression=saved.expression,
                        result=saved.result,
                    ),
                )
            else:
                queries.insert_line(
                    conn,
                    document_id=document_id,
                    sort_order=position,
                    expression=saved.expression,
                    result=saved.result,
                )
        for surplus in current[len(snapshot.lines) :]:
            queries.delete_line(conn, surplus.id)

        queries.update_document(conn, document_id, last_modified=store.now_ms())
        store.mark_changed()
        restored = store.recalculate(document_id)

    logger.debug(
        "Restored document {} to a snapshot of {} lines", document_id, len(snapshot.lines)
    )
    return restored
