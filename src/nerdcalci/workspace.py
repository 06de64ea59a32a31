"""Document editing operations with undo/redo and re-evaluation."""

import threading
from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import replace

from loguru import logger

from nerdcalci.config import MAX_FILE_NAME_LENGTH, MAX_PINNED_FILES
from nerdcalci.core.archive.codec import format_document_content
from nerdcalci.core.database import queries
from nerdcalci.core.database.store import DocumentStore
from nerdcalci.core.history import HistoryStore, restore_snapshot
from nerdcalci.errors import PinLimitError
from nerdcalci.models.document import Document, Line


def validate_document_name(name: str) -> str:
    """Return the trimmed name, or raise ValueError if it is empty or too long."""
    trimmed = name.strip()
    if not trimmed:
        msg = "Document name must not be empty"
        raise ValueError(msg)
    if len(trimmed) > MAX_FILE_NAME_LENGTH:
        msg = f"Document name longer than {MAX_FILE_NAME_LENGTH} characters: {trimmed!r}"
        raise ValueError(msg)
    return trimmed


class Workspace:
    """Coordinates edits to documents held in a ``DocumentStore``.

    Every operation on a document runs under that document's lock, so the
    edit, the re-evaluation and the history snapshot are applied as one
    unit. Operations on different documents do not block each other.
    """

    def __init__(self, store: DocumentStore, history: HistoryStore | None = None) -> None:
        self.store = store
        self.history = history or HistoryStore()
        self._locks: dict[int, threading.RLock] = {}
        self._locks_guard = threading.Lock()

    @contextmanager
    def document_lock(self, document_id: int) -> Iterator[None]:
        with self._locks_guard:
            lock = self._locks.setdefault(document_id, threading.RLock())
        with lock:
            yield

    # Documents

    def create_document(self, name: str) -> Document:
        """Create a document holding a single empty line."""
        name = validate_document_name(name)
        with self.store.transaction() as conn:
            document = self.store.create_document(name)
            queries.insert_line(conn, document_id=document.id, sort_order=0)
        logger.info("Created document {!r}", name)
        return document

    def duplicate_document(self, document_id: int, name: str | None = None) -> Document:
        """Copy a document with its lines and results. The copy is never pinned."""
        with self.document_lock(document_id):
            source = self.store.require_document(document_id)
            if name is None:
                name = f"Copy of {source.name}"[:MAX_FILE_NAME_LENGTH]
            name = validate_document_name(name)
            with self.store.transaction():
                copy = self.store.create_document(name)
                self.store.replace_lines(
                    copy.id,
                    [(line.expression, line.result) for line in self.store.get_lines(document_id)],
                )
        logger.info("Duplicated {!r} as {!r}", source.name, name)
        return copy

    def rename_document(self, document_id: int, name: str) -> Document:
        name = validate_document_name(name)
        with self.document_lock(document_id):
            return self.store.rename_document(document_id, name)

    def delete_document(self, document_id: int) -> None:
        with self.document_lock(document_id):
            self.store.delete_document(document_id)
            self.history.clear(document_id)
        with self._locks_guard:
            self._locks.pop(document_id, None)

    def toggle_pin(self, document_id: int) -> Document:
        """Flip the pinned flag.

        Raises:
            PinLimitError: The document is unpinned and the cap is reached.
        """
        with self.document_lock(document_id), self.store.transaction():
            document = self.store.require_document(document_id)
            if not document.is_pinned and self.store.count_pinned() >= MAX_PINNED_FILES:
                msg = f"Cannot pin more than {MAX_PINNED_FILES} documents"
                raise PinLimitError(msg)
            return self.store.set_pinned(document_id, not document.is_pinned)

    # Lines

    def get_lines(self, document_id: int) -> list[Line]:
        return self.store.get_lines(document_id)

    def _line_at(self, document_id: int, position: int) -> Line:
        lines = self.store.get_lines(document_id)
        _check_position(position, len(lines))
        return lines[position]

    def update_line(self, document_id: int, position: int, expression: str) -> list[Line]:
        """Replace a line's text and recompute the document.

        Text edits are not recorded in the undo history.
        """
        with self.document_lock(document_id), self.store.transaction():
            self.store.require_document(document_id)
            line = self._line_at(document_id, position)
            self.store.update_line(replace(line, expression=expression))
            self.store.touch(document_id)
            return self.store.recalculate(document_id)

    def add_line(
        self, document_id: int, position: int | None = None, expression: str = ""
    ) -> list[Line]:
        """Insert a line at ``position`` (appending when None) and shift later lines down."""
        with self.document_lock(document_id), self.store.transaction() as conn:
            self.store.require_document(document_id)
            lines = self.store.get_lines(document_id)
            if position is None:
                position = len(lines)
            if not 0 <= position <= len(lines):
                msg = f"Cannot insert at {position} (document has {len(lines)} lines)"
                raise IndexError(msg)

            self.store.after_commit(lambda: self.history.record(document_id, lines))
            for line in reversed(lines[position:]):
                queries.update_line(conn, replace(line, sort_order=line.sort_order + 1))
            queries.insert_line(
                conn, document_id=document_id, sort_order=position, expression=expression
            )
            self.store.touch(document_id)
            return self.store.recalculate(document_id)

    def delete_line(self, document_id: int, position: int) -> list[Line]:
        """Remove the line at ``position`` and close the gap."""
        with self.document_lock(document_id), self.store.transaction() as conn:
            self.store.require_document(document_id)
            lines = self.store.get_lines(document_id)
            _check_position(position, len(lines))

            self.store.after_commit(lambda: self.history.record(document_id, lines))
            queries.delete_line(conn, lines[position].id)
            for line in lines[position + 1 :]:
                queries.update_line(conn, replace(line, sort_order=line.sort_order - 1))
            self.store.touch(document_id)
            return self.store.recalculate(document_id)

    def clear_all_lines(self, document_id: int) -> list[Line]:
        """Leave a single empty line and forget the document's history."""
        with self.document_lock(document_id), self.store.transaction() as conn:
            self.store.require_document(document_id)
            queries.delete_lines_for_document(conn, document_id)
            queries.insert_line(conn, document_id=document_id, sort_order=0)
            self.store.touch(document_id)
            self.store.after_commit(lambda: self.history.clear(document_id))
            return self.store.get_lines(document_id)

    def evaluate_document(self, document_id: int) -> list[Line]:
        with self.document_lock(document_id):
            self.store.require_document(document_id)
            return self.store.recalculate(document_id)

    # History

    def can_undo(self, document_id: int) -> bool:
        return self.history.can_undo(document_id)

    def can_redo(self, document_id: int) -> bool:
        return self.history.can_redo(document_id)

    def undo(self, document_id: int) -> bool:
        """Restore the state before the last structural edit. False if nothing to undo."""
        with self.document_lock(document_id):
            snapshot = self.history.peek_undo(document_id)
            if snapshot is None:
                return False
            current = self.store.get_lines(document_id)
            restore_snapshot(self.store, document_id, snapshot)
            self.history.undo(document_id, current)
            return True

    def redo(self, document_id: int) -> bool:
        """Re-apply the last undone edit. False if nothing to redo."""
        with self.document_lock(document_id):
            snapshot = self.history.peek_redo(document_id)
            if snapshot is None:
                return False
            current = self.store.get_lines(document_id)
            restore_snapshot(self.store, document_id, snapshot)
            self.history.redo(document_id, current)
            return True

    def copy_as_text(self, document_id: int) -> str:
        """The document as text, with computed results annotated."""
        self.store.require_document(document_id)
        return format_document_content(self.store.get_lines(document_id))


def _check_position(position: int, line_count: int) -> None:
    if not 0 <= position < line_count:
        msg = f"Line {position} out of range (document has {line_count} lines)"
        raise IndexError(msg)
