"""Thread-safe document store over a single SQLite connection."""

import sqlite3
import threading
import time
from collections.abc import Callable, Iterator, Sequence
from contextlib import contextmanager
from pathlib import Path

from loguru import logger

from nerdcalci.core.database import queries
from nerdcalci.core.database.schema import (
    delete_metadata,
    get_metadata,
    migrate_schema,
    set_metadata,
)
from nerdcalci.core.engine.pipeline import evaluate_lines
from nerdcalci.errors import DocumentNotFoundError, StorageError
from nerdcalci.models.document import Document, Line

Listener = Callable[[], None]


class DocumentStore:
    """Owns the connection and serializes every access to it.

    Mutations run inside ``transaction()``; nested transactions join the
    outermost one, which commits or rolls back as a unit. Subscribers are
    called after each committed transaction that changed something.
    """

    def __init__(
        self,
        conn: sqlite3.Connection,
        *,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._conn = conn
        self._clock = clock
        self._lock = threading.RLock()
        self._depth = 0
        self._dirty = False
        self._listeners: list[Listener] = []
        self._on_commit: list[Callable[[], None]] = []
        with self._lock:
            migrate_schema(conn)

    @classmethod
    def open(cls, path: str | Path, *, clock: Callable[[], float] = time.time) -> "DocumentStore":
        """Open (creating if needed) the database at ``path``."""
        try:
            if str(path) != ":memory:":
                Path(path).parent.mkdir(parents=True, exist_ok=True)
            conn = sqlite3.connect(str(path), check_same_thread=False)
        except (OSError, sqlite3.Error) as e:
            msg = f"Cannot open database {path}: {e}"
            raise StorageError(msg) from e
        logger.debug("Opened document store at {}", path)
        return cls(conn, clock=clock)

    def close(self) -> None:
        with self._lock:
            self._conn.close()

    def now_ms(self) -> int:
        return int(self._clock() * 1000)

    @contextmanager
    def transaction(self) -> Iterator[sqlite3.Connection]:
        """Run a block atomically; yields the raw connection."""
        with self._lock:
            self._depth += 1
            try:
                yield self._conn
            except BaseException:
                self._depth -= 1
                if self._depth == 0:
                    self._rollback()
                raise
            self._depth -= 1
            if self._depth > 0:
                return
            try:
                self._conn.commit()
            except sqlite3.Error as e:
                self._rollback()
                msg = f"Cannot commit transaction: {e}"
                raise StorageError(msg) from e
            dirty, self._dirty = self._dirty, False
            callbacks, self._on_commit = self._on_commit, []
        for callback in callbacks:
            callback()
        if dirty:
            self._notify()

    def _rollback(self) -> None:
        self._conn.rollback()
        self._dirty = False
        self._on_commit = []

    def after_commit(self, callback: Callable[[], None]) -> None:
        """Run ``callback`` once the outermost transaction commits.

        The callback is dropped if the transaction rolls back. Outside a
        transaction it runs immediately.
        """
        with self._lock:
            if self._depth > 0:
                self._on_commit.append(callback)
                return
        callback()

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Register ``listener`` and return a function that removes it."""
        with self._lock:
            self._listeners.append(listener)

        def unsubscribe() -> None:
            with self._lock:
                if listener in self._listeners:
                    self._listeners.remove(listener)

        return unsubscribe

    def _notify(self) -> None:
        with self._lock:
            listeners = list(self._listeners)
        for listener in listeners:
            listener()

    def mark_changed(self) -> None:
        """Flag the current transaction as having changed data."""
        self._dirty = True

    # Documents

    def list_documents(self) -> list[Document]:
        with self._lock:
            return queries.list_documents(self._conn)

    def get_document(self, document_id: int) -> Document | None:
        with self._lock:
            return queries.get_document(self._conn, document_id)

    def require_document(self, document_id: int) -> Document:
        """Like ``get_document`` but raises DocumentNotFoundError."""
        document = self.get_document(document_id)
        if document is None:
            msg = f"No document with id {document_id}"
            raise DocumentNotFoundError(msg)
        return document

    def find_document_by_name(self, name: str) -> Document | None:
        with self._lock:
            return queries.find_document_by_name(self._conn, name)

    def count_documents(self) -> int:
        with self._lock:
            return queries.count_documents(self._conn)

    def count_pinned(self) -> int:
        with self._lock:
            return queries.count_pinned(self._conn)

    def create_document(self, name: str, *, is_pinned: bool = False) -> Document:
        with self.transaction() as conn:
            now = self.now_ms()
            document_id = queries.insert_document(
                conn, name=name, last_modified=now, is_pinned=is_pinned
            )
            self.mark_changed()
        logger.debug("Created document {} ({!r})", document_id, name)
        return Document(id=document_id, name=name, last_modified=now, is_pinned=is_pinned)

    def rename_document(self, document_id: int, name: str) -> Document:
        with self.transaction() as conn:
            if not queries.update_document(
                conn, document_id, name=name, last_modified=self.now_ms()
            ):
                msg = f"No document with id {document_id}"
                raise DocumentNotFoundError(msg)
            self.mark_changed()
        return self.require_document(document_id)

    def set_pinned(self, document_id: int, pinned: bool) -> Document:
        with self.transaction() as conn:
            if not queries.update_document(conn, document_id, is_pinned=pinned):
                msg = f"No document with id {document_id}"
                raise DocumentNotFoundError(msg)
            self.mark_changed()
        return self.require_document(document_id)

    def touch(self, document_id: int) -> None:
        """Set the document's last-modified time to now."""
        with self.transaction() as conn:
            queries.update_document(conn, document_id, last_modified=self.now_ms())
            self.mark_changed()

    def delete_document(self, document_id: int) -> None:
        with self.transaction() as conn:
            if not queries.delete_document(conn, document_id):
                msg = f"No document with id {document_id}"
                raise DocumentNotFoundError(msg)
            self.mark_changed()
        logger.debug("Deleted document {}", document_id)

    # Lines

    def get_lines(self, document_id: int) -> list[Line]:
        """Lines of a document ordered by ``sort_order``."""
        with self._lock:
            return queries.get_lines(self._conn, document_id)

    def insert_line(
        self,
        document_id: int,
        *,
        sort_order: int,
        expression: str = "",
        result: str = "",
    ) -> Line:
        with self.transaction() as conn:
            line_id = queries.insert_line(
                conn,
                document_id=document_id,
                sort_order=sort_order,
                expression=expression,
                result=result,
            )
            self.mark_changed()
        return Line(
            id=line_id,
            document_id=document_id,
            sort_order=sort_order,
            expression=expression,
            result=result,
        )

    def update_line(self, line: Line) -> None:
        with self.transaction() as conn:
            queries.update_line(conn, line)
            self.mark_changed()

    def update_results(self, lines: Sequence[Line]) -> None:
        with self.transaction() as conn:
            queries.update_results(conn, lines)
            self.mark_changed()

    def delete_line(self, line_id: int) -> None:
        with self.transaction() as conn:
            queries.delete_line(conn, line_id)
            self.mark_changed()

    def replace_lines(self, document_id: int, rows: Sequence[tuple[str, str]]) -> None:
        """Replace all lines of a document with ``(expression, result)`` rows in order."""
        with self.transaction() as conn:
            queries.delete_lines_for_document(conn, document_id)
            queries.insert_lines(
                conn,
                (
                    Line(
                        id=0,
                        document_id=document_id,
                        sort_order=index,
                        expression=expression,
                        result=result,
                    )
                    for index, (expression, result) in enumerate(rows)
                ),
            )
            self.mark_changed()

    # Metadata; these commit on their own and must not run inside a transaction.

    def get_metadata(self, key: str) -> str | None:
        with self._lock:
            return get_metadata(self._conn, key)

    def set_metadata(self, key: str, value: str) -> None:
        with self._lock:
            set_metadata(self._conn, key, value)

    def delete_metadata(self, key: str) -> None:
        with self._lock:
            delete_metadata(self._conn, key)

    def recalculate(self, document_id: int) -> list[Line]:
        """Re-run the evaluation pipeline over a document and store the results."""
        with self.transaction() as conn:
            evaluated = evaluate_lines(queries.get_lines(conn, document_id))
            queries.update_results(conn, evaluated)
            self.mark_changed()
        logger.debug("Recalculated {} lines of document {}", len(evaluated), document_id)
        return evaluated
