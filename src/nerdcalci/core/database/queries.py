"""SQL queries over documents and lines.

These functions never commit; ``DocumentStore`` decides the transaction
boundaries.
"""

import sqlite3
from collections.abc import Iterable

from nerdcalci.models.document import Document, Line

_DOCUMENT_COLUMNS = "id, name, last_modified, is_pinned"
_LINE_COLUMNS = "id, document_id, sort_order, expression, result"


def _row_to_document(row: sqlite3.Row | tuple) -> Document:
    return Document(
        id=row[0],
        name=row[1],
        last_modified=row[2],
        is_pinned=bool(row[3]),
    )


def _row_to_line(row: sqlite3.Row | tuple) -> Line:
    return Line(
        id=row[0],
        document_id=row[1],
        sort_order=row[2],
        expression=row[3],
        result=row[4],
    )


def list_documents(conn: sqlite3.Connection) -> list[Document]:
    """Pinned documents first, then most recently modified."""
    rows = conn.execute(
        f"SELECT {_DOCUMENT_COLUMNS} FROM documents "
        "ORDER BY is_pinned DESC, last_modified DESC, id DESC"
    ).fetchall()
    return [_row_to_document(r) for r in rows]


def get_document(conn: sqlite3.Connection, document_id: int) -> Document | None:
    row = conn.execute(
        f"SELECT {_DOCUMENT_COLUMNS} FROM documents WHERE id = ?", (document_id,)
    ).fetchone()
    return _row_to_document(row) if row else None


def find_document_by_name(conn: sqlite3.Connection, name: str) -> Document | None:
    """Return the oldest document with exactly this name, if any."""
    row = conn.execute(
        f"SELECT {_DOCUMENT_COLUMNS} FROM documents WHERE name = ? ORDER BY id LIMIT 1",
        (name,),
    ).fetchone()
    return _row_to_document(row) if row else None


def insert_document(
    conn: sqlite3.Connection,
    *,
    name: str,
    last_modified: int,
    is_pinned: bool = False,
) -> int:
    cursor = conn.execute(
        "INSERT INTO documents (name, last_modified, is_pinned) VALUES (?, ?, ?)",
        (name, last_modified, int(is_pinned)),
    )
    return int(cursor.lastrowid or 0)


def update_document(
    conn: sqlite3.Connection,
    document_id: int,
    *,
    name: str | None = None,
    last_modified: int | None = None,
    is_pinned: bool | None = None,
) -> int:
    """Update the given columns and return the number of rows changed."""
    assignments: list[str] = []
    params: list[object] = []
    if name is not None:
        assignments.append("name = ?")
        params.append(name)
    if last_modified is not None:
        assignments.append("last_modified = ?")
        params.append(last_modified)
    if is_pinned is not None:
        assignments.append("is_pinned = ?")
        params.append(int(is_pinned))
    if not assignments:
        return 0
    params.append(document_id)
    cursor = conn.execute(
        f"UPDATE documents SET {', '.join(assignments)} WHERE id = ?", params
    )
    return cursor.rowcount


def delete_document(conn: sqlite3.Connection, document_id: int) -> int:
    """Delete a document's lines, then the document itself."""
    conn.execute("DELETE FROM lines WHERE document_id = ?", (document_id,))
    cursor = conn.execute("DELETE FROM documents WHERE id = ?", (document_id,))
    return cursor.rowcount


def count_documents(conn: sqlite3.Connection) -> int:
    row = conn.execute("SELECT COUNT(*) FROM documents").fetchone()
    return int(row[0])


def count_pinned(conn: sqlite3.Connection) -> int:
    row = conn.execute("SELECT COUNT(*) FROM documents WHERE is_pinned = 1").fetchone()
    return int(row[0])


def get_lines(conn: sqlite3.Connection, document_id: int) -> list[Line]:
    rows = conn.execute(
        f"SELECT {_LINE_COLUMNS} FROM lines WHERE document_id = ? ORDER BY sort_order, id",
        (document_id,),
    ).fetchall()
    return [_row_to_line(r) for r in rows]


def get_line(conn: sqlite3.Connection, line_id: int) -> Line | None:
    row = conn.execute(f"SELECT {_LINE_COLUMNS} FROM lines WHERE id = ?", (line_id,)).fetchone()
    return _row_to_line(row) if row else None


def insert_line(
    conn: sqlite3.Connection,
    *,
    document_id: int,
    sort_order: int,
    expression: str = "",
    result: str = "",
) -> int:
    cursor = conn.execute(
        "INSERT INTO lines (document_id, sort_order, expression, result) VALUES (?, ?, ?, ?)",
        (document_id, sort_order, expression, result),
    )
    return int(cursor.lastrowid or 0)


def insert_lines(conn: sqlite3.Connection, lines: Iterable[Line]) -> None:
    """Insert lines keeping their document and order; their ids are ignored."""
    conn.executemany(
        "INSERT INTO lines (document_id, sort_order, expression, result) VALUES (?, ?, ?, ?)",
        [(ln.document_id, ln.sort_order, ln.expression, ln.result) for ln in lines],
    )


def update_line(conn: sqlite3.Connection, line: Line) -> int:
    cursor = conn.execute(
        "UPDATE lines SET sort_order = ?, expression = ?, result = ? WHERE id = ?",
        (line.sort_order, line.expression, line.result, line.id),
    )
    return cursor.rowcount


def update_results(conn: sqlite3.Connection, lines: Iterable[Line]) -> None:
    conn.executemany(
        "UPDATE lines SET result = ? WHERE id = ?",
        [(ln.result, ln.id) for ln in lines],
    )


def delete_line(conn: sqlite3.Connection, line_id: int) -> int:
    cursor = conn.execute("DELETE FROM lines WHERE id = ?", (line_id,))
    return cursor.rowcount


def delete_lines_for_document(conn: sqlite3.Connection, document_id: int) -> int:
    cursor = conn.execute("DELETE FROM lines WHERE document_id = ?", (document_id,))
    return cursor.rowcount
