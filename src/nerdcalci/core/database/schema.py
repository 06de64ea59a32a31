"""SQLite schema creation and migration for the document store."""

import sqlite3

SCHEMA_VERSION = 2

_SCHEMA_SQL = """\
CREATE TABLE IF NOT EXISTS documents (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    name TEXT NOT NULL,
    last_modified INTEGER NOT NULL,
    is_pinned INTEGER NOT NULL DEFAULT 0
);

CREATE TABLE IF NOT EXISTS lines (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    document_id INTEGER NOT NULL,
    sort_order INTEGER NOT NULL,
    expression TEXT NOT NULL DEFAULT '',
    result TEXT NOT NULL DEFAULT '',
    FOREIGN KEY (document_id) REFERENCES documents(id)
);

CREATE TABLE IF NOT EXISTS metadata (
    key TEXT PRIMARY KEY,
    value TEXT NOT NULL
);
"""

_INDEXES_SQL = """\
CREATE INDEX IF NOT EXISTS idx_lines_document ON lines(document_id, sort_order);
"""


def create_schema(conn: sqlite3.Connection) -> None:
    """Create all tables and indexes."""
    conn.executescript(_SCHEMA_SQL)
    conn.executescript(_INDEXES_SQL)
    set_metadata(conn, "schema_version", str(SCHEMA_VERSION))


def get_schema_version(conn: sqlite3.Connection) -> int | None:
    """Return the current schema version, or None if metadata table doesn't exist."""
    try:
        row = conn.execute(
            "SELECT value FROM metadata WHERE key = 'schema_version'"
        ).fetchone()
    except sqlite3.OperationalError:
        return None
    return int(row[0]) if row else None


def migrate_schema(conn: sqlite3.Connection) -> None:
    """Create or migrate the database schema to the latest version."""
    version = get_schema_version(conn)
    if version is None:
        create_schema(conn)
        return

    if version < 2:
        # Version 1 stored lines without an index, so every per-document
        # read and cascade delete scanned the whole table.
        conn.executescript(_INDEXES_SQL)
        set_metadata(conn, "schema_version", "2")


def get_metadata(conn: sqlite3.Connection, key: str) -> str | None:
    """Return a metadata value, or None if the key is not set."""
    row = conn.execute("SELECT value FROM metadata WHERE key = ?", (key,)).fetchone()
    return row[0] if row else None


def set_metadata(conn: sqlite3.Connection, key: str, value: str) -> None:
    """Insert or replace a metadata value and commit."""
    conn.execute(
        "INSERT OR REPLACE INTO metadata (key, value) VALUES (?, ?)",
        (key, value),
    )
    conn.commit()


def delete_metadata(conn: sqlite3.Connection, key: str) -> None:
    """Remove a metadata key if present and commit."""
    conn.execute("DELETE FROM metadata WHERE key = ?", (key,))
    conn.commit()
