"""Read and write ZIP archives holding one text entry per document."""

import re
import zipfile
import zlib
from collections.abc import Sequence
from pathlib import Path
from typing import IO

from loguru import logger

from nerdcalci.config import EXPORT_FILE_EXTENSION
from nerdcalci.core.database import queries
from nerdcalci.core.database.store import DocumentStore
from nerdcalci.core.engine.formatting import ERROR_MARKER
from nerdcalci.core.engine.pipeline import evaluate_expressions
from nerdcalci.errors import StorageError
from nerdcalci.models.document import Line

ArchiveTarget = str | Path | IO[bytes]

_SIMPLE_ASSIGNMENT_RE = re.compile(r"^\s*[a-zA-Z][a-zA-Z0-9\s]*\s*=\s*[\d.]+\s*$")
_OPERATOR_CHARS = frozenset("+-*/%^")


def should_show_result(expression: str) -> bool:
    """Decide whether an exported line gets its result appended.

    A plain ``name = 5`` assignment already shows its value. Lines with an
    operator, or with no assignment at all, are annotated.
    """
    if _SIMPLE_ASSIGNMENT_RE.match(expression):
        return False
    has_operators = any(char in _OPERATOR_CHARS for char in expression)
    return has_operators or "=" not in expression


def format_document_content(lines: Sequence[Line]) -> str:
    """Render lines as text, annotating computed results with ``# result``."""
    rendered: list[str] = []
    for line in sorted(lines, key=lambda ln: ln.sort_order):
        expression = line.expression.strip()
        result = line.result.strip()
        if not expression or not result or result == ERROR_MARKER:
            rendered.append(expression)
        elif expression.startswith("#"):
            rendered.append(expression)
        elif should_show_result(expression):
            rendered.append(f"{expression} # {result}")
        else:
            rendered.append(expression)
    return "\n".join(rendered)


def parse_document_content(text: str) -> list[str]:
    """Recover the expressions from exported text.

    Everything from the first ``#`` on is dropped unless the ``#`` opens
    the line, in which case the whole comment line is kept.
    """
    expressions: list[str] = []
    for raw in text.splitlines():
        if not raw.strip():
            continue
        hash_index = raw.find("#")
        line = raw[:hash_index].strip() if hash_index > 0 else raw.strip()
        if line:
            expressions.append(line)
    return expressions


def write_archive(store: DocumentStore, sink: ArchiveTarget) -> int:
    """Write every document into a ZIP archive.

    Returns:
        Number of documents written.

    Raises:
        StorageError: The sink cannot be written.
    """
    count = 0
    try:
        with zipfile.ZipFile(sink, "w", compression=zipfile.ZIP_DEFLATED) as archive:
            for document in store.list_documents():
                content = format_document_content(store.get_lines(document.id))
                archive.writestr(f"{document.name}{EXPORT_FILE_EXTENSION}", content.encode("utf-8"))
                count += 1
    except OSError as e:
        msg = f"Cannot write archive: {e}"
        raise StorageError(msg) from e
    logger.debug("Wrote {} documents to archive", count)
    return count


def _import_document(store: DocumentStore, name: str, expressions: list[str]) -> None:
    results = evaluate_expressions(expressions)
    with store.transaction() as conn:
        existing = queries.find_document_by_name(conn, name)
        if existing is None:
            document_id = queries.insert_document(conn, name=name, last_modified=store.now_ms())
        else:
            document_id = existing.id
            queries.update_document(conn, document_id, last_modified=store.now_ms())
        store.replace_lines(document_id, list(zip(expressions, results, strict=True)))


def read_archive(store: DocumentStore, source: ArchiveTarget) -> int:
    """Import every ``.nerdcalci`` entry of a ZIP archive.

    A document with the same name is replaced; otherwise a new one is
    created. Other entries and directories are ignored.

    Returns:
        Number of documents imported.

    Raises:
        StorageError: The archive is missing, unreadable or corrupt.
    """
    count = 0
    try:
        with zipfile.ZipFile(source) as archive:
            for info in archive.infolist():
                if info.is_dir() or not info.filename.endswith(EXPORT_FILE_EXTENSION):
                    continue
                name = info.filename.removesuffix(EXPORT_FILE_EXTENSION)
                text = archive.read(info).decode("utf-8", errors="replace")
                _import_document(store, name, parse_document_content(text))
                count += 1
                logger.debug("Imported {!r}", name)
    except (zipfile.BadZipFile, zlib.error) as e:
        msg = f"Not a valid archive: {e}"
        raise StorageError(msg) from e
    except OSError as e:
        msg = f"Cannot read archive: {e}"
        raise StorageError(msg) from e
    return count
