"""Domain models for calculation documents."""

from dataclasses import dataclass
from enum import Enum


@dataclass(frozen=True)
class Document:
    """A named calculation document."""

    id: int
    name: str
    last_modified: int
    is_pinned: bool = False


@dataclass(frozen=True)
class Line:
    """A single line in a document.

    ``result`` is derived state: it is recomputed from the expressions of
    all lines up to and including this one.
    """

    id: int
    document_id: int
    sort_order: int
    expression: str = ""
    result: str = ""


@dataclass(frozen=True)
class SnapshotLine:
    """One line as captured by a history snapshot."""

    sort_order: int
    expression: str
    result: str


@dataclass(frozen=True)
class Snapshot:
    """An immutable copy of a document's ordered lines."""

    lines: tuple[SnapshotLine, ...]

    @classmethod
    def of(cls, lines: list[Line]) -> "Snapshot":
        ordered = sorted(lines, key=lambda line: line.sort_order)
        return cls(
            lines=tuple(
                SnapshotLine(sort_order=ln.sort_order, expression=ln.expression, result=ln.result)
                for ln in ordered
            )
        )


class BackupSource(str, Enum):
    """Storage a backup archive was found in."""

    APP_STORAGE = "app"
    CUSTOM_FOLDER = "custom"


@dataclass(frozen=True)
class BackupInfo:
    """A backup archive found by listing a backup location."""

    id: str
    display_name: str
    last_modified: int
    source: BackupSource
    path: str
