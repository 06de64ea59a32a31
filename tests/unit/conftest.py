"""Shared test fixtures."""

import sqlite3
from collections.abc import Iterator

import pytest

from nerdcalci.core.database.store import DocumentStore
from nerdcalci.workspace import Workspace
from tests.unit.fakes import DocumentFactory, FakeClock


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def store(clock: FakeClock) -> Iterator[DocumentStore]:
    """Return a store over an in-memory database."""
    conn = sqlite3.connect(":memory:", check_same_thread=False)
    document_store = DocumentStore(conn, clock=clock)
    yield document_store
    document_store.close()


@pytest.fixture
def workspace(store: DocumentStore) -> Workspace:
    return Workspace(store)


@pytest.fixture
def make_document(workspace: Workspace, clock: FakeClock) -> DocumentFactory:
    """Return a factory creating a document from expressions, with empty history."""

    def factory(name: str, expressions: list[str]) -> int:
        clock.advance(1)
        document = workspace.create_document(name)
        workspace.update_line(document.id, 0, expressions[0])
        for expression in expressions[1:]:
            workspace.add_line(document.id, expression=expression)
        workspace.history.clear(document.id)
        return document.id

    return factory
