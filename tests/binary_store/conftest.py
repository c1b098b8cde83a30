"""Shared fixtures for BinaryStore tests backed by real SQLite databases."""

from __future__ import annotations

import sqlite3
from pathlib import Path
from typing import Any, Callable, List

import pytest

from BinaryStore.config import StoreConfig
from BinaryStore.store import ContentStore


class TrackingConnection:
    """Wraps a sqlite3 connection and records cursors and close calls."""

    def __init__(self, connection: sqlite3.Connection, events: List[str]) -> None:
        self._connection = connection
        self.events = events
        self.cursors: List[TrackingCursor] = []
        self.closed = False

    def cursor(self) -> TrackingCursor:
        cursor = TrackingCursor(self._connection.cursor(), self.events)
        self.cursors.append(cursor)
        return cursor

    def close(self) -> None:
        self.closed = True
        self.events.append("connection")
        self._connection.close()


class TrackingCursor:
    def __init__(self, cursor: sqlite3.Cursor, events: List[str]) -> None:
        self._cursor = cursor
        self.events = events
        self.closed = False

    def __getattr__(self, name: str) -> Any:
        return getattr(self._cursor, name)

    def close(self) -> None:
        self.closed = True
        self.events.append("statement")
        self._cursor.close()


@pytest.fixture
def db_path(tmp_path: Path) -> Path:
    return tmp_path / "binaries.sqlite"


@pytest.fixture
def connect(db_path: Path) -> Callable[[], sqlite3.Connection]:
    """Factory of autocommit connections to the same database file."""
    opened: List[sqlite3.Connection] = []

    def _connect() -> sqlite3.Connection:
        connection = sqlite3.connect(str(db_path), isolation_level=None)
        opened.append(connection)
        return connection

    yield _connect

    for connection in opened:
        connection.close()


@pytest.fixture
def tracked(connect: Callable[[], sqlite3.Connection]) -> Callable[[], TrackingConnection]:
    """Factory of tracking connections; ``events`` records release order."""
    events: List[str] = []

    def _tracked() -> TrackingConnection:
        return TrackingConnection(connect(), events)

    _tracked.events = events  # type: ignore[attr-defined]
    return _tracked


@pytest.fixture
def connection(connect: Callable[[], sqlite3.Connection]) -> sqlite3.Connection:
    return connect()


@pytest.fixture
def store(connection: sqlite3.Connection) -> ContentStore:
    """Store over the default ``CONTENT_STORE`` table."""
    return ContentStore(connection, StoreConfig())
