"""Tests for table bootstrap and existence check mode."""

from __future__ import annotations

import sqlite3
from unittest.mock import MagicMock

import pytest

from BinaryStore.errors import StorageInitializationError
from BinaryStore.schema import SchemaInitializer, is_missing_table_error
from BinaryStore.statements import StatementCatalog


@pytest.fixture
def catalog() -> StatementCatalog:
    return StatementCatalog.bundled("CONTENT_STORE", dialect="sqlite")


def _table_names(connection: sqlite3.Connection) -> set:
    rows = connection.execute("SELECT name FROM sqlite_master WHERE type = 'table'").fetchall()
    return {row[0] for row in rows}


class TestEnsureTable:
    """Idempotent creation against a real SQLite database."""

    def test_creates_missing_table(self, connection: sqlite3.Connection, catalog) -> None:
        initializer = SchemaInitializer(catalog)

        assert initializer.table_exists(connection) is False
        assert initializer.ensure_table(connection) is True
        assert "CONTENT_STORE" in _table_names(connection)

    def test_existing_table_is_left_alone(self, connection: sqlite3.Connection, catalog) -> None:
        initializer = SchemaInitializer(catalog)
        initializer.ensure_table(connection)
        connection.execute("INSERT INTO CONTENT_STORE (cid) VALUES ('kept')")

        assert initializer.ensure_table(connection) is False
        assert connection.execute("SELECT cid FROM CONTENT_STORE").fetchall() == [("kept",)]

    def test_creation_failure_carries_table_and_cause(self, connection: sqlite3.Connection) -> None:
        catalog = StatementCatalog(
            "BROKEN",
            default_source={
                "table_exists_query": "SELECT cid FROM {table} WHERE 1 = 0",
                "create_table": "CREATE TABLE {table} (",
            },
        )

        with pytest.raises(StorageInitializationError) as excinfo:
            SchemaInitializer(catalog).ensure_table(connection)

        assert excinfo.value.table_name == "BROKEN"
        assert isinstance(excinfo.value.__cause__, sqlite3.OperationalError)

    def test_unknown_strictness(self, catalog) -> None:
        with pytest.raises(ValueError):
            SchemaInitializer(catalog, strictness="paranoid")


class TestExistenceCheckModes:
    """Which check failures count as a missing table."""

    @pytest.fixture
    def flaky_connection(self) -> MagicMock:
        connection = MagicMock()
        connection.cursor.return_value.execute.side_effect = sqlite3.OperationalError(
            "database is locked"
        )
        return connection

    def test_lenient_treats_any_failure_as_absent(self, catalog, flaky_connection) -> None:
        assert SchemaInitializer(catalog, strictness="lenient").table_exists(flaky_connection) is False

    def test_strict_raises_on_other_failures(self, catalog, flaky_connection) -> None:
        initializer = SchemaInitializer(catalog, strictness="strict")

        with pytest.raises(StorageInitializationError, match="database is locked"):
            initializer.table_exists(flaky_connection)

    def test_strict_accepts_missing_table(self, connection: sqlite3.Connection, catalog) -> None:
        initializer = SchemaInitializer(catalog, strictness="strict")

        assert initializer.table_exists(connection) is False
        assert initializer.ensure_table(connection) is True

    def test_check_statement_is_released(self, catalog, flaky_connection) -> None:
        SchemaInitializer(catalog).table_exists(flaky_connection)
        flaky_connection.cursor.return_value.close.assert_called_once()


class TestMissingTableErrors:
    @pytest.mark.parametrize(
        "message",
        [
            "no such table: CONTENT_STORE",
            'relation "content_store" does not exist',
            "Table 'db.CONTENT_STORE' doesn't exist",
            "Invalid object name 'CONTENT_STORE'.",
            "ORA-00942: table or view does not exist",
        ],
    )
    def test_driver_messages(self, message: str) -> None:
        assert is_missing_table_error(Exception(message))

    def test_sqlstate_attribute(self) -> None:
        error = Exception("undefined")
        error.sqlstate = "42P01"
        assert is_missing_table_error(error)

    def test_other_errors(self) -> None:
        assert not is_missing_table_error(Exception("permission denied for table"))

    @pytest.mark.parametrize(
        "message",
        [
            'column "cid" does not exist',
            "function lower(bytea) does not exist",
            'schema "archive" does not exist',
        ],
    )
    def test_other_missing_objects(self, message: str) -> None:
        assert not is_missing_table_error(Exception(message))

    def test_sqlstate_wins_over_message(self) -> None:
        error = Exception('relation "content_store" does not exist')
        error.sqlstate = "42703"
        assert not is_missing_table_error(error)

    def test_strict_raises_on_missing_column(self, catalog) -> None:
        connection = MagicMock()
        connection.cursor.return_value.execute.side_effect = sqlite3.OperationalError(
            'column "cid" does not exist'
        )

        with pytest.raises(StorageInitializationError, match="cid"):
            SchemaInitializer(catalog, strictness="strict").ensure_table(connection)
