"""Unit tests for the experimental SQLite adapter.

These run against real database files created by the ``sqlite_file``
fixture; no server is needed.
"""

from unittest.mock import AsyncMock, MagicMock

import pytest

from sqlnav.config.models import ConnectionConfig
from sqlnav.core.exceptions import ConnectionError, ConnectionFailure, ErrorCodes, QueryError
from sqlnav.core.types import BackendKind, ConstraintTag
from sqlnav.database.adapters.sqlite import SQLiteAdapter
from sqlnav.database.connection import Connection
from sqlnav.database.models import DatabaseDescriptor, TableDescriptor


@pytest.fixture
def adapter():
    return SQLiteAdapter(connect_timeout=1.0)


def _config(path) -> ConnectionConfig:
    return ConnectionConfig.from_input(BackendKind.SQLITE, host=str(path))


class TestSQLiteConnect:
    """Test opening database files."""

    @pytest.mark.asyncio
    async def test_connect_and_disconnect(self, adapter, sqlite_file):
        connection = await adapter.connect(_config(sqlite_file))
        try:
            assert connection.kind is BackendKind.SQLITE
            assert connection.server_version
            assert connection.database == "main"
        finally:
            await adapter.disconnect(connection)

        assert connection.closed
        await adapter.disconnect(connection)

    @pytest.mark.asyncio
    async def test_memory_database(self, adapter):
        connection = await adapter.connect(_config(":memory:"))
        try:
            result = await adapter.execute_query(connection, "SELECT 1 AS one")
        finally:
            await adapter.disconnect(connection)

        assert result.columns == ("one",)
        assert result.rows == (("1",),)

    @pytest.mark.asyncio
    async def test_missing_file(self, adapter, temp_dir):
        """Test a missing file is reported instead of creating an empty database."""
        path = temp_dir / "missing.db"

        with pytest.raises(ConnectionError) as exc_info:
            await adapter.connect(_config(path))

        assert exc_info.value.reason is ConnectionFailure.NETWORK
        assert exc_info.value.code == ErrorCodes.DATABASE_FILE_NOT_FOUND
        assert not path.exists()

    @pytest.mark.asyncio
    async def test_not_a_database(self, adapter, temp_dir):
        path = temp_dir / "notes.txt"
        path.write_text("this is not a database file, just some text " * 20)

        with pytest.raises(ConnectionError) as exc_info:
            await adapter.connect(_config(path))

        assert exc_info.value.reason is ConnectionFailure.PROTOCOL
        assert exc_info.value.code == ErrorCodes.PROTOCOL_MISMATCH


class TestSQLiteOperations:
    """Test catalog lookups and query execution."""

    @pytest.mark.asyncio
    async def test_catalog(self, adapter, sqlite_file):
        connection = await adapter.connect(_config(sqlite_file))
        try:
            databases = await adapter.list_databases(connection)
            tables = await adapter.list_tables(connection, DatabaseDescriptor("main"))
            users = await adapter.describe_table(connection, TableDescriptor("users", "main", "main"))
            orders = await adapter.describe_table(connection, TableDescriptor("orders", "main", "main"))
        finally:
            await adapter.disconnect(connection)

        assert [database.name for database in databases] == ["main"]
        assert [table.name for table in tables] == ["orders", "users"]

        assert [column.name for column in users] == ["id", "name"]
        assert [column.ordinal_position for column in users] == [0, 1]
        assert users[0].data_type == "INTEGER"
        assert users[0].constraints == (ConstraintTag.PRIMARY_KEY,)
        assert not users[0].is_nullable
        assert users[1].is_nullable

        by_name = {column.name: column for column in orders}
        assert not by_name["id"].is_nullable
        assert by_name["user_id"].constraints == (ConstraintTag.FOREIGN_KEY,)
        assert by_name["total"].default_value == "0"

    @pytest.mark.asyncio
    async def test_select_preserves_null(self, adapter, sqlite_file):
        connection = await adapter.connect(_config(sqlite_file))
        try:
            result = await adapter.execute_query(connection, "SELECT id, name FROM users ORDER BY id")
        finally:
            await adapter.disconnect(connection)

        assert result.columns == ("id", "name")
        assert result.rows == (("1", "ada"), ("2", None))
        assert result.status == "2 rows"

    @pytest.mark.asyncio
    async def test_insert_reports_affected_rows(self, adapter, sqlite_file):
        connection = await adapter.connect(_config(sqlite_file))
        try:
            result = await adapter.execute_query(
                connection, "INSERT INTO users (id, name) VALUES (3, 'grace')"
            )
            check = await adapter.execute_query(connection, "SELECT count(*) FROM users")
        finally:
            await adapter.disconnect(connection)

        assert result.status == "1 row affected"
        assert not result.has_result_set
        assert check.rows == (("3",),)

    @pytest.mark.asyncio
    async def test_syntax_error(self, adapter, sqlite_file):
        connection = await adapter.connect(_config(sqlite_file))
        try:
            with pytest.raises(QueryError) as exc_info:
                await adapter.execute_query(connection, "SELEC 1")
        finally:
            await adapter.disconnect(connection)

        assert "syntax error" in exc_info.value.message
        assert exc_info.value.position == 1

    @pytest.mark.asyncio
    async def test_closed_handle_reports_lost_connection(self, adapter, sqlite_file):
        handle = MagicMock()
        handle.execute_fetchall = AsyncMock(side_effect=ValueError("no active connection"))
        connection = Connection(kind=BackendKind.SQLITE, config=_config(sqlite_file), handle=handle)

        with pytest.raises(ConnectionError) as exc_info:
            await adapter.list_databases(connection)

        assert exc_info.value.code == ErrorCodes.CONNECTION_LOST
