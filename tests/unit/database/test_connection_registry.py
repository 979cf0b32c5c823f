"""Unit tests for the connection registry."""

from unittest.mock import MagicMock

import pytest

from sqlnav.config.models import ConnectionConfig
from sqlnav.core.exceptions import ConfigValidationError, ConnectionError, ErrorCodes, QueryError
from sqlnav.core.types import BackendKind
from sqlnav.database.connection import Connection, ConnectionRegistry
from sqlnav.database.models import DatabaseDescriptor, TableDescriptor


class TestConnection:
    """Test database binding of connection handles."""

    def test_server_connection_reconnects_for_other_database(self, postgres_config):
        connection = Connection(BackendKind.POSTGRESQL, postgres_config, handle=MagicMock())

        assert not connection.reconnects_for("app")
        assert connection.reconnects_for("postgres")

    def test_file_connection_never_reconnects(self):
        config = ConnectionConfig.from_input(BackendKind.SQLITE, host="/tmp/app.db")
        connection = Connection(BackendKind.SQLITE, config, handle=MagicMock())

        assert not connection.reconnects_for("main")
        assert not connection.reconnects_for("audit")


class TestConnectionRegistry:
    """Test ownership of the single live connection."""

    def test_initial_state(self, connection_registry):
        assert connection_registry.current() is None
        assert connection_registry.adapter is None
        assert not connection_registry.is_connected
        assert "connected=False" in repr(connection_registry)

    @pytest.mark.asyncio
    async def test_open(self, connection_registry, fake_adapter, postgres_config):
        connection = await connection_registry.open(BackendKind.POSTGRESQL, postgres_config)

        assert connection_registry.current() is connection
        assert connection_registry.adapter is fake_adapter
        assert connection.server_version == "16.1"
        assert connection.database == "app"
        assert connection_registry.is_connected

    @pytest.mark.asyncio
    async def test_open_releases_previous_connection(
        self, connection_registry, fake_adapter, postgres_config
    ):
        """Test at most one connection is held at a time."""
        first = await connection_registry.open(BackendKind.POSTGRESQL, postgres_config)
        second = await connection_registry.open(
            BackendKind.POSTGRESQL, postgres_config.for_database("postgres")
        )

        assert first.closed
        assert not second.closed
        assert fake_adapter.open_connections() == [second]

    @pytest.mark.asyncio
    async def test_failed_open_leaves_registry_empty(
        self, connection_registry, fake_adapter, postgres_config
    ):
        await connection_registry.open(BackendKind.POSTGRESQL, postgres_config)
        unreachable = postgres_config.model_copy(update={"host": "unreachable.invalid"})

        with pytest.raises(ConnectionError):
            await connection_registry.open(BackendKind.POSTGRESQL, unreachable)

        assert connection_registry.current() is None
        assert fake_adapter.open_connections() == []

    @pytest.mark.asyncio
    async def test_unknown_backend_keeps_current_connection(
        self, connection_registry, fake_adapter, postgres_config, mysql_config
    ):
        """Test lookup failures happen before the old connection is closed."""
        connection = await connection_registry.open(BackendKind.POSTGRESQL, postgres_config)

        with pytest.raises(ConfigValidationError) as exc_info:
            await connection_registry.open(BackendKind.MYSQL, mysql_config)

        assert exc_info.value.code == ErrorCodes.BACKEND_NOT_REGISTERED
        assert connection_registry.current() is connection
        assert not connection.closed

    @pytest.mark.asyncio
    async def test_close_is_idempotent(self, connection_registry, fake_adapter, postgres_config):
        await connection_registry.open(BackendKind.POSTGRESQL, postgres_config)

        await connection_registry.close()
        await connection_registry.close()

        assert connection_registry.current() is None
        assert len(fake_adapter.closed) == 1

    @pytest.mark.asyncio
    async def test_operations_require_connection(self, connection_registry):
        with pytest.raises(QueryError) as exc_info:
            await connection_registry.execute("SELECT 1")

        assert exc_info.value.code == ErrorCodes.NOT_CONNECTED
        assert exc_info.value.context["operation"] == "execute_query"

    @pytest.mark.asyncio
    async def test_catalog_operations_are_delegated(
        self, connection_registry, fake_adapter, postgres_config
    ):
        await connection_registry.open(BackendKind.POSTGRESQL, postgres_config)

        databases = await connection_registry.list_databases()
        tables = await connection_registry.list_tables(DatabaseDescriptor("app"))
        columns = await connection_registry.describe_table(TableDescriptor("users", "app", "public"))
        result = await connection_registry.execute("SELECT 1")

        assert [database.name for database in databases] == ["postgres", "app"]
        assert [table.name for table in tables] == ["orders", "users"]
        assert [column.ordinal_position for column in columns] == [0, 1]
        assert result.rows == (("1",),)

    @pytest.mark.asyncio
    async def test_context_manager_closes_on_exit(self, adapter_registry, fake_adapter, postgres_config):
        async with ConnectionRegistry(adapter_registry) as registry:
            connection = await registry.open(BackendKind.POSTGRESQL, postgres_config)

        assert connection.closed
        assert registry.current() is None
