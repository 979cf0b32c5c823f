# src/sqlnav/database/connection.py
"""Connection handle and the registry that owns it.

The :class:`ConnectionRegistry` holds at most one live :class:`Connection`
per session. Opening a new connection always releases the previous one
first, so two backend sessions are never open at the same time.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Optional, Sequence

from sqlnav.config.models import ConnectionConfig
from sqlnav.core.exceptions import ErrorCodes, QueryError
from sqlnav.core.protocols import BackendAdapter
from sqlnav.core.types import BackendKind
from sqlnav.database.models import (
    ColumnDescriptor,
    DatabaseDescriptor,
    QueryResult,
    TableDescriptor,
)
from sqlnav.database.registry import AdapterRegistry
from sqlnav.logging import get_logger


@dataclass(eq=False)
class Connection:
    """Opaque handle for one live backend session.

    Owned by exactly one ConnectionRegistry and only ever touched by the
    adapter that created it.
    """
    kind: BackendKind
    config: ConnectionConfig
    handle: Any = field(repr=False)
    server_version: Optional[str] = None
    opened_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    closed: bool = False

    @property
    def database(self) -> Optional[str]:
        return self.config.database

    @property
    def target(self) -> str:
        return self.config.display_target

    def reconnects_for(self, database: str) -> bool:
        """Whether browsing ``database`` needs a new connection.

        Server connections are bound to one database; file backends hold
        every attached database on the same connection.
        """
        return not self.kind.is_file_based and self.database != database


class ConnectionRegistry:
    """Owns zero or one open connection for a session.

    Example:
        >>> async with ConnectionRegistry(adapters) as registry:
        ...     await registry.open(BackendKind.POSTGRESQL, config)
        ...     result = await registry.execute("SELECT 1")
    """

    def __init__(self, adapters: AdapterRegistry):
        self.logger = get_logger("sqlnav.database.connection")
        self._adapters = adapters
        self._connection: Optional[Connection] = None
        self._adapter: Optional[BackendAdapter] = None

    @property
    def adapters(self) -> AdapterRegistry:
        return self._adapters

    @property
    def adapter(self) -> Optional[BackendAdapter]:
        """Adapter owning the current connection, if any."""
        return self._adapter

    @property
    def is_connected(self) -> bool:
        return self._connection is not None

    def current(self) -> Optional[Connection]:
        """Return the open connection, or None when not connected."""
        return self._connection

    async def open(self, kind: BackendKind, config: ConnectionConfig) -> Connection:
        """Open a connection, releasing any previously held one first.

        Raises:
            ConfigValidationError: If no adapter is registered for ``kind``
            ConnectionError: If the backend cannot be reached or rejects the login
            InternalAdapterError: On unexpected driver failures
        """
        adapter = self._adapters.get_adapter(kind)

        await self.close()

        self.logger.info(
            "Opening connection",
            backend=kind.value,
            target=config.display_target,
        )
        connection = await adapter.connect(config)

        self._connection = connection
        self._adapter = adapter

        self.logger.info(
            "Connection opened",
            backend=kind.value,
            target=config.display_target,
            server_version=connection.server_version,
        )
        return connection

    async def close(self) -> None:
        """Release the current connection. Safe to call repeatedly."""
        connection, adapter = self._connection, self._adapter
        if connection is None or adapter is None:
            return

        self._connection = None
        self._adapter = None

        await adapter.disconnect(connection)
        self.logger.info(
            "Connection closed",
            backend=connection.kind.value,
            target=connection.target,
        )

    def _require(self, operation: str) -> Connection:
        if self._connection is None:
            raise QueryError(
                "Not connected to a database",
                code=ErrorCodes.NOT_CONNECTED,
                context={"operation": operation},
            )
        return self._connection

    async def list_databases(self) -> Sequence[DatabaseDescriptor]:
        connection = self._require("list_databases")
        return await self._adapter.list_databases(connection)

    async def list_tables(self, database: DatabaseDescriptor) -> Sequence[TableDescriptor]:
        connection = self._require("list_tables")
        return await self._adapter.list_tables(connection, database)

    async def describe_table(self, table: TableDescriptor) -> Sequence[ColumnDescriptor]:
        connection = self._require("describe_table")
        return await self._adapter.describe_table(connection, table)

    async def execute(self, sql: str) -> QueryResult:
        connection = self._require("execute_query")
        return await self._adapter.execute_query(connection, sql)

    async def __aenter__(self) -> "ConnectionRegistry":
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        await self.close()

    def __repr__(self) -> str:
        target = self._connection.target if self._connection else None
        return f"ConnectionRegistry(connected={self.is_connected}, target={target!r})"
