"""Protocol definitions for sqlnav components.

Protocols:
    BackendAdapter: Uniform operation set every database engine implements

Example:
    >>> async def show_tables(adapter: BackendAdapter, connection, database):
    ...     for table in await adapter.list_tables(connection, database):
    ...         print(table.qualified_name)
"""

from typing import TYPE_CHECKING, Protocol, Sequence, runtime_checkable

from .types import BackendKind

if TYPE_CHECKING:
    from ..config.models import ConnectionConfig
    from ..database.connection import Connection
    from ..database.models import (
        ColumnDescriptor,
        DatabaseDescriptor,
        QueryResult,
        TableDescriptor,
    )


@runtime_checkable
class BackendAdapter(Protocol):
    """Protocol for database engine adapters.

    Adapters are stateless strategies: all per-connection state lives in the
    :class:`Connection` handle they return. Every driver error is converted
    at the adapter boundary into ``ConnectionError``, ``QueryError`` or
    ``InternalAdapterError``.
    """

    kind: BackendKind

    async def connect(self, config: "ConnectionConfig") -> "Connection":
        """Open a connection; raise ConnectionError with a reason on failure."""
        ...

    async def list_databases(self, connection: "Connection") -> Sequence["DatabaseDescriptor"]:
        """List databases visible to the connected user."""
        ...

    async def list_tables(
        self,
        connection: "Connection",
        database: "DatabaseDescriptor",
    ) -> Sequence["TableDescriptor"]:
        """List tables and views of ``database``."""
        ...

    async def describe_table(
        self,
        connection: "Connection",
        table: "TableDescriptor",
    ) -> Sequence["ColumnDescriptor"]:
        """Describe the columns of ``table`` in catalog order."""
        ...

    async def execute_query(self, connection: "Connection", sql: str) -> "QueryResult":
        """Execute ``sql`` verbatim and return its result or status."""
        ...

    async def disconnect(self, connection: "Connection") -> None:
        """Close ``connection``; idempotent and never raises."""
        ...
