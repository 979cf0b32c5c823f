"""sqlnav database layer.

Uniform operations (connect, list databases, list tables, describe a table,
execute a query, disconnect) over wire-incompatible engines, plus the
registries that select an adapter and own the live connection.

Supported Platforms:
- PostgreSQL (asyncpg)
- MySQL/MariaDB (aiomysql)
- SQLite (aiosqlite, experimental)
"""

from typing import Optional

from sqlnav.config.models import SessionConfig
from sqlnav.core.types import BackendKind, ConstraintTag

from .models import (
    ColumnDescriptor,
    DatabaseDescriptor,
    QueryResult,
    TableDescriptor,
    order_constraints,
    serialize_cell,
)
from .registry import AdapterRegistry
from .connection import Connection, ConnectionRegistry

# Adapters import the modules above, keep them last
from .adapters import MySQLAdapter, PostgreSQLAdapter, SQLiteAdapter

__all__ = [
    # Models
    "BackendKind",
    "ConstraintTag",
    "ColumnDescriptor",
    "DatabaseDescriptor",
    "QueryResult",
    "TableDescriptor",
    "order_constraints",
    "serialize_cell",

    # Registries
    "AdapterRegistry",
    "Connection",
    "ConnectionRegistry",

    # Adapters
    "MySQLAdapter",
    "PostgreSQLAdapter",
    "SQLiteAdapter",

    "create_default_registry",
]


def create_default_registry(config: Optional[SessionConfig] = None) -> AdapterRegistry:
    """Create an adapter registry holding the built-in adapters.

    Only the backends listed in ``config.enabled_backends`` are registered.
    SQLite is registered as experimental.
    """
    config = config or SessionConfig()
    registry = AdapterRegistry()
    enabled = set(config.enabled_backends)

    if BackendKind.POSTGRESQL in enabled:
        registry.register_adapter(
            BackendKind.POSTGRESQL,
            PostgreSQLAdapter(
                connect_timeout=config.connect_timeout,
                command_timeout=config.query_timeout,
            ),
            description="PostgreSQL via asyncpg",
        )
    if BackendKind.MYSQL in enabled:
        registry.register_adapter(
            BackendKind.MYSQL,
            MySQLAdapter(connect_timeout=config.connect_timeout),
            description="MySQL/MariaDB via aiomysql",
        )
    if BackendKind.SQLITE in enabled:
        registry.register_adapter(
            BackendKind.SQLITE,
            SQLiteAdapter(connect_timeout=config.connect_timeout),
            description="SQLite via aiosqlite",
            experimental=True,
        )

    return registry
