# src/sqlnav/session/state.py
"""Session snapshot shared with the UI."""

import dataclasses
from dataclasses import dataclass
from enum import Enum
from typing import Any, Optional, Tuple

from sqlnav.config.models import ConnectionConfig
from sqlnav.core.exceptions import QueryError, SqlNavException
from sqlnav.core.types import BackendKind
from sqlnav.database.connection import Connection
from sqlnav.database.models import (
    ColumnDescriptor,
    DatabaseDescriptor,
    QueryResult,
    TableDescriptor,
)


class Screen(str, Enum):
    """Navigation screens."""
    SELECT_BACKEND = "select_backend"
    INPUT_CONNECTION = "input_connection"
    CONNECTING = "connecting"
    SELECT_DATABASE = "select_database"
    LIST_TABLES = "list_tables"
    DESCRIBE_TABLE = "describe_table"
    QUERY_RESULT = "query_result"
    ERROR = "error"
    QUIT = "quit"

    @property
    def is_connected(self) -> bool:
        """True for screens that require a live connection."""
        return self in CONNECTED_SCREENS


CONNECTED_SCREENS = frozenset({
    Screen.SELECT_DATABASE,
    Screen.LIST_TABLES,
    Screen.DESCRIBE_TABLE,
    Screen.QUERY_RESULT,
})


@dataclass(frozen=True)
class SessionState:
    """Read-only snapshot of one session.

    A new snapshot replaces the old one for every processed intent; the UI
    renders whatever it last received and never mutates it.

    Attributes:
        screen: Current screen tag
        backends: Backends offered on the backend selection screen
        backend: Selected backend kind
        config: Active (or last submitted) connection config
        connection: Live connection, present only on connected screens and
            cleared while a pending switch replaces it
        databases: Databases listed after connecting
        database: Database the connection is bound to for browsing
        tables: Tables of ``database``
        table: Table being described
        columns: Columns of ``table``
        result: Last query result
        last_sql: Last submitted SQL text
        error: Error message shown in the error slot
        error_code: Error code matching ``error``
        error_position: 1-based position of a query error
        return_screen: Screen the ERROR pseudo-state leads back to
        pending: A backend call is running
        revision: Number of processed intents
    """
    screen: Screen = Screen.SELECT_BACKEND
    backends: Tuple[BackendKind, ...] = ()
    backend: Optional[BackendKind] = None
    config: Optional[ConnectionConfig] = None
    connection: Optional[Connection] = None
    databases: Tuple[DatabaseDescriptor, ...] = ()
    database: Optional[DatabaseDescriptor] = None
    tables: Tuple[TableDescriptor, ...] = ()
    table: Optional[TableDescriptor] = None
    columns: Tuple[ColumnDescriptor, ...] = ()
    result: Optional[QueryResult] = None
    last_sql: str = ""
    error: Optional[str] = None
    error_code: Optional[str] = None
    error_position: Optional[int] = None
    return_screen: Optional[Screen] = None
    pending: bool = False
    revision: int = 0

    @property
    def is_connected(self) -> bool:
        return self.connection is not None

    @property
    def has_error(self) -> bool:
        return self.error is not None

    @property
    def breadcrumb(self) -> str:
        """Breadcrumb for the current navigation context."""
        parts = []
        if self.backend:
            parts.append(self.backend.label)
        if self.database:
            parts.append(self.database.name)
        if self.table:
            parts.append(self.table.qualified_name)
        return " > ".join(parts) if parts else "sqlnav"

    def evolve(self, **changes: Any) -> "SessionState":
        return dataclasses.replace(self, **changes)

    def with_error(self, error: SqlNavException, **changes: Any) -> "SessionState":
        """Copy with the error slot populated from ``error``."""
        position = error.position if isinstance(error, QueryError) else None
        return self.evolve(
            error=error.display_message,
            error_code=error.code,
            error_position=position,
            **changes,
        )

    def without_error(self, **changes: Any) -> "SessionState":
        return self.evolve(error=None, error_code=None, error_position=None, **changes)
