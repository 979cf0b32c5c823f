# src/sqlnav/database/adapters/sqlite.py
"""SQLite backend adapter built on aiosqlite.

Experimental: the adapter answers the full operation set, but it does not
report unique or check constraints and "databases" are the schemas attached
to the single open file (``main``, ``temp`` and any ATTACHed files).
"""

import sqlite3
from pathlib import Path
from typing import List, Optional

import aiosqlite

from sqlnav.config.models import ConnectionConfig
from sqlnav.core.exceptions import (
    ConnectionError,
    ConnectionFailure,
    ErrorCodes,
    QueryError,
    SqlNavException,
)
from sqlnav.core.types import BackendKind, ConstraintTag
from sqlnav.core.utils import FormatUtils, SqlUtils, StringUtils
from sqlnav.database.adapters.boundary import adapter_boundary
from sqlnav.database.connection import Connection
from sqlnav.database.models import (
    ColumnDescriptor,
    DatabaseDescriptor,
    QueryResult,
    TableDescriptor,
    order_constraints,
)
from sqlnav.logging import get_logger, get_performance_logger


MEMORY_DATABASE = ":memory:"

# ValueError messages aiosqlite raises once the handle is closed
CLOSED_CONNECTION_MESSAGES = ("no active connection", "Connection closed")


class SQLiteAdapter:
    """SQLite adapter implementing the BackendAdapter protocol."""

    kind = BackendKind.SQLITE

    def __init__(self, *, connect_timeout: float = 10.0):
        self.logger = get_logger("sqlnav.adapter.sqlite")
        self.perf_logger = get_performance_logger("adapter.sqlite")
        self.connect_timeout = connect_timeout

    async def connect(self, config: ConnectionConfig) -> Connection:
        path = config.host
        self.logger.info("Initializing SQLite connection", path=path)

        if path != MEMORY_DATABASE and not path.startswith("file:") and not Path(path).is_file():
            raise ConnectionError(
                f"SQLite database file not found: {path}",
                reason=ConnectionFailure.NETWORK,
                code=ErrorCodes.DATABASE_FILE_NOT_FOUND,
                context={"path": path},
            )

        translate = lambda exc: self._connect_error(exc, path)  # noqa: E731
        async with adapter_boundary(self.kind, "connect", translate, self.logger):
            with self.perf_logger.measure("connect", path=path):
                raw = await aiosqlite.connect(
                    path,
                    timeout=self.connect_timeout,
                    isolation_level=None,
                    uri=path.startswith("file:"),
                )

        try:
            async with adapter_boundary(self.kind, "connect", translate, self.logger):
                await raw.execute("PRAGMA schema_version")
        except BaseException:
            await raw.close()
            raise

        return Connection(
            kind=self.kind,
            config=config,
            handle=raw,
            server_version=sqlite3.sqlite_version,
        )

    async def disconnect(self, connection: Connection) -> None:
        if connection.closed:
            return
        connection.closed = True
        try:
            await connection.handle.close()
        except Exception as exc:
            self.logger.warning(
                "Ignoring error while closing SQLite connection",
                error=str(exc),
                error_type=type(exc).__name__,
            )

    async def list_databases(self, connection: Connection) -> List[DatabaseDescriptor]:
        async with self._query_boundary("list_databases", connection):
            with self.perf_logger.measure("list_databases"):
                rows = await connection.handle.execute_fetchall("PRAGMA database_list")

        return [DatabaseDescriptor(name=row[1]) for row in rows]

    async def list_tables(
        self,
        connection: Connection,
        database: DatabaseDescriptor,
    ) -> List[TableDescriptor]:
        schema = StringUtils.quote_identifier(database.name)
        sql = (
            f"SELECT name FROM {schema}.sqlite_master "
            "WHERE type IN ('table', 'view') AND name NOT LIKE 'sqlite\\_%' ESCAPE '\\' "
            "ORDER BY name"
        )

        async with self._query_boundary("list_tables", connection):
            with self.perf_logger.measure("list_tables", database=database.name):
                rows = await connection.handle.execute_fetchall(sql)

        return [
            TableDescriptor(name=row[0], database=database.name, schema=database.name)
            for row in rows
        ]

    async def describe_table(
        self,
        connection: Connection,
        table: TableDescriptor,
    ) -> List[ColumnDescriptor]:
        schema = StringUtils.quote_identifier(table.schema or table.database or "main")
        name = StringUtils.quote_identifier(table.name)

        async with self._query_boundary("describe_table", connection):
            with self.perf_logger.measure("describe_table", table=table.qualified_name):
                columns = await connection.handle.execute_fetchall(
                    f"PRAGMA {schema}.table_info({name})"
                )
                foreign_keys = await connection.handle.execute_fetchall(
                    f"PRAGMA {schema}.foreign_key_list({name})"
                )

        foreign_key_columns = {row[3] for row in foreign_keys}

        descriptors = []
        # table_info rows: (cid, name, type, notnull, dflt_value, pk)
        for position, row in enumerate(columns):
            tags = []
            if row[5]:
                tags.append(ConstraintTag.PRIMARY_KEY)
            if row[1] in foreign_key_columns:
                tags.append(ConstraintTag.FOREIGN_KEY)

            descriptors.append(ColumnDescriptor(
                name=row[1],
                data_type=row[2] or "",
                is_nullable=not row[3] and not row[5],
                ordinal_position=position,
                constraints=order_constraints(tags),
                default_value=row[4],
            ))

        return descriptors

    async def execute_query(self, connection: Connection, sql: str) -> QueryResult:
        async with self._query_boundary("execute_query", connection, sql):
            with self.perf_logger.measure("execute_query") as timer:
                async with connection.handle.execute(sql) as cursor:
                    description = cursor.description
                    rows = await cursor.fetchall() if description else ()
                    affected = cursor.rowcount

        if description:
            return QueryResult.from_records(
                [column[0] for column in description],
                rows,
                execution_time=timer.duration or 0.0,
            )

        affected = max(affected or 0, 0)
        return QueryResult.from_status(
            FormatUtils.format_row_count(affected, verb="affected"),
            row_count=affected,
            execution_time=timer.duration or 0.0,
        )

    def _query_boundary(self, operation: str, connection: Connection, sql: str = ""):
        return adapter_boundary(
            self.kind,
            operation,
            lambda exc: self._query_error(exc, connection, sql),
            self.logger,
        )

    def _connect_error(self, exc: Exception, path: str) -> Optional[SqlNavException]:
        context = {"path": path}

        if isinstance(exc, sqlite3.OperationalError):
            return ConnectionError(
                f"Could not open SQLite database {path}: {exc}",
                reason=ConnectionFailure.NETWORK,
                code=ErrorCodes.DATABASE_FILE_NOT_FOUND,
                context=context,
            )
        if isinstance(exc, sqlite3.DatabaseError):
            return ConnectionError(
                f"{path} is not a SQLite database: {exc}",
                reason=ConnectionFailure.PROTOCOL,
                code=ErrorCodes.PROTOCOL_MISMATCH,
                context=context,
            )
        if isinstance(exc, OSError):
            return ConnectionError(
                f"Could not open SQLite database {path}: {exc}",
                reason=ConnectionFailure.NETWORK,
                code=ErrorCodes.DATABASE_FILE_NOT_FOUND,
                context=context,
            )
        return None

    def _query_error(
        self, exc: Exception, connection: Connection, sql: str
    ) -> Optional[SqlNavException]:
        if isinstance(exc, ValueError) and str(exc) in CLOSED_CONNECTION_MESSAGES:
            return ConnectionError(
                f"Lost connection to {connection.target}",
                reason=ConnectionFailure.NETWORK,
                code=ErrorCodes.CONNECTION_LOST,
            )
        if isinstance(exc, (sqlite3.Error, sqlite3.Warning)):
            message = str(exc)
            return QueryError(
                message,
                position=SqlUtils.locate_error_position(sql, message) if sql else None,
                context={"sqlite_error": type(exc).__name__},
            )
        return None
