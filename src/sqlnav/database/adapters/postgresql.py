# src/sqlnav/database/adapters/postgresql.py
"""PostgreSQL backend adapter built on asyncpg."""

import asyncio
import re
import socket
from typing import List, Optional, Tuple

import asyncpg

from sqlnav.config.models import ConnectionConfig
from sqlnav.core.exceptions import (
    ConnectionError,
    ConnectionFailure,
    ErrorCodes,
    QueryError,
    SqlNavException,
)
from sqlnav.core.types import BackendKind, ConstraintTag
from sqlnav.core.utils import StringUtils
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


MINIMUM_SERVER_VERSION = (9, 5)

LIST_DATABASES_SQL = """
    SELECT datname
    FROM pg_catalog.pg_database
    WHERE datallowconn AND NOT datistemplate
    ORDER BY datname
"""

LIST_TABLES_SQL = """
    SELECT table_schema, table_name
    FROM information_schema.tables
    WHERE table_schema NOT IN ('pg_catalog', 'information_schema')
      AND table_schema NOT LIKE 'pg\\_toast%'
    ORDER BY table_schema <> 'public', table_schema, table_name
"""

DESCRIBE_COLUMNS_SQL = """
    SELECT a.attname AS name,
           pg_catalog.format_type(a.atttypid, a.atttypmod) AS data_type,
           NOT a.attnotnull AS is_nullable,
           pg_catalog.pg_get_expr(d.adbin, d.adrelid) AS default_value
    FROM pg_catalog.pg_attribute a
    JOIN pg_catalog.pg_class c ON c.oid = a.attrelid
    JOIN pg_catalog.pg_namespace n ON n.oid = c.relnamespace
    LEFT JOIN pg_catalog.pg_attrdef d ON d.adrelid = a.attrelid AND d.adnum = a.attnum
    WHERE n.nspname = $1 AND c.relname = $2
      AND a.attnum > 0 AND NOT a.attisdropped
    ORDER BY a.attnum
"""

DESCRIBE_CONSTRAINTS_SQL = """
    SELECT a.attname AS name, con.contype::text AS kind
    FROM pg_catalog.pg_constraint con
    JOIN pg_catalog.pg_class c ON c.oid = con.conrelid
    JOIN pg_catalog.pg_namespace n ON n.oid = c.relnamespace
    JOIN pg_catalog.pg_attribute a
      ON a.attrelid = con.conrelid AND a.attnum = ANY(con.conkey)
    WHERE n.nspname = $1 AND c.relname = $2
    UNION ALL
    SELECT a.attname AS name, 'i' AS kind
    FROM pg_catalog.pg_index i
    JOIN pg_catalog.pg_class c ON c.oid = i.indrelid
    JOIN pg_catalog.pg_namespace n ON n.oid = c.relnamespace
    JOIN pg_catalog.pg_attribute a
      ON a.attrelid = i.indrelid AND a.attnum = ANY(i.indkey)
    WHERE n.nspname = $1 AND c.relname = $2 AND NOT i.indisunique
"""

CONSTRAINT_TYPES = {
    "p": ConstraintTag.PRIMARY_KEY,
    "f": ConstraintTag.FOREIGN_KEY,
    "u": ConstraintTag.UNIQUE,
    "c": ConstraintTag.CHECK,
    "i": ConstraintTag.INDEXED,
}

_STATUS_COUNT = re.compile(r"(\d+)\s*$")


class PostgreSQLAdapter:
    """PostgreSQL adapter implementing the BackendAdapter protocol.

    One asyncpg connection per Connection handle; there is no pool. A
    connection is bound to one database, so switching databases means
    opening a new connection.
    """

    kind = BackendKind.POSTGRESQL

    def __init__(
        self,
        *,
        connect_timeout: float = 10.0,
        command_timeout: Optional[float] = None,
        close_timeout: float = 5.0,
    ):
        self.logger = get_logger("sqlnav.adapter.postgresql")
        self.perf_logger = get_performance_logger("adapter.postgresql")
        self.connect_timeout = connect_timeout
        self.command_timeout = command_timeout
        self.close_timeout = close_timeout

    async def connect(self, config: ConnectionConfig) -> Connection:
        """Open an asyncpg connection for ``config``."""
        self.logger.info(
            "Initializing PostgreSQL connection",
            host=config.host,
            port=config.port,
            database=config.database,
        )

        async with adapter_boundary(
            self.kind, "connect", lambda exc: self._connect_error(exc, config), self.logger
        ):
            with self.perf_logger.measure("connect", host=config.host):
                raw = await asyncpg.connect(
                    host=config.host,
                    port=config.port,
                    user=config.username,
                    password=config.password.get_secret_value() or None,
                    database=config.database,
                    timeout=self.connect_timeout,
                    command_timeout=self.command_timeout,
                )

        version = raw.get_server_version()
        if (version.major, version.minor) < MINIMUM_SERVER_VERSION:
            await self._close_handle(raw)
            raise ConnectionError(
                f"PostgreSQL {version.major}.{version.minor} is not supported; "
                f"version {'.'.join(map(str, MINIMUM_SERVER_VERSION))} or newer is required",
                reason=ConnectionFailure.PROTOCOL,
                code=ErrorCodes.UNSUPPORTED_SERVER_VERSION,
                context={"host": config.host, "port": config.port},
            )

        return Connection(
            kind=self.kind,
            config=config,
            handle=raw,
            server_version=self._format_version(version),
        )

    async def disconnect(self, connection: Connection) -> None:
        """Close the connection; errors are logged and swallowed."""
        if connection.closed:
            return
        connection.closed = True
        await self._close_handle(connection.handle)

    async def list_databases(self, connection: Connection) -> List[DatabaseDescriptor]:
        async with self._query_boundary("list_databases", connection):
            with self.perf_logger.measure("list_databases"):
                rows = await connection.handle.fetch(LIST_DATABASES_SQL)

        return [DatabaseDescriptor(name=row["datname"]) for row in rows]

    async def list_tables(
        self,
        connection: Connection,
        database: DatabaseDescriptor,
    ) -> List[TableDescriptor]:
        """List tables and views in every non-system schema of ``database``.

        Raises:
            QueryError: If the connection is bound to a different database
        """
        if connection.database != database.name:
            raise QueryError(
                f"Connection is bound to database {connection.database!r}, "
                f"not {database.name!r}",
                code=ErrorCodes.DATABASE_MISMATCH,
                context={"backend": self.kind.value, "database": database.name},
            )

        async with self._query_boundary("list_tables", connection):
            with self.perf_logger.measure("list_tables", database=database.name):
                rows = await connection.handle.fetch(LIST_TABLES_SQL)

        return [
            TableDescriptor(
                name=row["table_name"],
                database=database.name,
                schema=row["table_schema"],
            )
            for row in rows
        ]

    async def describe_table(
        self,
        connection: Connection,
        table: TableDescriptor,
    ) -> List[ColumnDescriptor]:
        """Describe ``table`` with exact type names and constraint tags."""
        schema = table.schema or "public"

        async with self._query_boundary("describe_table", connection):
            with self.perf_logger.measure("describe_table", table=table.qualified_name):
                columns = await connection.handle.fetch(DESCRIBE_COLUMNS_SQL, schema, table.name)
                constraints = await connection.handle.fetch(
                    DESCRIBE_CONSTRAINTS_SQL, schema, table.name
                )

        tags = {}
        for row in constraints:
            tag = CONSTRAINT_TYPES.get(StringUtils.decode(row["kind"]))
            if tag is not None:
                tags.setdefault(row["name"], []).append(tag)

        return [
            ColumnDescriptor(
                name=row["name"],
                data_type=row["data_type"],
                is_nullable=bool(row["is_nullable"]),
                ordinal_position=position,
                constraints=order_constraints(tags.get(row["name"], ())),
                default_value=row["default_value"],
            )
            for position, row in enumerate(columns)
        ]

    async def execute_query(self, connection: Connection, sql: str) -> QueryResult:
        """Execute ``sql`` as a single prepared statement."""
        async with self._query_boundary("execute_query", connection, sql=sql):
            with self.perf_logger.measure("execute_query") as timer:
                statement = await connection.handle.prepare(sql)
                attributes = statement.get_attributes()
                records = await statement.fetch()

        if attributes:
            return QueryResult.from_records(
                [attribute.name for attribute in attributes],
                records,
                execution_time=timer.duration or 0.0,
            )

        status = statement.get_statusmsg() or "OK"
        return QueryResult.from_status(
            status,
            row_count=self._status_row_count(status),
            execution_time=timer.duration or 0.0,
        )

    def _query_boundary(self, operation: str, connection: Connection, sql: str = ""):
        return adapter_boundary(
            self.kind,
            operation,
            lambda exc: self._query_error(exc, connection, sql),
            self.logger,
        )

    def _connect_error(
        self, exc: Exception, config: ConnectionConfig
    ) -> Optional[SqlNavException]:
        """Classify a failure raised by ``asyncpg.connect``."""
        context = {"host": config.host, "port": config.port, "database": config.database}

        if isinstance(exc, (asyncpg.InvalidPasswordError, asyncpg.InvalidAuthorizationSpecificationError)):
            return ConnectionError(
                f"Authentication failed for user {config.username!r}",
                reason=ConnectionFailure.AUTH,
                code=ErrorCodes.AUTH_FAILED,
                context=context,
            )
        if isinstance(exc, asyncpg.InvalidCatalogNameError):
            return ConnectionError(
                f"Database {config.database!r} does not exist",
                reason=ConnectionFailure.AUTH,
                code=ErrorCodes.UNKNOWN_DATABASE,
                context=context,
            )
        if isinstance(exc, (
            asyncpg.ProtocolViolationError,
            asyncpg.FeatureNotSupportedError,
            asyncpg.UnsupportedClientFeatureError,
        )):
            return ConnectionError(
                f"PostgreSQL protocol mismatch: {exc}",
                reason=ConnectionFailure.PROTOCOL,
                code=ErrorCodes.PROTOCOL_MISMATCH,
                context=context,
            )
        if isinstance(exc, (
            asyncpg.CannotConnectNowError,
            asyncpg.TooManyConnectionsError,
            asyncpg.PostgresConnectionError,
        )):
            return ConnectionError(
                f"PostgreSQL server at {config.host}:{config.port} refused the connection: {exc}",
                reason=ConnectionFailure.NETWORK,
                code=ErrorCodes.CONNECTION_REFUSED,
                context=context,
            )
        if isinstance(exc, asyncio.TimeoutError):
            return ConnectionError(
                f"Timed out connecting to {config.host}:{config.port}",
                reason=ConnectionFailure.NETWORK,
                code=ErrorCodes.CONNECTION_TIMEOUT,
                context=context,
            )
        if isinstance(exc, socket.gaierror):
            return ConnectionError(
                f"Could not resolve host {config.host!r}",
                reason=ConnectionFailure.NETWORK,
                code=ErrorCodes.NETWORK_UNREACHABLE,
                context=context,
            )
        if isinstance(exc, OSError):
            return ConnectionError(
                f"Could not connect to {config.host}:{config.port}: {exc.strerror or exc}",
                reason=ConnectionFailure.NETWORK,
                code=ErrorCodes.CONNECTION_REFUSED,
                context=context,
            )
        if isinstance(exc, (asyncpg.PostgresError, asyncpg.InterfaceError)):
            return ConnectionError(
                f"PostgreSQL rejected the connection: {exc}",
                reason=ConnectionFailure.PROTOCOL,
                code=ErrorCodes.PROTOCOL_MISMATCH,
                context=context,
            )
        return None

    def _query_error(
        self, exc: Exception, connection: Connection, sql: str
    ) -> Optional[SqlNavException]:
        """Classify a failure raised while the connection is in use."""
        if isinstance(exc, asyncio.TimeoutError):
            return QueryError(
                f"Statement exceeded the {self.command_timeout}s command timeout",
                code=ErrorCodes.QUERY_TIMEOUT,
            )
        if isinstance(exc, (asyncpg.PostgresConnectionError, OSError)) or (
            isinstance(exc, asyncpg.InterfaceError) and connection.handle.is_closed()
        ):
            return ConnectionError(
                f"Lost connection to {connection.target}: {exc}",
                reason=ConnectionFailure.NETWORK,
                code=ErrorCodes.CONNECTION_LOST,
            )
        if isinstance(exc, asyncpg.PostgresError):
            return QueryError(
                self._error_message(exc),
                position=self._error_position(exc),
                context={"sqlstate": getattr(exc, "sqlstate", None)},
            )
        if isinstance(exc, asyncpg.InterfaceError):
            return QueryError(str(exc))
        return None

    @staticmethod
    def _error_message(exc: "asyncpg.PostgresError") -> str:
        message = str(exc) or type(exc).__name__
        detail = getattr(exc, "detail", None)
        hint = getattr(exc, "hint", None)
        if detail:
            message += f"\nDETAIL: {detail}"
        if hint:
            message += f"\nHINT: {hint}"
        return message

    @staticmethod
    def _error_position(exc: "asyncpg.PostgresError") -> Optional[int]:
        position = getattr(exc, "position", None)
        try:
            return int(position) if position is not None else None
        except (TypeError, ValueError):
            return None

    @staticmethod
    def _status_row_count(status: str) -> int:
        if status.split(" ", 1)[0] not in ("INSERT", "UPDATE", "DELETE", "MERGE", "COPY"):
            return 0
        match = _STATUS_COUNT.search(status)
        return int(match.group(1)) if match else 0

    @staticmethod
    def _format_version(version: Tuple) -> str:
        if version.major >= 10:
            return f"{version.major}.{version.micro}"
        return f"{version.major}.{version.minor}.{version.micro}"

    async def _close_handle(self, raw: "asyncpg.Connection") -> None:
        try:
            await raw.close(timeout=self.close_timeout)
        except Exception as exc:
            self.logger.warning(
                "Ignoring error while closing PostgreSQL connection",
                error=str(exc),
                error_type=type(exc).__name__,
            )
            raw.terminate()
        except BaseException:
            raw.terminate()
            raise
