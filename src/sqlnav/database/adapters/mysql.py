# src/sqlnav/database/adapters/mysql.py
"""MySQL/MariaDB backend adapter built on aiomysql."""

import asyncio
import socket
from contextlib import asynccontextmanager
from typing import AsyncIterator, List, Optional, Tuple

import aiomysql

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


MINIMUM_SERVER_VERSION = (5, 5)

# MySQL client/server error numbers
AUTH_ERROR_CODES = {1044, 1045, 1130, 1698}
UNKNOWN_DATABASE_CODES = {1049}
PROTOCOL_ERROR_CODES = {1043, 1251, 2027, 2059, 2061}
NETWORK_ERROR_CODES = {1040, 1129, 2003, 2005}
CONNECTION_LOST_CODES = {2006, 2013, 2055}

LIST_TABLES_SQL = """
    SELECT TABLE_NAME
    FROM information_schema.TABLES
    WHERE TABLE_SCHEMA = %s
    ORDER BY TABLE_NAME
"""

DESCRIBE_COLUMNS_SQL = """
    SELECT COLUMN_NAME, COLUMN_TYPE, IS_NULLABLE, COLUMN_DEFAULT, COLUMN_KEY
    FROM information_schema.COLUMNS
    WHERE TABLE_SCHEMA = %s AND TABLE_NAME = %s
    ORDER BY ORDINAL_POSITION
"""

DESCRIBE_FOREIGN_KEYS_SQL = """
    SELECT COLUMN_NAME
    FROM information_schema.KEY_COLUMN_USAGE
    WHERE TABLE_SCHEMA = %s AND TABLE_NAME = %s
      AND REFERENCED_TABLE_NAME IS NOT NULL
"""

COLUMN_KEY_TAGS = {
    "PRI": ConstraintTag.PRIMARY_KEY,
    "UNI": ConstraintTag.UNIQUE,
    "MUL": ConstraintTag.INDEXED,
}


def _error_parts(exc: BaseException) -> Tuple[Optional[int], str]:
    """Split a pymysql-style error into (error number, message)."""
    args = getattr(exc, "args", ())
    if len(args) >= 2 and isinstance(args[0], int):
        return args[0], str(args[1])
    if len(args) == 1:
        return None, str(args[0])
    return None, str(exc)


class MySQLAdapter:
    """MySQL adapter implementing the BackendAdapter protocol.

    Connections run in autocommit mode. Unlike PostgreSQL, catalog lookups
    work across schemas, but the session still reconnects when the user
    picks a database so unqualified table names resolve against it.
    """

    kind = BackendKind.MYSQL

    def __init__(self, *, connect_timeout: float = 10.0, charset: str = "utf8mb4"):
        self.logger = get_logger("sqlnav.adapter.mysql")
        self.perf_logger = get_performance_logger("adapter.mysql")
        self.connect_timeout = connect_timeout
        self.charset = charset

    async def connect(self, config: ConnectionConfig) -> Connection:
        self.logger.info(
            "Initializing MySQL connection",
            host=config.host,
            port=config.port,
            database=config.database,
        )

        async with adapter_boundary(
            self.kind, "connect", lambda exc: self._connect_error(exc, config), self.logger
        ):
            with self.perf_logger.measure("connect", host=config.host):
                raw = await aiomysql.connect(
                    host=config.host,
                    port=config.port,
                    user=config.username,
                    password=config.password.get_secret_value(),
                    db=config.database,
                    charset=self.charset,
                    autocommit=True,
                    connect_timeout=self.connect_timeout,
                )

        server_version = raw.get_server_info()
        parsed = SqlUtils.parse_version(server_version)
        if parsed and parsed[:2] < MINIMUM_SERVER_VERSION:
            await self._close_handle(raw)
            raise ConnectionError(
                f"MySQL {server_version} is not supported; version "
                f"{'.'.join(map(str, MINIMUM_SERVER_VERSION))} or newer is required",
                reason=ConnectionFailure.PROTOCOL,
                code=ErrorCodes.UNSUPPORTED_SERVER_VERSION,
                context={"host": config.host, "port": config.port},
            )

        return Connection(
            kind=self.kind,
            config=config,
            handle=raw,
            server_version=server_version,
        )

    async def disconnect(self, connection: Connection) -> None:
        if connection.closed:
            return
        connection.closed = True
        await self._close_handle(connection.handle)

    async def list_databases(self, connection: Connection) -> List[DatabaseDescriptor]:
        async with self._guard("list_databases", connection):
            with self.perf_logger.measure("list_databases"):
                rows = await self._fetch(connection, "SHOW DATABASES")

        return [DatabaseDescriptor(name=StringUtils.decode(row[0])) for row in rows]

    async def list_tables(
        self,
        connection: Connection,
        database: DatabaseDescriptor,
    ) -> List[TableDescriptor]:
        async with self._guard("list_tables", connection):
            with self.perf_logger.measure("list_tables", database=database.name):
                rows = await self._fetch(connection, LIST_TABLES_SQL, (database.name,))

        return [
            TableDescriptor(name=StringUtils.decode(row[0]), database=database.name)
            for row in rows
        ]

    async def describe_table(
        self,
        connection: Connection,
        table: TableDescriptor,
    ) -> List[ColumnDescriptor]:
        """Describe ``table`` using ``information_schema``.

        ``COLUMN_TYPE`` keeps display widths and enum members
        (``int(11) unsigned``, ``enum('a','b')``).
        """
        schema = table.schema or table.database
        params = (schema, table.name)

        async with self._guard("describe_table", connection):
            with self.perf_logger.measure("describe_table", table=table.qualified_name):
                columns = await self._fetch(connection, DESCRIBE_COLUMNS_SQL, params)
                foreign_keys = await self._fetch(connection, DESCRIBE_FOREIGN_KEYS_SQL, params)

        foreign_key_columns = {StringUtils.decode(row[0]) for row in foreign_keys}

        descriptors = []
        for position, (name, column_type, nullable, default, key) in enumerate(columns):
            name = StringUtils.decode(name)
            tags = []
            key_tag = COLUMN_KEY_TAGS.get(StringUtils.decode(key) or "")
            if key_tag is not None:
                tags.append(key_tag)
            if name in foreign_key_columns:
                tags.append(ConstraintTag.FOREIGN_KEY)

            descriptors.append(ColumnDescriptor(
                name=name,
                data_type=StringUtils.decode(column_type),
                is_nullable=StringUtils.decode(nullable) == "YES",
                ordinal_position=position,
                constraints=order_constraints(tags),
                default_value=StringUtils.decode(default),
            ))

        return descriptors

    async def execute_query(self, connection: Connection, sql: str) -> QueryResult:
        """Execute ``sql`` verbatim; only the first result set is returned."""
        async with self._guard("execute_query", connection, sql):
            with self.perf_logger.measure("execute_query") as timer:
                async with connection.handle.cursor() as cursor:
                    await cursor.execute(sql)
                    description = cursor.description
                    rows = await cursor.fetchall() if description else ()
                    affected = cursor.rowcount
                    while await cursor.nextset():
                        pass

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

    async def _fetch(self, connection: Connection, sql: str, params: Optional[Tuple] = None):
        async with connection.handle.cursor() as cursor:
            await cursor.execute(sql, params)
            return await cursor.fetchall()

    @asynccontextmanager
    async def _guard(
        self, operation: str, connection: Connection, sql: str = ""
    ) -> AsyncIterator[None]:
        try:
            async with adapter_boundary(
                self.kind,
                operation,
                lambda exc: self._query_error(exc, connection, sql),
                self.logger,
            ):
                yield
        except asyncio.CancelledError:
            # The wire protocol is mid-command; the handle cannot be reused
            connection.closed = True
            connection.handle.close()
            raise

    def _connect_error(
        self, exc: Exception, config: ConnectionConfig
    ) -> Optional[SqlNavException]:
        """Classify a failure raised by ``aiomysql.connect``."""
        context = {"host": config.host, "port": config.port, "database": config.database}

        if isinstance(exc, aiomysql.Error):
            code, message = _error_parts(exc)
            context["mysql_error_code"] = code
            cause = exc.__cause__

            if code in AUTH_ERROR_CODES:
                return ConnectionError(
                    f"Authentication failed for user {config.username!r}: {message}",
                    reason=ConnectionFailure.AUTH,
                    code=ErrorCodes.AUTH_FAILED,
                    context=context,
                )
            if code in UNKNOWN_DATABASE_CODES:
                return ConnectionError(
                    f"Database {config.database!r} does not exist",
                    reason=ConnectionFailure.AUTH,
                    code=ErrorCodes.UNKNOWN_DATABASE,
                    context=context,
                )
            if code in PROTOCOL_ERROR_CODES or isinstance(
                exc, (aiomysql.InternalError, aiomysql.NotSupportedError)
            ):
                return ConnectionError(
                    f"MySQL protocol mismatch: {message}",
                    reason=ConnectionFailure.PROTOCOL,
                    code=ErrorCodes.PROTOCOL_MISMATCH,
                    context=context,
                )
            if isinstance(cause, asyncio.TimeoutError):
                return ConnectionError(
                    f"Timed out connecting to {config.host}:{config.port}",
                    reason=ConnectionFailure.NETWORK,
                    code=ErrorCodes.CONNECTION_TIMEOUT,
                    context=context,
                )
            if isinstance(cause, socket.gaierror):
                return ConnectionError(
                    f"Could not resolve host {config.host!r}",
                    reason=ConnectionFailure.NETWORK,
                    code=ErrorCodes.NETWORK_UNREACHABLE,
                    context=context,
                )
            if code in NETWORK_ERROR_CODES or code in CONNECTION_LOST_CODES:
                return ConnectionError(
                    f"Could not connect to {config.host}:{config.port}: {message}",
                    reason=ConnectionFailure.NETWORK,
                    code=ErrorCodes.CONNECTION_REFUSED,
                    context=context,
                )
            return ConnectionError(
                f"MySQL rejected the connection: {message}",
                reason=ConnectionFailure.PROTOCOL,
                code=ErrorCodes.PROTOCOL_MISMATCH,
                context=context,
            )

        if isinstance(exc, asyncio.TimeoutError):
            return ConnectionError(
                f"Timed out connecting to {config.host}:{config.port}",
                reason=ConnectionFailure.NETWORK,
                code=ErrorCodes.CONNECTION_TIMEOUT,
                context=context,
            )
        if isinstance(exc, OSError):
            return ConnectionError(
                f"Could not connect to {config.host}:{config.port}: {exc.strerror or exc}",
                reason=ConnectionFailure.NETWORK,
                code=ErrorCodes.CONNECTION_REFUSED,
                context=context,
            )
        return None

    def _query_error(
        self, exc: Exception, connection: Connection, sql: str
    ) -> Optional[SqlNavException]:
        if isinstance(exc, aiomysql.Error):
            code, message = _error_parts(exc)
            if code in CONNECTION_LOST_CODES or isinstance(exc, aiomysql.InterfaceError):
                return ConnectionError(
                    f"Lost connection to {connection.target}: {message or 'connection closed'}",
                    reason=ConnectionFailure.NETWORK,
                    code=ErrorCodes.CONNECTION_LOST,
                    context={"mysql_error_code": code},
                )
            display = f"ERROR {code}: {message}" if code is not None else message
            return QueryError(
                display,
                position=SqlUtils.locate_error_position(sql, message) if sql else None,
                context={"mysql_error_code": code},
            )
        if isinstance(exc, OSError):
            return ConnectionError(
                f"Lost connection to {connection.target}: {exc}",
                reason=ConnectionFailure.NETWORK,
                code=ErrorCodes.CONNECTION_LOST,
            )
        return None

    async def _close_handle(self, raw: "aiomysql.Connection") -> None:
        try:
            await raw.ensure_closed()
        except Exception as exc:
            self.logger.warning(
                "Ignoring error while closing MySQL connection",
                error=str(exc),
                error_type=type(exc).__name__,
            )
            raw.close()
        except BaseException:
            raw.close()
            raise
