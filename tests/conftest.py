"""Pytest configuration and shared fixtures.

This module provides pytest configuration and shared fixtures for all tests
in the sqlnav test suite.
"""

import asyncio
import logging
import sqlite3
import tempfile
from pathlib import Path
from typing import Callable, Dict, Generator, List
from unittest.mock import MagicMock

import pytest
import structlog

from sqlnav.config.models import ConnectionConfig
from sqlnav.core.exceptions import ConnectionError, ConnectionFailure, ErrorCodes, QueryError
from sqlnav.core.types import BackendKind, ConstraintTag
from sqlnav.database.connection import Connection, ConnectionRegistry
from sqlnav.database.models import (
    ColumnDescriptor,
    DatabaseDescriptor,
    QueryResult,
    TableDescriptor,
)
from sqlnav.database.registry import AdapterRegistry

# Configure test logging to suppress noise during tests
structlog.configure(
    processors=[structlog.testing.LogCapture()],
    wrapper_class=structlog.make_filtering_bound_logger(logging.DEBUG),
    logger_factory=structlog.testing.ReturnLoggerFactory(),
    cache_logger_on_first_use=False,
)


class FakeAdapter:
    """In-memory adapter double.

    ``failures`` maps an operation name to the exception its next call
    raises; ``gates`` maps an operation name to an event the call waits on.
    """

    def __init__(self, kind: BackendKind = BackendKind.POSTGRESQL):
        self.kind = kind
        self.calls: List[tuple] = []
        self.opened: List[Connection] = []
        self.closed: List[Connection] = []
        self.unreachable_hosts = {"unreachable.invalid"}
        self.failures: Dict[str, Exception] = {}
        self.gates: Dict[str, asyncio.Event] = {}
        self.databases = [DatabaseDescriptor("postgres"), DatabaseDescriptor("app")]
        self.tables = {
            "postgres": [],
            "app": [
                TableDescriptor("orders", "app", "public"),
                TableDescriptor("users", "app", "public"),
            ],
        }
        self.columns = {
            "users": [
                ColumnDescriptor("id", "integer", False, 0, (ConstraintTag.PRIMARY_KEY,)),
                ColumnDescriptor("name", "text", True, 1),
            ],
        }

    async def _hook(self, operation: str) -> None:
        gate = self.gates.get(operation)
        if gate is not None:
            await gate.wait()
        failure = self.failures.pop(operation, None)
        if failure is not None:
            raise failure

    async def connect(self, config: ConnectionConfig) -> Connection:
        self.calls.append(("connect", config.host, config.database))
        await self._hook("connect")
        if config.host in self.unreachable_hosts:
            raise ConnectionError(
                f"Could not reach {config.host}",
                reason=ConnectionFailure.NETWORK,
                code=ErrorCodes.NETWORK_UNREACHABLE,
            )
        connection = Connection(
            kind=self.kind, config=config, handle=MagicMock(), server_version="16.1"
        )
        self.opened.append(connection)
        return connection

    async def list_databases(self, connection: Connection) -> List[DatabaseDescriptor]:
        self.calls.append(("list_databases", connection.database))
        await self._hook("list_databases")
        return list(self.databases)

    async def list_tables(
        self, connection: Connection, database: DatabaseDescriptor
    ) -> List[TableDescriptor]:
        self.calls.append(("list_tables", database.name))
        await self._hook("list_tables")
        return list(self.tables.get(database.name, []))

    async def describe_table(
        self, connection: Connection, table: TableDescriptor
    ) -> List[ColumnDescriptor]:
        self.calls.append(("describe_table", table.name))
        await self._hook("describe_table")
        return list(self.columns.get(table.name, []))

    async def execute_query(self, connection: Connection, sql: str) -> QueryResult:
        self.calls.append(("execute_query", sql))
        await self._hook("execute_query")
        if sql.strip().upper().startswith("SELEC "):
            raise QueryError('syntax error at or near "SELEC"', position=1)
        return QueryResult.from_records(["?column?"], [(1,)], execution_time=0.001)

    async def disconnect(self, connection: Connection) -> None:
        if connection.closed:
            return
        connection.closed = True
        self.closed.append(connection)

    def open_connections(self) -> List[Connection]:
        return [connection for connection in self.opened if not connection.closed]


@pytest.fixture
def temp_dir() -> Generator[Path, None, None]:
    """Provide temporary directory for test files."""
    with tempfile.TemporaryDirectory() as temp_dir:
        yield Path(temp_dir)


@pytest.fixture
def mock_logger():
    """Mock structured logger for testing."""
    logger = MagicMock()
    logger.bind.return_value = logger
    return logger


@pytest.fixture
def postgres_config() -> ConnectionConfig:
    """PostgreSQL test configuration."""
    return ConnectionConfig.from_input(
        BackendKind.POSTGRESQL,
        host="localhost",
        username="test_user",
        password="test_password",
        database="app",
    )


@pytest.fixture
def mysql_config() -> ConnectionConfig:
    """MySQL test configuration."""
    return ConnectionConfig.from_input(
        BackendKind.MYSQL,
        host="localhost",
        username="test_user",
        password="test_password",
        database="app",
    )


@pytest.fixture
def sqlite_file(temp_dir: Path) -> Path:
    """SQLite database file with a small schema."""
    path = temp_dir / "test.db"
    connection = sqlite3.connect(str(path))
    try:
        connection.executescript(
            """
            CREATE TABLE users (id INTEGER NOT NULL PRIMARY KEY, name TEXT);
            CREATE TABLE orders (
                id INTEGER PRIMARY KEY,
                user_id INTEGER REFERENCES users(id),
                total NUMERIC DEFAULT 0
            );
            INSERT INTO users (id, name) VALUES (1, 'ada'), (2, NULL);
            """
        )
        connection.commit()
    finally:
        connection.close()
    return path


@pytest.fixture
def fake_adapter() -> FakeAdapter:
    return FakeAdapter()


@pytest.fixture
def adapter_factory() -> Callable[..., FakeAdapter]:
    """Build additional fake adapters, e.g. for other backend kinds."""
    return FakeAdapter


@pytest.fixture
def adapter_registry(fake_adapter: FakeAdapter) -> AdapterRegistry:
    registry = AdapterRegistry()
    registry.register_adapter(BackendKind.POSTGRESQL, fake_adapter)
    return registry


@pytest.fixture
def connection_registry(adapter_registry: AdapterRegistry) -> ConnectionRegistry:
    return ConnectionRegistry(adapter_registry)


# Pytest markers for different test categories
def pytest_configure(config):
    """Configure pytest markers."""
    config.addinivalue_line(
        "markers", "unit: marks tests as unit tests (fast, isolated)"
    )
    config.addinivalue_line(
        "markers", "integration: marks tests as integration tests (live database servers)"
    )
    config.addinivalue_line(
        "markers", "slow: marks tests that take > 1 second"
    )
    config.addinivalue_line(
        "markers", "database: marks tests requiring a database server"
    )


# Auto-mark tests based on their location
def pytest_collection_modifyitems(config, items):
    """Automatically mark tests based on their location."""
    tests_root = Path(__file__).parent
    for item in items:
        try:
            test_path = Path(str(item.fspath)).relative_to(tests_root)
        except ValueError:
            continue

        if test_path.parts[0] == "unit":
            item.add_marker(pytest.mark.unit)
        elif test_path.parts[0] == "integration":
            item.add_marker(pytest.mark.integration)
            item.add_marker(pytest.mark.database)
            item.add_marker(pytest.mark.slow)


@pytest.fixture
def capture_logs() -> Generator[List[dict], None, None]:
    """Capture structlog events emitted during the test."""
    with structlog.testing.capture_logs() as captured:
        yield captured
