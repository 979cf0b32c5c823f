"""Backend adapters, one per supported engine.

Each adapter is the only module that touches its driver:

- PostgreSQL (asyncpg)
- MySQL/MariaDB (aiomysql)
- SQLite (aiosqlite, experimental)
"""

from .boundary import adapter_boundary
from .mysql import MySQLAdapter
from .postgresql import PostgreSQLAdapter
from .sqlite import SQLiteAdapter

__all__ = [
    "adapter_boundary",
    "MySQLAdapter",
    "PostgreSQLAdapter",
    "SQLiteAdapter",
]
