"""Enumerations shared by configuration, adapters and the session layer."""

from enum import Enum
from typing import Optional, Union


class BackendKind(str, Enum):
    """Supported database engines."""

    POSTGRESQL = "postgresql"
    MYSQL = "mysql"
    SQLITE = "sqlite"

    @property
    def label(self) -> str:
        return _LABELS[self]

    @property
    def default_port(self) -> Optional[int]:
        return _DEFAULT_PORTS[self]

    @property
    def is_file_based(self) -> bool:
        return self is BackendKind.SQLITE

    @classmethod
    def parse(cls, value: Union["BackendKind", str]) -> "BackendKind":
        """Resolve a backend from its value, label or a common alias.

        Raises:
            ValueError: If the value names no known backend
        """
        if isinstance(value, cls):
            return value

        key = str(value).strip().lower()
        for kind in cls:
            if key in (kind.value, kind.label.lower()):
                return kind

        alias = _ALIASES.get(key)
        if alias is None:
            raise ValueError(f"unknown backend {value!r}")
        return alias


_LABELS = {
    BackendKind.POSTGRESQL: "PostgreSQL",
    BackendKind.MYSQL: "MySQL",
    BackendKind.SQLITE: "SQLite",
}

_DEFAULT_PORTS = {
    BackendKind.POSTGRESQL: 5432,
    BackendKind.MYSQL: 3306,
    BackendKind.SQLITE: None,
}

_ALIASES = {
    "postgres": BackendKind.POSTGRESQL,
    "pg": BackendKind.POSTGRESQL,
    "mariadb": BackendKind.MYSQL,
    "sqlite3": BackendKind.SQLITE,
}


class ConstraintTag(str, Enum):
    """Constraint markers attached to a column."""

    PRIMARY_KEY = "PK"
    FOREIGN_KEY = "FK"
    UNIQUE = "UNIQUE"
    CHECK = "CHECK"
    INDEXED = "INDEX"
