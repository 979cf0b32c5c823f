# src/sqlnav/database/models.py
"""Schema model shared by every backend adapter."""

import datetime as _dt
import decimal
import uuid
from dataclasses import dataclass
from typing import Any, Iterable, Optional, Sequence, Tuple

from sqlnav.core.types import BackendKind, ConstraintTag
from sqlnav.core.utils import FormatUtils

__all__ = [
    "BackendKind",
    "ConstraintTag",
    "DatabaseDescriptor",
    "TableDescriptor",
    "ColumnDescriptor",
    "QueryResult",
    "serialize_cell",
]


@dataclass(frozen=True)
class DatabaseDescriptor:
    """A database (MySQL: schema) visible on the server."""
    name: str

    def __str__(self) -> str:
        return self.name


@dataclass(frozen=True)
class TableDescriptor:
    """A table or view inside a database."""
    name: str
    database: str
    schema: Optional[str] = None  # postgres schema / sqlite attached db

    @property
    def qualified_name(self) -> str:
        if self.schema and self.schema not in ("public", "main"):
            return f"{self.schema}.{self.name}"
        return self.name

    def __str__(self) -> str:
        return self.qualified_name


@dataclass(frozen=True)
class ColumnDescriptor:
    """Column metadata as reported by the backend catalog.

    ``data_type`` is the engine's own type string; types are not unified
    across backends.
    """
    name: str
    data_type: str
    is_nullable: bool
    ordinal_position: int  # 0-based, contiguous within a table
    constraints: Tuple[ConstraintTag, ...] = ()
    default_value: Optional[str] = None

    @property
    def is_primary_key(self) -> bool:
        return ConstraintTag.PRIMARY_KEY in self.constraints

    @property
    def is_foreign_key(self) -> bool:
        return ConstraintTag.FOREIGN_KEY in self.constraints

    @property
    def is_unique(self) -> bool:
        return ConstraintTag.UNIQUE in self.constraints


def order_constraints(tags: Iterable[ConstraintTag]) -> Tuple[ConstraintTag, ...]:
    """Deduplicate tags into a stable display order."""
    present = set(tags)
    return tuple(tag for tag in ConstraintTag if tag in present)


def serialize_cell(value: Any) -> Optional[str]:
    """Render a driver value as display text.

    SQL NULL stays None so the UI can show it distinctly.
    """
    if value is None:
        return None
    if isinstance(value, str):
        return value
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (bytes, bytearray, memoryview)):
        return "\\x" + bytes(value).hex()
    if isinstance(value, (_dt.datetime, _dt.date, _dt.time)):
        return value.isoformat()
    if isinstance(value, _dt.timedelta):
        return str(value)
    if isinstance(value, decimal.Decimal):
        return format(value, "f") if value.is_finite() else str(value)
    if isinstance(value, uuid.UUID):
        return str(value)
    if isinstance(value, (list, tuple)):
        return "{" + ",".join("NULL" if v is None else serialize_cell(v) for v in value) + "}"
    return str(value)


@dataclass(frozen=True)
class QueryResult:
    """Standardized query result across all backends.

    Rows hold text cells (None for SQL NULL). Statements that return no
    result set have no columns and carry the backend's status instead.
    """
    columns: Tuple[str, ...] = ()
    rows: Tuple[Tuple[Optional[str], ...], ...] = ()
    status: str = ""
    row_count: int = 0
    execution_time: float = 0.0

    @classmethod
    def from_records(
        cls,
        columns: Sequence[str],
        records: Iterable[Sequence[Any]],
        *,
        status: Optional[str] = None,
        execution_time: float = 0.0,
    ) -> "QueryResult":
        """Build a result set, serializing every cell."""
        rows = tuple(tuple(serialize_cell(value) for value in record) for record in records)
        return cls(
            columns=tuple(columns),
            rows=rows,
            status=status or FormatUtils.format_row_count(len(rows)),
            row_count=len(rows),
            execution_time=execution_time,
        )

    @classmethod
    def from_status(
        cls,
        status: str,
        *,
        row_count: int = 0,
        execution_time: float = 0.0,
    ) -> "QueryResult":
        """Build the result of a statement that returns no rows."""
        return cls(status=status, row_count=max(row_count, 0), execution_time=execution_time)

    @property
    def has_result_set(self) -> bool:
        return bool(self.columns)

    @property
    def is_empty(self) -> bool:
        return not self.rows

    @property
    def summary(self) -> str:
        return f"{self.status} ({FormatUtils.format_duration(self.execution_time)})"
