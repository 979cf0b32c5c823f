"""sqlnav core infrastructure.

Modules:
    exceptions: Exception hierarchy and error codes
    types: Backend and constraint enumerations
    utils: String, SQL and formatting helpers

Example:
    >>> from sqlnav.core import BackendKind, QueryError
    >>> BackendKind.parse("postgres")
    <BackendKind.POSTGRESQL: 'postgresql'>
"""

from .exceptions import (
    ConfigValidationError,
    ConnectionError,
    ConnectionFailure,
    ErrorCodes,
    InternalAdapterError,
    QueryError,
    SqlNavException,
    create_error_from_exception,
)
from .protocols import BackendAdapter
from .types import BackendKind, ConstraintTag
from .utils import FormatUtils, SqlUtils, StringUtils

__all__ = [
    "ConfigValidationError",
    "ConnectionError",
    "ConnectionFailure",
    "ErrorCodes",
    "InternalAdapterError",
    "QueryError",
    "SqlNavException",
    "create_error_from_exception",
    "BackendAdapter",
    "BackendKind",
    "ConstraintTag",
    "FormatUtils",
    "SqlUtils",
    "StringUtils",
]
