"""sqlnav exception hierarchy.

Every failure that can reach a user is expressed as one of four exception
types, all rooted at :class:`SqlNavException`:

Classes:
    SqlNavException: Base exception carrying a code, context and cause
    ConfigValidationError: Invalid connection or session input, raised before any I/O
    ConnectionError: Establishing (or keeping) a backend connection failed
    QueryError: A statement or catalog lookup was rejected by the backend
    InternalAdapterError: A driver failed in a way no adapter anticipated

Example:
    >>> try:
    ...     await registry.open(BackendKind.POSTGRESQL, config)
    ... except ConnectionError as e:
    ...     logger.error("Connection failed", error_code=e.code, reason=e.reason.value)
"""

from enum import Enum
from typing import Any, Dict, Optional


class SqlNavException(Exception):
    """Base exception for all sqlnav operations.

    Attributes:
        message: Human-readable description, safe to show in the UI
        code: Unique error code for categorization
        context: Additional context information about the error
        cause: Original exception that caused this error (if any)

    Example:
        >>> raise SqlNavException(
        ...     "Operation failed",
        ...     code="OPERATION_FAILED",
        ...     context={"operation": "list_tables", "backend": "mysql"}
        ... )
    """

    def __init__(
        self,
        message: str,
        *,
        code: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
        cause: Optional[BaseException] = None,
    ) -> None:
        """Initialize sqlnav exception.

        Args:
            message: Human-readable error description
            code: Unique error code for categorization (defaults to class name)
            context: Additional context information
            cause: Original exception that caused this error
        """
        super().__init__(message)
        self.message: str = message
        self.code: str = code or self.__class__.__name__
        self.context: Dict[str, Any] = context or {}
        self.cause: Optional[BaseException] = cause

    @property
    def display_message(self) -> str:
        """Message rendered in the session's error slot."""
        return self.message

    def __str__(self) -> str:
        """Return formatted error message with code."""
        return f"{self.code}: {self.message}"

    def __repr__(self) -> str:
        """Return detailed representation of the exception."""
        return (
            f"{self.__class__.__name__}("
            f"message={self.message!r}, "
            f"code={self.code!r}, "
            f"context={self.context!r}, "
            f"cause={self.cause!r})"
        )

    def to_dict(self) -> Dict[str, Any]:
        """Convert exception to dictionary for serialization.

        Returns:
            Dictionary representation of the exception
        """
        return {
            "error_type": self.__class__.__name__,
            "message": self.message,
            "code": self.code,
            "context": self.context,
            "cause": str(self.cause) if self.cause else None,
        }


class ConfigValidationError(SqlNavException):
    """Configuration or user input failed validation.

    Raised before any network activity when a connection form, connection
    string or session setting is malformed. Non-fatal: the UI shows the
    message inline and lets the user correct the input.
    """

    def __init__(
        self,
        message: str,
        *,
        errors: Optional[Dict[str, str]] = None,
        code: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
        cause: Optional[BaseException] = None,
    ) -> None:
        super().__init__(
            message,
            code=code or ErrorCodes.CONFIG_VALIDATION_FAILED,
            context=context,
            cause=cause,
        )
        self.errors: Dict[str, str] = dict(errors or {})

    def to_dict(self) -> Dict[str, Any]:
        data = super().to_dict()
        data["errors"] = dict(self.errors)
        return data


class ConnectionFailure(str, Enum):
    """Why a connection could not be established."""

    NETWORK = "network"
    AUTH = "auth"
    PROTOCOL = "protocol"


class ConnectionError(SqlNavException):
    """Database connection errors.

    Raised when a backend cannot be reached, rejects the credentials, or
    speaks a protocol/version the driver cannot handle. Also raised when an
    established connection is lost mid-call. Recoverable by retrying with
    corrected input.
    """

    def __init__(
        self,
        message: str,
        *,
        reason: ConnectionFailure,
        code: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
        cause: Optional[BaseException] = None,
    ) -> None:
        super().__init__(message, code=code, context=context, cause=cause)
        self.reason: ConnectionFailure = ConnectionFailure(reason)

    def to_dict(self) -> Dict[str, Any]:
        data = super().to_dict()
        data["reason"] = self.reason.value
        return data


class QueryError(SqlNavException):
    """SQL statement or catalog query errors.

    Carries the backend's message and, when the backend reports one, the
    1-based character position of the error within the submitted SQL.
    """

    def __init__(
        self,
        message: str,
        *,
        position: Optional[int] = None,
        code: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
        cause: Optional[BaseException] = None,
    ) -> None:
        super().__init__(
            message,
            code=code or ErrorCodes.QUERY_EXECUTION_FAILED,
            context=context,
            cause=cause,
        )
        self.position: Optional[int] = position

    @property
    def display_message(self) -> str:
        if self.position is None:
            return self.message
        return f"{self.message} (at position {self.position})"

    def to_dict(self) -> Dict[str, Any]:
        data = super().to_dict()
        data["position"] = self.position
        return data


class InternalAdapterError(SqlNavException):
    """Unexpected driver failure.

    Raised by an adapter when a driver fails in a way it does not classify.
    The full traceback is logged; the message shown to the user is generic.
    """

    def __init__(
        self,
        message: str = "Unexpected backend failure; see the log for details",
        *,
        code: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
        cause: Optional[BaseException] = None,
    ) -> None:
        super().__init__(
            message,
            code=code or ErrorCodes.INTERNAL_ADAPTER_ERROR,
            context=context,
            cause=cause,
        )


# Error code constants for common scenarios
class ErrorCodes:
    """Common error codes for sqlnav exceptions."""

    # Configuration errors
    CONFIG_INVALID = "CONFIG_INVALID"
    CONFIG_VALIDATION_FAILED = "CONFIG_VALIDATION_FAILED"
    BACKEND_NOT_REGISTERED = "BACKEND_NOT_REGISTERED"

    # Connection errors
    CONNECTION_TIMEOUT = "CONNECTION_TIMEOUT"
    CONNECTION_REFUSED = "CONNECTION_REFUSED"
    CONNECTION_LOST = "CONNECTION_LOST"
    NETWORK_UNREACHABLE = "NETWORK_UNREACHABLE"
    AUTH_FAILED = "AUTH_FAILED"
    UNKNOWN_DATABASE = "UNKNOWN_DATABASE"
    PROTOCOL_MISMATCH = "PROTOCOL_MISMATCH"
    UNSUPPORTED_SERVER_VERSION = "UNSUPPORTED_SERVER_VERSION"
    DATABASE_FILE_NOT_FOUND = "DATABASE_FILE_NOT_FOUND"

    # Query errors
    NOT_CONNECTED = "NOT_CONNECTED"
    DATABASE_MISMATCH = "DATABASE_MISMATCH"
    QUERY_EXECUTION_FAILED = "QUERY_EXECUTION_FAILED"
    QUERY_TIMEOUT = "QUERY_TIMEOUT"
    METADATA_EXTRACTION_FAILED = "METADATA_EXTRACTION_FAILED"

    # Adapter errors
    INTERNAL_ADAPTER_ERROR = "INTERNAL_ADAPTER_ERROR"


def create_error_from_exception(
    exc: BaseException,
    *,
    backend: str,
    operation: str,
    context: Optional[Dict[str, Any]] = None,
) -> InternalAdapterError:
    """Wrap an unclassified driver exception.

    The original exception type and text are kept in the context for the
    log; the user-facing message stays generic.

    Args:
        exc: Original exception to convert
        backend: Backend kind value (``postgresql``, ``mysql``, ``sqlite``)
        operation: Adapter operation that was running
        context: Additional context information

    Returns:
        InternalAdapterError chained to ``exc``

    Example:
        >>> try:
        ...     await driver.fetch(sql)
        ... except Exception as e:
        ...     raise create_error_from_exception(
        ...         e, backend="postgresql", operation="execute_query"
        ...     ) from e
    """
    error_context = {
        "backend": backend,
        "operation": operation,
        "error_type": type(exc).__name__,
        "error": str(exc),
    }
    error_context.update(context or {})

    return InternalAdapterError(
        f"Unexpected failure in the {backend} backend during {operation}; "
        "see the log for details",
        context=error_context,
        cause=exc,
    )
