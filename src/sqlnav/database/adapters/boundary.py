# src/sqlnav/database/adapters/boundary.py
"""Error boundary shared by the backend adapters.

Each adapter supplies a ``translate`` callable mapping driver exceptions to
sqlnav exceptions. Anything it cannot classify becomes an
InternalAdapterError and is logged with its traceback. Task cancellation
and ``MemoryError`` always propagate unchanged.
"""

from contextlib import asynccontextmanager
from typing import AsyncIterator, Callable, Optional

from sqlnav.core.exceptions import (
    ConnectionError,
    SqlNavException,
    create_error_from_exception,
)
from sqlnav.core.types import BackendKind
from sqlnav.logging import StructuredLogger

Translator = Callable[[Exception], Optional[SqlNavException]]


@asynccontextmanager
async def adapter_boundary(
    kind: BackendKind,
    operation: str,
    translate: Translator,
    logger: StructuredLogger,
) -> AsyncIterator[None]:
    """Convert driver exceptions raised inside the block.

    Example:
        >>> async with adapter_boundary(self.kind, "list_tables", self._query_error, self.logger):
        ...     rows = await connection.handle.fetch(sql)
    """
    try:
        yield
    except SqlNavException:
        raise
    except MemoryError:
        raise
    except Exception as exc:
        error = translate(exc)
        if error is None:
            logger.exception(
                "Unexpected driver failure",
                backend=kind.value,
                operation=operation,
                error_type=type(exc).__name__,
            )
            raise create_error_from_exception(
                exc, backend=kind.value, operation=operation
            ) from exc

        error.context.setdefault("backend", kind.value)
        error.context.setdefault("operation", operation)
        log = logger.warning if isinstance(error, ConnectionError) else logger.info
        log(
            "Backend reported an error",
            backend=kind.value,
            operation=operation,
            error_code=error.code,
            error=error.message,
        )
        raise error from exc
