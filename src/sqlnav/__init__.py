"""sqlnav - interactive relational database navigator core.

Connects to PostgreSQL or MySQL (SQLite experimentally), browses databases,
tables and columns, and runs ad-hoc SQL through one backend-agnostic
adapter layer driven by a navigation state machine.

Modules:
    core: Exceptions, enumerations and utilities
    config: Configuration models
    logging: Structured logging framework
    database: Schema model, backend adapters and registries
    session: Navigation state machine and session controller

Example:
    >>> from sqlnav import create_session
    >>> from sqlnav.session import SelectionMade, TextSubmitted
    >>>
    >>> async with create_session() as session:
    ...     await session.dispatch(SelectionMade("postgresql"))
    ...     state = await session.dispatch(TextSubmitted("app:secret@localhost/app"))
"""

from typing import Optional

from . import config, core, database, logging, session
from .config.models import SessionConfig
from .database import create_default_registry
from .database.connection import ConnectionRegistry
from .session.controller import SessionController

__version__ = "0.1.0"
__title__ = "sqlnav"
__description__ = "Backend-agnostic database navigation core"
__license__ = "MIT"

__all__ = [
    "config",
    "core",
    "database",
    "logging",
    "session",
    "create_session",
    "__version__",
    "__title__",
    "__description__",
    "__license__",
]


def create_session(config: Optional[SessionConfig] = None) -> SessionController:
    """Build a session controller with the built-in adapters.

    Logging is left to the caller, see :func:`sqlnav.logging.configure_logging`.
    """
    config = config or SessionConfig()
    connections = ConnectionRegistry(create_default_registry(config))
    return SessionController(connections, config=config)
