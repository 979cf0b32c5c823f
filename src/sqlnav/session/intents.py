# src/sqlnav/session/intents.py
"""User intents delivered by the UI to the session controller.

Intents are abstracted from key events: the UI decides which key means
``Back`` or which list row was chosen, the session only sees the intent.
"""

from dataclasses import dataclass, field
from typing import Any, Optional, Union


@dataclass(frozen=True)
class SelectionMade:
    """An item was chosen from the list shown on the current screen.

    ``value`` may be the descriptor itself or its display name.
    """
    value: Any


@dataclass(frozen=True)
class TextSubmitted:
    """Free text was submitted (a connection string or SQL)."""
    text: str


@dataclass(frozen=True)
class ConnectionFormSubmitted:
    """Connection form submitted field by field."""
    host: str
    port: Union[int, str, None] = None
    username: str = ""
    password: str = field(default="", repr=False)
    database: Optional[str] = None


@dataclass(frozen=True)
class EnterQueryMode:
    pass


@dataclass(frozen=True)
class Back:
    pass


@dataclass(frozen=True)
class Disconnect:
    pass


@dataclass(frozen=True)
class Quit:
    pass


@dataclass(frozen=True)
class Cancel:
    """Abort the pending backend call, if any."""


Intent = Union[
    SelectionMade,
    TextSubmitted,
    ConnectionFormSubmitted,
    EnterQueryMode,
    Back,
    Disconnect,
    Quit,
    Cancel,
]
