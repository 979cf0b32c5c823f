"""Navigation session: intents, snapshots, state machine and controller.

Example:
    >>> from sqlnav.session import SelectionMade, SessionController
    >>> state = await controller.dispatch(SelectionMade("mysql"))
    >>> state.screen
    <Screen.INPUT_CONNECTION: 'input_connection'>
"""

from .intents import (
    Back,
    Cancel,
    ConnectionFormSubmitted,
    Disconnect,
    EnterQueryMode,
    Intent,
    Quit,
    SelectionMade,
    TextSubmitted,
)
from .state import CONNECTED_SCREENS, Screen, SessionState
from .machine import (
    CloseConnection,
    Effect,
    EffectFailed,
    EffectSucceeded,
    LoadColumns,
    NavigationStateMachine,
    OpenConnection,
    Outcome,
    RunQuery,
    SwitchDatabase,
    Transition,
)
from .controller import SessionController, SessionListener

__all__ = [
    # Intents
    "Back",
    "Cancel",
    "ConnectionFormSubmitted",
    "Disconnect",
    "EnterQueryMode",
    "Intent",
    "Quit",
    "SelectionMade",
    "TextSubmitted",

    # State
    "CONNECTED_SCREENS",
    "Screen",
    "SessionState",

    # Machine
    "CloseConnection",
    "Effect",
    "EffectFailed",
    "EffectSucceeded",
    "LoadColumns",
    "NavigationStateMachine",
    "OpenConnection",
    "Outcome",
    "RunQuery",
    "SwitchDatabase",
    "Transition",

    # Controller
    "SessionController",
    "SessionListener",
]
