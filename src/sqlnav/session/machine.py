# src/sqlnav/session/machine.py
"""Navigation state machine.

Transitions are pure functions of (snapshot, intent). A transition that
needs the backend returns a pending snapshot plus an effect describing the
call; the controller runs the effect and hands the outcome back to
:meth:`NavigationStateMachine.resolve`. Nothing in this module performs
I/O, so every transition is testable without a database.
"""

from dataclasses import dataclass
from typing import Any, Iterable, Optional, Union

from sqlnav.config.models import ConnectionConfig
from sqlnav.core.exceptions import (
    ConfigValidationError,
    ConnectionError,
    ConnectionFailure,
    ErrorCodes,
    QueryError,
    SqlNavException,
)
from sqlnav.core.types import BackendKind
from sqlnav.core.utils import SqlUtils
from sqlnav.database.connection import Connection
from sqlnav.database.models import DatabaseDescriptor, TableDescriptor
from sqlnav.session.intents import (
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
from sqlnav.session.state import Screen, SessionState


# Effects

@dataclass(frozen=True)
class OpenConnection:
    """Connect with ``config`` and list its databases."""
    config: ConnectionConfig


@dataclass(frozen=True)
class SwitchDatabase:
    """Bind the connection to ``database`` and list its tables."""
    database: DatabaseDescriptor


@dataclass(frozen=True)
class LoadColumns:
    table: TableDescriptor


@dataclass(frozen=True)
class RunQuery:
    sql: str


@dataclass(frozen=True)
class CloseConnection:
    """Release the connection, then move to ``target``."""
    target: Screen


Effect = Union[OpenConnection, SwitchDatabase, LoadColumns, RunQuery, CloseConnection]


# Outcomes delivered back by the controller

@dataclass(frozen=True)
class EffectSucceeded:
    value: Any = None
    connection: Optional[Connection] = None


@dataclass(frozen=True)
class EffectFailed:
    error: SqlNavException
    connection: Optional[Connection] = None


Outcome = Union[EffectSucceeded, EffectFailed]


@dataclass(frozen=True)
class Transition:
    state: SessionState
    effect: Optional[Effect] = None


def _cleared(state: SessionState, **changes: Any) -> SessionState:
    """Drop every piece of state tied to a connection."""
    fields = dict(
        connection=None,
        databases=(),
        database=None,
        tables=(),
        table=None,
        columns=(),
        result=None,
        last_sql="",
        error=None,
        error_code=None,
        error_position=None,
        return_screen=None,
    )
    fields.update(changes)
    return state.evolve(**fields)


class NavigationStateMachine:
    """Screen transitions for one session.

    Example:
        >>> machine = NavigationStateMachine()
        >>> state = machine.initial([BackendKind.POSTGRESQL])
        >>> machine.apply(state, SelectionMade("postgresql")).state.screen
        <Screen.INPUT_CONNECTION: 'input_connection'>
    """

    def initial(self, backends: Iterable[BackendKind] = tuple(BackendKind)) -> SessionState:
        return SessionState(screen=Screen.SELECT_BACKEND, backends=tuple(backends))

    def apply(self, state: SessionState, intent: Intent) -> Transition:
        """Apply one intent.

        Intents arriving while a call is pending or after QUIT leave the
        snapshot untouched. Every other intent yields exactly one new
        revision, either immediately or when its effect is resolved.
        """
        if state.pending or state.screen is Screen.QUIT:
            return Transition(state)

        if isinstance(intent, Quit):
            if state.connection is not None:
                return self._begin(state, CloseConnection(Screen.QUIT))
            return self._advance(_cleared(state, screen=Screen.QUIT))

        if isinstance(intent, Disconnect) and state.connection is not None:
            return self._begin(state, CloseConnection(Screen.SELECT_BACKEND))

        handler = getattr(self, f"_on_{state.screen.value}", None)
        transition = handler(state, intent) if handler else None
        return transition or self._advance(state)

    def resolve(self, pending: SessionState, effect: Effect, outcome: Outcome) -> SessionState:
        """Turn the outcome of ``effect`` into the next snapshot."""
        state = pending.evolve(pending=False, revision=pending.revision + 1)

        if isinstance(effect, CloseConnection):
            return _cleared(state, screen=effect.target, backend=None, config=None)

        if isinstance(effect, OpenConnection):
            if isinstance(outcome, EffectFailed):
                return self._fail(state, outcome.error, Screen.INPUT_CONNECTION)
            return _cleared(
                state,
                screen=Screen.SELECT_DATABASE,
                connection=outcome.connection,
                databases=tuple(outcome.value),
            )

        if outcome.connection is None:
            error = outcome.error if isinstance(outcome, EffectFailed) else None
            return self._connection_lost(state, error)

        if isinstance(effect, SwitchDatabase):
            if isinstance(outcome, EffectFailed):
                return self._fail(
                    state, outcome.error, Screen.SELECT_DATABASE, connection=outcome.connection
                )
            return state.without_error(
                screen=Screen.LIST_TABLES,
                connection=outcome.connection,
                config=outcome.connection.config,
                database=effect.database,
                tables=tuple(outcome.value),
                table=None,
                columns=(),
            )

        if isinstance(effect, LoadColumns):
            if isinstance(outcome, EffectFailed):
                return state.with_error(outcome.error, connection=outcome.connection)
            return state.without_error(
                screen=Screen.DESCRIBE_TABLE,
                connection=outcome.connection,
                table=effect.table,
                columns=tuple(outcome.value),
            )

        if isinstance(outcome, EffectFailed):
            return state.with_error(outcome.error, connection=outcome.connection, result=None)
        return state.without_error(connection=outcome.connection, result=outcome.value)

    def cancelled(self, prior: SessionState, connection: Optional[Connection]) -> SessionState:
        """Snapshot after the pending call started from ``prior`` was aborted.

        ``connection`` is whatever the connection registry holds once the
        partial work has been released.
        """
        state = prior.evolve(
            pending=False,
            revision=prior.revision + 1,
            connection=connection,
        )
        needs_connection = prior.screen.is_connected or (
            prior.screen is Screen.ERROR
            and prior.return_screen is not None
            and prior.return_screen.is_connected
        )
        if needs_connection and connection is None:
            return self._connection_lost(state, None)
        return state

    def terminate(self, state: SessionState) -> SessionState:
        """Final QUIT snapshot used when the session shuts down."""
        return _cleared(
            state,
            screen=Screen.QUIT,
            pending=False,
            revision=state.revision + 1,
        )

    # Screen handlers return None for intents without a rule

    def _on_select_backend(self, state: SessionState, intent: Intent) -> Optional[Transition]:
        if not isinstance(intent, SelectionMade):
            return None

        try:
            kind = BackendKind.parse(intent.value)
        except ValueError:
            kind = None
        if kind is None or kind not in state.backends:
            error = ConfigValidationError(
                f"Unknown backend: {intent.value}",
                errors={"kind": f"choose one of {', '.join(k.value for k in state.backends)}"},
            )
            return self._advance(state.with_error(error))

        return self._advance(
            state.without_error(screen=Screen.INPUT_CONNECTION, backend=kind, config=None)
        )

    def _on_input_connection(self, state: SessionState, intent: Intent) -> Optional[Transition]:
        if isinstance(intent, Back):
            return self._advance(
                state.without_error(screen=Screen.SELECT_BACKEND, backend=None, config=None)
            )

        try:
            if isinstance(intent, ConnectionFormSubmitted):
                config = ConnectionConfig.from_input(
                    state.backend,
                    host=intent.host,
                    port=intent.port,
                    username=intent.username,
                    password=intent.password,
                    database=intent.database,
                )
            elif isinstance(intent, TextSubmitted):
                config = ConnectionConfig.from_text(state.backend, intent.text)
            else:
                return None
        except ConfigValidationError as exc:
            return self._advance(state.with_error(exc))

        return Transition(
            state.without_error(screen=Screen.CONNECTING, config=config, pending=True),
            OpenConnection(config),
        )

    def _on_error(self, state: SessionState, intent: Intent) -> Optional[Transition]:
        if not isinstance(intent, (Back, SelectionMade)):
            return None
        target = state.return_screen or Screen.SELECT_BACKEND
        return self._advance(state.without_error(screen=target, return_screen=None))

    def _on_select_database(self, state: SessionState, intent: Intent) -> Optional[Transition]:
        if isinstance(intent, Back):
            return self._begin(state, CloseConnection(Screen.SELECT_BACKEND))
        if not isinstance(intent, SelectionMade):
            return None

        database = self._lookup_database(state, intent.value)
        if database is None:
            return self._advance(state.with_error(QueryError(
                f"Unknown database: {intent.value}", code=ErrorCodes.UNKNOWN_DATABASE
            )))
        if state.connection is not None and state.connection.reconnects_for(database.name):
            # The registry closes the current handle before reconnecting
            state = state.evolve(connection=None)
        return self._begin(state, SwitchDatabase(database))

    def _on_list_tables(self, state: SessionState, intent: Intent) -> Optional[Transition]:
        if isinstance(intent, Back):
            return self._advance(
                state.without_error(screen=Screen.SELECT_DATABASE, table=None, columns=())
            )
        if isinstance(intent, EnterQueryMode):
            return self._enter_query_mode(state)
        if not isinstance(intent, SelectionMade):
            return None

        table = self._lookup_table(state, intent.value)
        if table is None:
            return self._advance(state.with_error(QueryError(
                f"Unknown table: {intent.value}", code=ErrorCodes.METADATA_EXTRACTION_FAILED
            )))
        return self._begin(state, LoadColumns(table))

    def _on_describe_table(self, state: SessionState, intent: Intent) -> Optional[Transition]:
        if isinstance(intent, Back):
            return self._advance(
                state.without_error(screen=Screen.LIST_TABLES, table=None, columns=())
            )
        if isinstance(intent, EnterQueryMode):
            return self._enter_query_mode(state)
        return None

    def _on_query_result(self, state: SessionState, intent: Intent) -> Optional[Transition]:
        if isinstance(intent, Back):
            return self._advance(
                state.without_error(screen=Screen.LIST_TABLES, table=None, columns=(), result=None)
            )
        if not isinstance(intent, TextSubmitted):
            return None

        if SqlUtils.is_blank(intent.text):
            return self._advance(state.with_error(
                QueryError("Query text is empty"), result=None, last_sql=intent.text
            ))
        return self._begin(state.evolve(last_sql=intent.text), RunQuery(intent.text))

    def _enter_query_mode(self, state: SessionState) -> Transition:
        return self._advance(state.without_error(screen=Screen.QUERY_RESULT, result=None))

    @staticmethod
    def _advance(state: SessionState) -> Transition:
        return Transition(state.evolve(revision=state.revision + 1))

    @staticmethod
    def _begin(state: SessionState, effect: Effect) -> Transition:
        return Transition(state.evolve(pending=True), effect)

    @staticmethod
    def _fail(
        state: SessionState,
        error: SqlNavException,
        return_screen: Screen,
        connection: Optional[Connection] = None,
    ) -> SessionState:
        if connection is None and return_screen.is_connected:
            return_screen = Screen.INPUT_CONNECTION
        if connection is None:
            state = _cleared(state, config=state.config)
        return state.with_error(
            error, screen=Screen.ERROR, return_screen=return_screen, connection=connection
        )

    def _connection_lost(
        self, state: SessionState, error: Optional[SqlNavException]
    ) -> SessionState:
        if error is None:
            error = ConnectionError(
                "The connection was closed",
                reason=ConnectionFailure.NETWORK,
                code=ErrorCodes.CONNECTION_LOST,
            )
        return self._fail(state, error, Screen.INPUT_CONNECTION)

    @staticmethod
    def _lookup_database(state: SessionState, value: Any) -> Optional[DatabaseDescriptor]:
        name = value.name if isinstance(value, DatabaseDescriptor) else str(value)
        for database in state.databases:
            if database.name == name:
                return database
        return None

    @staticmethod
    def _lookup_table(state: SessionState, value: Any) -> Optional[TableDescriptor]:
        if isinstance(value, TableDescriptor):
            return value if value in state.tables else None
        for table in state.tables:
            if str(value) in (table.name, table.qualified_name):
                return table
        return None
