# src/sqlnav/session/controller.py
"""Session controller.

Single entry point for UI intents. The controller feeds intents to the
navigation state machine, runs the resulting effects as asyncio tasks
against the connection registry and publishes every new snapshot to its
subscribers. While an effect runs only ``Cancel`` is honoured.
"""

import asyncio
import uuid
from typing import Any, Callable, Optional, Set

from sqlnav.config.models import ConnectionConfig, SessionConfig
from sqlnav.core.exceptions import (
    ConnectionError,
    ErrorCodes,
    QueryError,
    SqlNavException,
    create_error_from_exception,
)
from sqlnav.database.connection import Connection, ConnectionRegistry
from sqlnav.database.models import DatabaseDescriptor
from sqlnav.logging import get_logger
from sqlnav.session.intents import Cancel, Intent
from sqlnav.session.machine import (
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
)
from sqlnav.session.state import Screen, SessionState

SessionListener = Callable[[SessionState], None]


class SessionController:
    """Drives one interactive session.

    The controller owns the only reference to the current snapshot and
    replaces it atomically; listeners always receive complete snapshots.

    Example:
        >>> async with SessionController(ConnectionRegistry(adapters)) as session:
        ...     await session.dispatch(SelectionMade("postgresql"))
        ...     state = await session.dispatch(TextSubmitted("app@db.local/app"))
        ...     state.screen
        <Screen.SELECT_DATABASE: 'select_database'>
    """

    def __init__(
        self,
        connections: ConnectionRegistry,
        machine: Optional[NavigationStateMachine] = None,
        *,
        config: Optional[SessionConfig] = None,
        session_id: Optional[str] = None,
    ):
        self.connections = connections
        self.machine = machine or NavigationStateMachine()
        self.config = config or SessionConfig()
        self.session_id = session_id or uuid.uuid4().hex[:12]

        self.logger = get_logger("sqlnav.session").bind(session_id=self.session_id)
        self.logger.set_correlation_id(self.session_id)

        self._listeners: Set[SessionListener] = set()
        self._state = self.machine.initial(connections.adapters.available_backends())
        self._prior: Optional[SessionState] = None
        self._effect: Optional[Effect] = None
        self._task: Optional["asyncio.Task[None]"] = None

        self.logger.info(
            "Session started",
            backends=[kind.value for kind in self._state.backends],
        )

    @property
    def state(self) -> SessionState:
        return self._state

    @property
    def is_pending(self) -> bool:
        return self._task is not None and not self._task.done()

    def subscribe(self, listener: SessionListener) -> Callable[[], None]:
        """Register ``listener`` for snapshot updates.

        The listener is called immediately with the current snapshot.
        Returns a callable that removes the listener again.
        """
        self._listeners.add(listener)
        listener(self._state)

        def _unsubscribe() -> None:
            self._listeners.discard(listener)

        return _unsubscribe

    def submit(self, intent: Intent) -> Optional["asyncio.Task[None]"]:
        """Start processing ``intent``.

        Returns the task running the resulting effect, or None when the
        intent was handled immediately (or ignored). Must be called from
        within a running event loop.
        """
        if isinstance(intent, Cancel) and self.is_pending:
            self.cancel()
            return self._task

        if self.is_pending:
            self.logger.debug("Intent ignored while pending", intent=type(intent).__name__)
            return None

        transition = self.machine.apply(self._state, intent)
        if transition.state is self._state:
            self.logger.debug("Intent ignored", intent=type(intent).__name__)
            return None

        self.logger.debug(
            "Intent processed",
            intent=type(intent).__name__,
            screen=transition.state.screen.value,
        )

        if transition.effect is None:
            self._publish(transition.state)
            return None

        self._prior = self._state
        self._effect = transition.effect
        self._publish(transition.state)
        self._task = asyncio.get_running_loop().create_task(
            self._run(transition.state, transition.effect)
        )
        return self._task

    async def dispatch(self, intent: Intent) -> SessionState:
        """Process ``intent`` to completion and return the new snapshot."""
        task = self.submit(intent)
        if task is not None:
            await asyncio.wait({task})
        return self._state

    def cancel(self) -> bool:
        """Abort the pending backend call.

        Closing a connection is not cancellable. Returns True when a
        cancellation was requested.
        """
        if not self.is_pending or isinstance(self._effect, CloseConnection):
            return False

        self.logger.info("Cancelling pending call", effect=type(self._effect).__name__)
        self._task.cancel()
        return True

    async def shutdown(self) -> None:
        """Cancel pending work, release the connection and move to QUIT."""
        if self.is_pending:
            self._task.cancel()
            await asyncio.wait({self._task})

        await self.connections.close()
        if self._state.screen is not Screen.QUIT:
            self._publish(self.machine.terminate(self._state))

        self.logger.info("Session ended", revision=self._state.revision)

    async def __aenter__(self) -> "SessionController":
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        await self.shutdown()

    def _publish(self, state: SessionState) -> None:
        self._state = state
        for listener in tuple(self._listeners):
            listener(state)

    async def _run(self, pending: SessionState, effect: Effect) -> None:
        try:
            with self.logger.context(effect=type(effect).__name__):
                await self._run_in_context(pending, effect)
        finally:
            self._prior = None
            self._effect = None

    async def _run_in_context(self, pending: SessionState, effect: Effect) -> None:
        self.logger.info("Running effect")
        try:
            outcome = await self._execute(effect)
        except asyncio.CancelledError:
            connection = await self._release_after_cancel(effect)
            self._publish(self.machine.cancelled(self._prior, connection))
            self.logger.info("Effect cancelled")
            raise

        self._publish(self.machine.resolve(pending, effect, outcome))
        self.logger.info(
            "Effect finished",
            succeeded=isinstance(outcome, EffectSucceeded),
            screen=self._state.screen.value,
        )

    async def _execute(self, effect: Effect) -> Outcome:
        try:
            if isinstance(effect, OpenConnection):
                return await self._open(effect.config)
            if isinstance(effect, SwitchDatabase):
                return await self._switch_database(effect.database)
            if isinstance(effect, LoadColumns):
                columns = await self.connections.describe_table(effect.table)
                return EffectSucceeded(tuple(columns), self.connections.current())
            if isinstance(effect, RunQuery):
                result = await self._run_query(effect.sql)
                return EffectSucceeded(result, self.connections.current())
            await self.connections.close()
            return EffectSucceeded()
        except SqlNavException as exc:
            return await self._failed(effect, exc)
        except Exception as exc:
            self.logger.exception("Unexpected failure while running effect")
            backend = self._state.backend.value if self._state.backend else "unknown"
            error = create_error_from_exception(
                exc, backend=backend, operation=type(effect).__name__
            )
            return await self._failed(effect, error)

    async def _failed(self, effect: Effect, error: SqlNavException) -> EffectFailed:
        if isinstance(error, ConnectionError) and not isinstance(effect, OpenConnection):
            await self.connections.close()
        return EffectFailed(error, self.connections.current())

    async def _open(self, config: ConnectionConfig) -> Outcome:
        connection = await self.connections.open(config.kind, config)
        try:
            databases = await self.connections.list_databases()
        except BaseException:
            await self.connections.close()
            raise
        return EffectSucceeded(tuple(databases), connection)

    async def _switch_database(self, database: DatabaseDescriptor) -> Outcome:
        previous = self.connections.current()
        if previous is None or not previous.reconnects_for(database.name):
            tables = await self.connections.list_tables(database)
            return EffectSucceeded(tuple(tables), previous)

        try:
            connection = await self.connections.open(
                previous.kind, previous.config.for_database(database.name)
            )
            tables = await self.connections.list_tables(database)
        except SqlNavException as exc:
            restored = await self._restore(previous.config)
            return EffectFailed(exc, restored)

        return EffectSucceeded(tuple(tables), connection)

    async def _run_query(self, sql: str):
        timeout = self.config.query_timeout
        try:
            return await asyncio.wait_for(self.connections.execute(sql), timeout=timeout)
        except asyncio.TimeoutError as exc:
            current = self.connections.current()
            if current is not None and current.closed:
                await self.connections.close()
            raise QueryError(
                f"Query did not finish within {timeout}s",
                code=ErrorCodes.QUERY_TIMEOUT,
                cause=exc,
            ) from exc

    async def _restore(self, config: ConnectionConfig) -> Optional[Connection]:
        self.logger.info("Restoring previous connection", target=config.display_target)
        try:
            return await self.connections.open(config.kind, config)
        except SqlNavException as exc:
            self.logger.warning(
                "Could not restore previous connection",
                target=config.display_target,
                error=exc.message,
            )
            return None

    async def _release_after_cancel(self, effect: Effect) -> Optional[Connection]:
        """Release partial work and return the connection left in place."""
        if isinstance(effect, OpenConnection):
            await self.connections.close()
            return None

        current = self.connections.current()
        if current is not None and current.closed:
            await self.connections.close()
            current = None

        previous = self._prior.connection if self._prior else None
        if isinstance(effect, SwitchDatabase) and previous is not None and current is not previous:
            await self.connections.close()
            return await self._restore(previous.config)
        return current
