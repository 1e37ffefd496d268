"""Execution engine coordinating connect, execute and close across a fleet."""

from __future__ import annotations

import asyncio
import threading
from collections.abc import Iterable, Sequence
from types import TracebackType
from typing import Self

import structlog

from remex.cancellation import CancellationToken
from remex.commands import CommandRegistry
from remex.connection import DEFAULT_CONNECT_TIMEOUT, RemoteSession
from remex.errors import (
    CancellationError,
    CloseError,
    CommandFailedError,
    ConfigurationError,
    HostConnectionError,
    NoConnectionsError,
)
from remex.events import ResultHandler, ResultPipeline
from remex.logging import get_logger
from remex.models import ExecutionEvent, ExecutionReport, HostConfig, HostOutcome, Stage

__all__ = ["ExecutionEngine"]

logger = get_logger(__name__)


class ExecutionEngine:
    """Distributed command execution engine.

    Responsibilities:
    - Connecting every configured host, tolerating partial failure
    - Running command lists concurrently, one task per connected host
    - Publishing Connected/Started/Finished events to result handlers
    - Cancelling in-flight work and closing sessions on close()

    The engine's cancellation token is the only cancellation authority; pass
    a parent token to tie the engine to an outer deadline.
    """

    def __init__(
        self,
        hosts: Iterable[HostConfig],
        *,
        registry: CommandRegistry | None = None,
        token: CancellationToken | None = None,
        connect_timeout: float = DEFAULT_CONNECT_TIMEOUT,
    ) -> None:
        """Initialize engine with host configurations.

        Args:
            hosts: Host configurations; ids must be unique
            registry: In-band command registry, defaults to the built-ins
            token: Parent cancellation token to compose with
            connect_timeout: Per-host dial and authentication timeout in seconds

        Raises:
            ConfigurationError: Duplicate host ids
        """
        self._hosts = list(hosts)
        seen: set[str] = set()
        for host in self._hosts:
            if host.id in seen:
                raise ConfigurationError(f"duplicate host id: {host.id}")
            seen.add(host.id)

        self._registry = registry if registry is not None else CommandRegistry.with_builtins()
        self._token = token.child() if token is not None else CancellationToken()
        self._connect_timeout = connect_timeout

        # Session map and handler list share one lock
        self._lock = threading.RLock()
        self._sessions: dict[str, RemoteSession] = {}
        self._pipeline = ResultPipeline(lock=self._lock)
        self._tasks: set[asyncio.Task[HostOutcome]] = set()

    @property
    def hosts(self) -> list[HostConfig]:
        return list(self._hosts)

    @property
    def registry(self) -> CommandRegistry:
        return self._registry

    @property
    def token(self) -> CancellationToken:
        return self._token

    def register_handler(self, *handlers: ResultHandler) -> None:
        """Register callbacks receiving every ExecutionEvent."""
        self._pipeline.register(*handlers)

    def get_connected_hosts(self) -> dict[str, str]:
        """Return a snapshot mapping host id to remote address."""
        with self._lock:
            return {host_id: session.remote_address for host_id, session in self._sessions.items()}

    def get_session(self, host_id: str) -> RemoteSession | None:
        with self._lock:
            return self._sessions.get(host_id)

    def _notify(self, event: ExecutionEvent) -> None:
        self._pipeline.publish(event)

    async def connect(self) -> None:
        """Establish SSH sessions to every configured host.

        A host that fails is logged, reported as a CONNECTED event carrying
        the error and skipped; any older session for it is dropped.

        Raises:
            NoConnectionsError: No host is connected after the attempt
            CancellationError: Token fired before or during connecting
        """
        connection_errors: list[HostConnectionError] = []

        for host in self._hosts:
            self._token.raise_if_cancelled()
            try:
                session = await RemoteSession.connect(
                    host,
                    self._registry,
                    self._token,
                    timeout=self._connect_timeout,
                )
            except HostConnectionError as e:
                logger.error("failed to establish SSH connection", host=host.id, remote=host.remote_address, error=str(e))
                connection_errors.append(e)
                await self._replace_session(host.id, None)
                self._notify(
                    ExecutionEvent(
                        host_id=host.id,
                        remote_address=host.remote_address,
                        stage=Stage.CONNECTED,
                        error=e,
                    )
                )
                continue

            await self._replace_session(host.id, session)
            logger.info("SSH connection established", host=host.id, remote=host.remote_address)
            self._notify(
                ExecutionEvent(
                    host_id=host.id,
                    remote_address=host.remote_address,
                    stage=Stage.CONNECTED,
                )
            )

        connected = len(self.get_connected_hosts())
        if connected == 0:
            raise NoConnectionsError(connection_errors)

        logger.info("connections established", successful=connected, total=len(self._hosts))

    async def _replace_session(self, host_id: str, session: RemoteSession | None) -> None:
        """Store session for host_id, closing whatever it replaces."""
        with self._lock:
            previous = self._sessions.pop(host_id, None)
            if session is not None:
                self._sessions[host_id] = session
        if previous is not None and previous is not session:
            logger.debug("closing replaced session", host=host_id)
            await previous.close()

    async def execute(self, commands: Sequence[str] | None = None) -> ExecutionReport:
        """Run commands on every connected host concurrently.

        Connects first when no session exists. Within a host commands run
        strictly in order and the first failure stops that host; other hosts
        continue independently.

        Args:
            commands: Command list for every host. When None, each host runs
                its own HostConfig.commands.

        Returns:
            ExecutionReport with one HostOutcome per host, in completion order

        Raises:
            NoConnectionsError: Connecting was needed and no host succeeded
            CancellationError: Token had already fired
        """
        self._token.raise_if_cancelled()
        with self._lock:
            needs_connect = not self._sessions
        if needs_connect:
            await self.connect()

        with self._lock:
            sessions = list(self._sessions.values())

        finished: list[HostOutcome] = []
        tasks: list[asyncio.Task[HostOutcome]] = []
        for session in sessions:
            host_commands = list(commands) if commands is not None else list(session.host.commands)
            task = asyncio.create_task(
                self._run_host(session, host_commands, finished),
                name=f"remex-{session.id}",
            )
            self._tasks.add(task)
            task.add_done_callback(self._tasks.discard)
            tasks.append(task)

        await asyncio.gather(*tasks)
        return ExecutionReport(outcomes=tuple(finished))

    async def _run_host(
        self,
        session: RemoteSession,
        commands: list[str],
        finished: list[HostOutcome],
    ) -> HostOutcome:
        """Run all commands on a single host and record the outcome."""
        log = logger.bind(host=session.id, remote=session.remote_address)
        outcome = await self._run_commands(session, commands, log)
        finished.append(outcome)
        return outcome

    async def _run_commands(
        self,
        session: RemoteSession,
        commands: list[str],
        log: structlog.stdlib.BoundLogger,
    ) -> HostOutcome:
        for index, command in enumerate(commands):
            if self._token.cancelled:
                log.info("execution cancelled", remaining=len(commands) - index)
                return HostOutcome(session.id, session.remote_address, index, self._token.error)

            self._notify(
                ExecutionEvent(
                    host_id=session.id,
                    remote_address=session.remote_address,
                    stage=Stage.STARTED,
                    command=command,
                    index=index,
                )
            )

            output = ""
            error: Exception | None = None
            try:
                output = await session.execute_command(self._token, command)
            except Exception as e:
                error = e
                output = getattr(e, "output", "")

            self._notify(
                ExecutionEvent(
                    host_id=session.id,
                    remote_address=session.remote_address,
                    stage=Stage.FINISHED,
                    command=command,
                    index=index,
                    output=output,
                    error=error,
                )
            )

            if isinstance(error, CancellationError):
                log.info("execution cancelled", command=command)
                return HostOutcome(session.id, session.remote_address, index, error)
            if error is not None:
                log.error("command failed", command=command, index=index, error=str(error))
                failure = CommandFailedError(session.id, index, command, error)
                failure.__cause__ = error
                return HostOutcome(session.id, session.remote_address, index, failure)

            log.debug("command execution details", command=command, output=output)

        log.info("command execution completed successfully", commands=len(commands))
        return HostOutcome(session.id, session.remote_address, len(commands))

    async def close(self) -> None:
        """Cancel in-flight work, wait for it and close every session.

        Safe to call repeatedly; the engine cannot execute again afterwards.

        Raises:
            CloseError: One or more sessions failed to close
        """
        self._token.cancel(CancellationError("engine closed"))

        pending = list(self._tasks)
        if pending:
            logger.debug("waiting for in-flight hosts", count=len(pending))
            await asyncio.gather(*pending, return_exceptions=True)

        with self._lock:
            sessions = list(self._sessions.values())
            self._sessions.clear()

        close_errors: list[BaseException] = []
        for session in sessions:
            try:
                await session.close()
            except Exception as e:
                logger.error("failed to close session", host=session.id, error=str(e))
                close_errors.append(e)

        if close_errors:
            raise CloseError(close_errors)

        if sessions:
            logger.info("all connections closed", count=len(sessions))

    async def __aenter__(self) -> Self:
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        await self.close()
