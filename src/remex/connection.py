"""SSH session management for a single remote host."""

from __future__ import annotations

import asyncio

import asyncssh

from remex.cancellation import CancellationToken
from remex.commands import CommandRegistry, parse_command
from remex.errors import CancellationError, HostConnectionError, NotConnectedError
from remex.executor import SESSION_ENV_VAR, RemoteExecutor
from remex.logging import get_logger
from remex.models import HostConfig

__all__ = ["DEFAULT_CONNECT_TIMEOUT", "RemoteSession"]

logger = get_logger(__name__)

DEFAULT_CONNECT_TIMEOUT = 5.0


class RemoteSession:
    """One authenticated SSH connection bound to one host config.

    Command text is classified once: in-band commands go to the registry,
    everything else runs as a literal remote shell command line.
    """

    def __init__(
        self,
        host: HostConfig,
        conn: asyncssh.SSHClientConnection | None,
        registry: CommandRegistry,
    ) -> None:
        self._host = host
        self._conn = conn
        self._registry = registry
        self._executor: RemoteExecutor | None = None
        if conn is not None:
            self._executor = RemoteExecutor(
                conn,
                env={SESSION_ENV_VAR: host.id},
                sudo_password=host.password if host.auto_sudo_password else None,
            )

    @classmethod
    async def connect(
        cls,
        host: HostConfig,
        registry: CommandRegistry,
        token: CancellationToken,
        timeout: float = DEFAULT_CONNECT_TIMEOUT,
    ) -> RemoteSession:
        """Dial and authenticate host with password credentials.

        Raises:
            HostConnectionError: Dial, handshake or authentication failed or timed out
            CancellationError: Token fired while connecting
        """
        token.raise_if_cancelled()
        try:
            conn = await token.run(
                asyncio.wait_for(
                    asyncssh.connect(
                        host.address,
                        port=host.port,
                        username=host.username,
                        password=host.password,
                        known_hosts=host.known_hosts,
                        client_keys=None,
                    ),
                    timeout=timeout,
                )
            )
        except CancellationError:
            raise
        except (OSError, asyncssh.Error) as e:
            raise HostConnectionError(host.id, host.remote_address, e) from e
        return cls(host, conn, registry)

    @property
    def id(self) -> str:
        return self._host.id

    @property
    def host(self) -> HostConfig:
        return self._host

    @property
    def remote_address(self) -> str:
        return self._host.remote_address

    @property
    def connected(self) -> bool:
        return self._conn is not None

    @property
    def ssh_connection(self) -> asyncssh.SSHClientConnection:
        """Get the underlying SSH connection.

        Raises:
            NotConnectedError: If the session was never connected or is closed
        """
        if self._conn is None:
            raise NotConnectedError(f"session {self.id} is not connected")
        return self._conn

    async def execute_command(self, token: CancellationToken, text: str) -> str:
        """Run one in-band or remote shell command and return its output.

        Raises:
            NotConnectedError: Session has no live connection
            CancellationError: Token fired; passed through unchanged
            CommandDispatchError: Unknown in-band command
            CommandHandlerError: In-band handler failed
            RemoteExecutionError: Remote command failed; output attached
        """
        conn = self.ssh_connection
        parsed = parse_command(text)
        if parsed.in_band:
            return await self._registry.dispatch(token, conn, parsed)

        assert self._executor is not None
        return await self._executor.run(token, text)

    async def close(self) -> None:
        """Close the SSH connection. No-op for a never-connected session."""
        if self._conn is None:
            return
        conn, self._conn, self._executor = self._conn, None, None
        conn.close()
        await conn.wait_closed()
        logger.debug("session closed", host=self.id, remote=self.remote_address)

    def __repr__(self) -> str:
        state = "connected" if self.connected else "closed"
        return f"RemoteSession(id={self.id!r}, remote={self.remote_address!r}, {state})"
