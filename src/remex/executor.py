"""Command execution for local and remote machines."""

from __future__ import annotations

import asyncio
import os
from collections.abc import Mapping

import asyncssh

from remex.cancellation import CancellationToken
from remex.errors import CancellationError, LocalExecutionError, RemoteExecutionError
from remex.logging import get_logger

__all__ = [
    "ELEVATION_VERB",
    "SESSION_ENV_VAR",
    "LocalExecutor",
    "RemoteExecutor",
]

logger = get_logger(__name__)

# Environment variable carrying the session id into every remote command
SESSION_ENV_VAR = "REMEX_NAME"
ELEVATION_VERB = "sudo"


class RemoteExecutor:
    """Runs literal shell command lines on a remote host via SSH.

    Each call opens its own channel. stdout and stderr are merged into a
    single buffer, matching what a user would see in a terminal.
    """

    def __init__(
        self,
        conn: asyncssh.SSHClientConnection,
        env: Mapping[str, str] | None = None,
        sudo_password: str | None = None,
    ) -> None:
        """Initialize executor for one connection.

        Args:
            conn: Authenticated SSH connection
            env: Environment variables requested for every command
            sudo_password: When set, written to stdin of commands starting
                with sudo. Nothing checks that a password prompt actually
                appeared, so a command that reads stdin for other purposes
                will consume the password instead.
        """
        self._conn = conn
        self._env = dict(env or {})
        self._sudo_password = sudo_password

    def _needs_password(self, command: str) -> bool:
        if self._sudo_password is None:
            return False
        words = command.split(maxsplit=1)
        return bool(words) and words[0] == ELEVATION_VERB

    async def run(self, token: CancellationToken, command: str) -> str:
        """Run command and return its combined output.

        Raises:
            CancellationError: Token fired before completion; the remote
                process is sent KILL and any buffered output is dropped
            RemoteExecutionError: Channel could not be opened or the command
                exited non-zero; partial output is attached
        """
        token.raise_if_cancelled()
        try:
            async with self._conn.create_process(
                command,
                env=self._env,
                stderr=asyncssh.STDOUT,
                encoding="utf-8",
                errors="replace",
            ) as process:
                if self._needs_password(command):
                    process.stdin.write(f"{self._sudo_password}\n")
                process.stdin.write_eof()

                try:
                    completed = await token.run(process.wait(check=False))
                except CancellationError:
                    logger.info("killing remote process", command=command)
                    process.kill()
                    raise
        except (OSError, asyncssh.Error) as e:
            raise RemoteExecutionError(command, None, reason=f"failed to create session: {e}") from e

        output = completed.stdout or ""
        if completed.exit_status != 0:
            raise RemoteExecutionError(command, completed.exit_status, output)
        return output


class LocalExecutor:
    """Runs shell scripts on the local machine via async subprocess."""

    def __init__(self, env: Mapping[str, str] | None = None) -> None:
        self._env = env

    async def run(self, token: CancellationToken, script: str) -> str:
        """Run script with the ambient environment and return combined output.

        Raises:
            CancellationError: Token fired; the local process is killed
            LocalExecutionError: Script exited non-zero; output is attached
        """
        token.raise_if_cancelled()
        env = dict(os.environ if self._env is None else self._env)
        proc = await asyncio.create_subprocess_shell(
            script,
            stdin=asyncio.subprocess.DEVNULL,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.STDOUT,
            env=env,
        )
        try:
            stdout, _ = await token.run(proc.communicate())
        except CancellationError:
            if proc.returncode is None:
                proc.kill()
            await proc.wait()
            raise

        output = stdout.decode(errors="replace") if stdout else ""
        if proc.returncode != 0:
            raise LocalExecutionError(script, proc.returncode, output)
        return output
