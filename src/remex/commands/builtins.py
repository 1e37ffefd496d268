"""Built-in in-band commands: upload, download, mkdir and local sh."""

from __future__ import annotations

from collections.abc import Sequence
from typing import ClassVar

import asyncssh

from remex.cancellation import CancellationToken
from remex.commands.base import Command
from remex.errors import ConfigurationError
from remex.executor import LocalExecutor
from remex.transfer import ByteSource, download_file, make_remote_dirs, upload_file, upload_stream

__all__ = [
    "BUILTIN_COMMANDS",
    "DownloadCommand",
    "MkdirCommand",
    "ShellCommand",
    "UploadCommand",
    "UploadStreamCommand",
]


class UploadCommand(Command):
    """Copy a local regular file to the remote host."""

    name: ClassVar[str] = "remex.upload"
    usage: ClassVar[str] = "local_path remote_path"

    async def run(
        self,
        token: CancellationToken,
        conn: asyncssh.SSHClientConnection,
        args: Sequence[str],
    ) -> str:
        local_path, remote_path = self._require_args(args, 2)
        copied = await upload_file(token, conn, local_path, remote_path)
        return f"Upload completed: {copied} bytes transferred from {local_path} to {remote_path}"


class DownloadCommand(Command):
    """Copy a remote regular file to the local machine."""

    name: ClassVar[str] = "remex.download"
    usage: ClassVar[str] = "remote_path local_path"

    async def run(
        self,
        token: CancellationToken,
        conn: asyncssh.SSHClientConnection,
        args: Sequence[str],
    ) -> str:
        remote_path, local_path = self._require_args(args, 2)
        copied = await download_file(token, conn, remote_path, local_path)
        return f"Download completed: {copied} bytes transferred from {remote_path} to {local_path}"


class MkdirCommand(Command):
    """Create a remote directory and its parents."""

    name: ClassVar[str] = "remex.mkdir"
    usage: ClassVar[str] = "directory_path"

    async def run(
        self,
        token: CancellationToken,
        conn: asyncssh.SSHClientConnection,
        args: Sequence[str],
    ) -> str:
        (path,) = self._require_args(args, 1)
        await make_remote_dirs(token, conn, path)
        return f"Directory created successfully: {path}"


class ShellCommand(Command):
    """Run the remaining words as a script on the local machine, not the remote host."""

    name: ClassVar[str] = "remex.sh"
    usage: ClassVar[str] = "script words..."

    def __init__(self, executor: LocalExecutor | None = None) -> None:
        self._executor = executor or LocalExecutor()

    async def run(
        self,
        token: CancellationToken,
        conn: asyncssh.SSHClientConnection,
        args: Sequence[str],
    ) -> str:
        if not args:
            raise ConfigurationError(f"{self.name} requires at least one argument: {self.usage}")
        return await self._executor.run(token, " ".join(args))


class UploadStreamCommand(Command):
    """Upload an in-memory byte source to a fixed remote path.

    Register an instance under a name of your choosing; any arguments given
    in the command text are ignored. The source is consumed by the first
    run, so an instance is only meaningful for a single host.
    """

    name: ClassVar[str] = "remex.upload_stream"

    def __init__(self, source: ByteSource, remote_path: str) -> None:
        self._source = source
        self._remote_path = remote_path

    async def run(
        self,
        token: CancellationToken,
        conn: asyncssh.SSHClientConnection,
        args: Sequence[str],
    ) -> str:
        copied = await upload_stream(token, conn, self._source, self._remote_path)
        return f"Upload completed: {copied} bytes to {self._remote_path}"


BUILTIN_COMMANDS: tuple[type[Command], ...] = (
    UploadCommand,
    DownloadCommand,
    MkdirCommand,
    ShellCommand,
)
