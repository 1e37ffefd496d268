"""Base classes and parsing for in-band remex commands."""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Awaitable, Callable, Sequence
from dataclasses import dataclass
from enum import StrEnum
from typing import ClassVar, TypeAlias

import asyncssh

from remex.cancellation import CancellationToken
from remex.errors import ConfigurationError

__all__ = [
    "NAMESPACE",
    "Command",
    "CommandFunction",
    "CommandKind",
    "FunctionCommand",
    "ParsedCommand",
    "parse_command",
    "qualify",
]

NAMESPACE = "remex."

CommandFunction: TypeAlias = Callable[[CancellationToken, asyncssh.SSHClientConnection, Sequence[str]], Awaitable[str]]


def qualify(name: str) -> str:
    """Return name with the in-band namespace prefix."""
    return name if name.startswith(NAMESPACE) else NAMESPACE + name


class Command(ABC):
    """In-band command intercepted by the engine instead of reaching the remote shell.

    Commands receive the session's SSH connection, so they can open their
    own SFTP or exec channels, and must observe the cancellation token in
    every blocking step.
    """

    name: ClassVar[str] = ""
    usage: ClassVar[str] = ""

    @abstractmethod
    async def run(
        self,
        token: CancellationToken,
        conn: asyncssh.SSHClientConnection,
        args: Sequence[str],
    ) -> str:
        """Execute the command and return its output.

        Raises:
            CancellationError: Token fired; must be raised unchanged
            Exception: Any other failure, wrapped by the registry with the command name
        """
        ...

    def _require_args(self, args: Sequence[str], count: int) -> list[str]:
        """Check argument count and strip each argument."""
        if len(args) != count:
            raise ConfigurationError(f"{self.name} requires exactly {count} argument(s): {self.usage}")
        values = [arg.strip() for arg in args]
        if not all(values):
            raise ConfigurationError(f"{self.name} arguments cannot be empty: {self.usage}")
        return values


class FunctionCommand(Command):
    """Adapts a plain async function to the Command interface."""

    def __init__(self, func: CommandFunction) -> None:
        self._func = func

    async def run(
        self,
        token: CancellationToken,
        conn: asyncssh.SSHClientConnection,
        args: Sequence[str],
    ) -> str:
        return await self._func(token, conn, args)

    def __repr__(self) -> str:
        return f"FunctionCommand({self._func!r})"


class CommandKind(StrEnum):
    """Closed set of command shapes recognised in command text.

    EXTENSION is any namespaced name that is not a built-in; it resolves
    through the registry like the built-ins do.
    """

    REMOTE = "remote"
    UPLOAD = "upload"
    DOWNLOAD = "download"
    MKDIR = "mkdir"
    SHELL = "sh"
    EXTENSION = "extension"


_BUILTIN_KINDS = {
    NAMESPACE + "upload": CommandKind.UPLOAD,
    NAMESPACE + "download": CommandKind.DOWNLOAD,
    NAMESPACE + "mkdir": CommandKind.MKDIR,
    NAMESPACE + "sh": CommandKind.SHELL,
}


@dataclass(frozen=True)
class ParsedCommand:
    """Command text classified once into a CommandKind."""

    kind: CommandKind
    text: str
    name: str = ""  # Namespaced command name, empty for REMOTE
    args: tuple[str, ...] = ()

    @property
    def in_band(self) -> bool:
        return self.kind is not CommandKind.REMOTE


def parse_command(text: str) -> ParsedCommand:
    """Classify command text.

    Text starting with the namespace is split on whitespace into name and
    arguments; quoting is not supported. Anything else is a literal remote
    shell command line.
    """
    if not text.startswith(NAMESPACE):
        return ParsedCommand(kind=CommandKind.REMOTE, text=text)

    name, *args = text.split()
    return ParsedCommand(
        kind=_BUILTIN_KINDS.get(name, CommandKind.EXTENSION),
        text=text,
        name=name,
        args=tuple(args),
    )
