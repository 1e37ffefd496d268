"""Registry mapping namespaced command names to handlers."""

from __future__ import annotations

import threading

import asyncssh

from remex.cancellation import CancellationToken
from remex.commands.base import Command, CommandFunction, FunctionCommand, ParsedCommand, parse_command, qualify
from remex.errors import CancellationError, CommandDispatchError, CommandHandlerError, ConfigurationError

__all__ = ["CommandRegistry"]


class CommandRegistry:
    """Owned, lock-guarded table of in-band commands.

    Construct one per engine (usually via with_builtins()) and inject it;
    registering a name that already exists replaces the previous handler.
    """

    def __init__(self) -> None:
        self._commands: dict[str, Command] = {}
        self._lock = threading.Lock()

    @classmethod
    def with_builtins(cls) -> CommandRegistry:
        """Create a registry holding upload, download, mkdir and sh."""
        from remex.commands.builtins import BUILTIN_COMMANDS

        registry = cls()
        for command_class in BUILTIN_COMMANDS:
            registry.register(command_class.name, command_class())
        return registry

    def register(self, name: str, handler: Command | CommandFunction | None) -> str:
        """Register handler under name, adding the namespace prefix if missing.

        Returns:
            The namespaced name the handler was stored under

        Raises:
            ConfigurationError: Empty name or missing handler
        """
        if not name:
            raise ConfigurationError("command name cannot be empty")
        if handler is None:
            raise ConfigurationError("command handler cannot be None")
        if not isinstance(handler, Command):
            if not callable(handler):
                raise ConfigurationError(f"command handler for {name} is not callable")
            handler = FunctionCommand(handler)

        key = qualify(name)
        with self._lock:
            self._commands[key] = handler
        return key

    def get(self, name: str) -> Command | None:
        with self._lock:
            return self._commands.get(name)

    def names(self) -> list[str]:
        with self._lock:
            return list(self._commands)

    def __contains__(self, name: object) -> bool:
        with self._lock:
            return name in self._commands

    def __len__(self) -> int:
        with self._lock:
            return len(self._commands)

    async def dispatch(
        self,
        token: CancellationToken,
        conn: asyncssh.SSHClientConnection,
        command: str | ParsedCommand,
    ) -> str:
        """Resolve and run an in-band command.

        Raises:
            CommandDispatchError: Name is not registered
            CommandHandlerError: Handler failed; wraps the handler's error
            CancellationError: Token fired; passed through unchanged
        """
        parsed = parse_command(command) if isinstance(command, str) else command
        if not parsed.in_band:
            raise CommandDispatchError(parsed.text)

        handler = self.get(parsed.name)
        if handler is None:
            raise CommandDispatchError(parsed.name)

        try:
            return await handler.run(token, conn, parsed.args)
        except CancellationError:
            raise
        except Exception as e:
            raise CommandHandlerError(parsed.name, e) from e
