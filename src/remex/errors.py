"""Exception hierarchy for remex."""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass

__all__ = [
    "CancellationError",
    "CloseError",
    "CommandDispatchError",
    "CommandFailedError",
    "CommandHandlerError",
    "ConfigIssue",
    "ConfigurationError",
    "DeadlineExceededError",
    "HostConnectionError",
    "LocalExecutionError",
    "NoConnectionsError",
    "NotConnectedError",
    "RemexError",
    "RemoteExecutionError",
    "TransferError",
]


class RemexError(Exception):
    """Base class for every error raised by remex."""


@dataclass(frozen=True)
class ConfigIssue:
    """Single problem found while validating configuration."""

    path: str  # Dotted path to the offending value, "root" for the document
    message: str


class ConfigurationError(RemexError):
    """Invalid configuration, handler registration or command arguments."""

    def __init__(self, message: str, issues: Sequence[ConfigIssue] = ()) -> None:
        self.issues = list(issues)
        if self.issues:
            details = "\n".join(f"  - {i.path}: {i.message}" for i in self.issues)
            message = f"{message}:\n{details}"
        super().__init__(message)


class HostConnectionError(RemexError):
    """Dialing or authenticating a single host failed."""

    def __init__(self, host_id: str, remote_address: str, cause: BaseException) -> None:
        self.host_id = host_id
        self.remote_address = remote_address
        self.cause = cause
        super().__init__(f"failed to connect to {host_id} ({remote_address}): {cause}")


class NoConnectionsError(RemexError):
    """Every configured host failed to connect."""

    def __init__(self, errors: Sequence[HostConnectionError]) -> None:
        self.errors = list(errors)
        if self.errors:
            joined = "; ".join(str(e) for e in self.errors)
            super().__init__(f"no successful connections: {joined}")
        else:
            super().__init__("no successful connections: no hosts configured")


class NotConnectedError(RemexError):
    """Operation attempted on a session without a live connection."""


class CommandDispatchError(RemexError):
    """In-band command name is not registered."""

    def __init__(self, name: str) -> None:
        self.name = name
        super().__init__(f"unknown remex command: {name}")


class CommandHandlerError(RemexError):
    """An in-band command handler failed."""

    def __init__(self, name: str, cause: BaseException) -> None:
        self.name = name
        self.cause = cause
        super().__init__(f"remex command '{name}' failed: {cause}")


class _ProcessError(RemexError):
    """Process finished unsuccessfully; partial output is kept on the error."""

    def __init__(self, command: str, exit_status: int | None, output: str = "", reason: str | None = None) -> None:
        self.command = command
        self.exit_status = exit_status
        self.output = output
        if reason is None:
            reason = f"exited with status {exit_status}"
        super().__init__(f"command execution failed: {command!r} {reason}")


class RemoteExecutionError(_ProcessError):
    """Remote shell command could not run or exited non-zero."""


class LocalExecutionError(_ProcessError):
    """Local script exited non-zero."""


class TransferError(RemexError):
    """File transfer failed (stat, open or I/O)."""


class CommandFailedError(RemexError):
    """A command failed on a host, which stopped that host's command list."""

    def __init__(self, host_id: str, index: int, command: str, cause: BaseException) -> None:
        self.host_id = host_id
        self.index = index
        self.command = command
        self.cause = cause
        super().__init__(f"failed to execute command #{index} on {host_id}: {command}: {cause}")


class CloseError(RemexError):
    """One or more sessions failed to close cleanly."""

    def __init__(self, errors: Sequence[BaseException]) -> None:
        self.errors = list(errors)
        super().__init__("errors closing sessions: " + "; ".join(str(e) for e in self.errors))


class CancellationError(RemexError):
    """Governing cancellation token fired."""

    def __init__(self, reason: str = "operation cancelled") -> None:
        self.reason = reason
        super().__init__(reason)


class DeadlineExceededError(CancellationError):
    """Governing cancellation token fired because its deadline passed."""

    def __init__(self, reason: str = "deadline exceeded") -> None:
        super().__init__(reason)
