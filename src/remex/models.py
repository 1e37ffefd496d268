"""Core types and dataclasses for remex."""

from __future__ import annotations

from collections.abc import Iterator
from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import StrEnum
from typing import Any

from remex.errors import ConfigurationError

__all__ = [
    "DEFAULT_SSH_PORT",
    "ExecutionEvent",
    "ExecutionReport",
    "HostConfig",
    "HostOutcome",
    "Stage",
]

DEFAULT_SSH_PORT = 22


@dataclass(frozen=True)
class HostConfig:
    """Static description of one remote endpoint plus its credentials."""

    id: str
    address: str
    username: str
    password: str = field(default="", repr=False)
    port: int = DEFAULT_SSH_PORT
    auto_sudo_password: bool = False  # Write password to stdin of "sudo ..." commands
    commands: tuple[str, ...] = ()  # Used when execute() is called without a command list
    known_hosts: str | None = None  # None disables host key verification

    def __post_init__(self) -> None:
        if not self.id:
            raise ConfigurationError("host id cannot be empty")
        if not self.address:
            raise ConfigurationError(f"host {self.id}: address cannot be empty")
        if not 0 < self.port < 65536:
            raise ConfigurationError(f"host {self.id}: invalid port {self.port}")
        # Accept any iterable of commands but store an immutable tuple
        object.__setattr__(self, "commands", tuple(self.commands))

    @property
    def remote_address(self) -> str:
        """Address rendered as host:port, bracketing IPv6 literals."""
        if ":" in self.address:
            return f"[{self.address}]:{self.port}"
        return f"{self.address}:{self.port}"


class Stage(StrEnum):
    """Lifecycle stage reported by an ExecutionEvent."""

    CONNECTED = "connected"
    STARTED = "started"
    FINISHED = "finished"


@dataclass(frozen=True)
class ExecutionEvent:
    """Timestamped record of one lifecycle stage of one command on one host."""

    host_id: str
    remote_address: str
    stage: Stage
    command: str = ""
    index: int = -1  # Position in the host's command list, -1 for connection events
    output: str = ""
    error: BaseException | None = None
    timestamp: datetime = field(default_factory=lambda: datetime.now(UTC))

    @property
    def succeeded(self) -> bool:
        return self.error is None

    def to_dict(self) -> dict[str, Any]:
        """Convert to dict for JSON serialization."""
        return {
            "timestamp": self.timestamp.isoformat(),
            "host_id": self.host_id,
            "remote_address": self.remote_address,
            "stage": self.stage.value,
            "index": self.index,
            "command": self.command,
            "output": self.output,
            "error": str(self.error) if self.error is not None else None,
        }

    def __str__(self) -> str:
        parts = [
            self.timestamp.strftime("%Y-%m-%d %H:%M:%S"),
            f"host={self.host_id}",
            f"remote={self.remote_address}",
            f"stage={self.stage.value}",
        ]
        if self.index >= 0:
            parts.append(f"index={self.index}")
        if self.command:
            parts.append(f"command={self.command!r}")
        if self.error is not None:
            parts.append(f"error={self.error}")
        if self.output:
            parts.append(f"output={self.output!r}")
        return " ".join(parts)


@dataclass(frozen=True)
class HostOutcome:
    """Result of running one host's command list."""

    host_id: str
    remote_address: str
    completed: int  # Number of commands that finished successfully
    error: BaseException | None = None

    @property
    def success(self) -> bool:
        return self.error is None


@dataclass(frozen=True)
class ExecutionReport:
    """Per-host outcomes of one execute() call, in completion order."""

    outcomes: tuple[HostOutcome, ...] = ()

    def __iter__(self) -> Iterator[HostOutcome]:
        return iter(self.outcomes)

    def __len__(self) -> int:
        return len(self.outcomes)

    def get(self, host_id: str) -> HostOutcome | None:
        for outcome in self.outcomes:
            if outcome.host_id == host_id:
                return outcome
        return None

    @property
    def success(self) -> bool:
        return all(o.success for o in self.outcomes)

    @property
    def succeeded(self) -> list[HostOutcome]:
        return [o for o in self.outcomes if o.success]

    @property
    def failed(self) -> list[HostOutcome]:
        return [o for o in self.outcomes if not o.success]

    @property
    def first_error(self) -> BaseException | None:
        """Error of the first host to fail, in completion order."""
        for outcome in self.outcomes:
            if outcome.error is not None:
                return outcome.error
        return None

    def raise_for_error(self) -> None:
        """Raise the first observed host failure, if any."""
        error = self.first_error
        if error is not None:
            raise error
