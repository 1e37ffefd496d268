"""Shared test fixtures for remex tests."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable, Generator, Iterator, Mapping
from pathlib import Path
from types import SimpleNamespace
from typing import Any, TypeAlias
from unittest.mock import AsyncMock, MagicMock, patch

import asyncssh
import pytest

from remex.cancellation import CancellationToken
from remex.commands import CommandRegistry
from remex.models import HostConfig


@pytest.fixture(scope="session", autouse=True)
def configure_test_logging() -> None:
    """Keep library logs quiet while still showing remex diagnostics."""
    logging.getLogger().setLevel(logging.WARNING)
    logging.getLogger("remex").setLevel(logging.DEBUG)
    logging.getLogger("tests").setLevel(logging.DEBUG)


class FakeProcess:
    """Stand-in for asyncssh.SSHClientProcess used as an async context manager."""

    def __init__(self, exit_status: int = 0, stdout: str = "", hang: bool = False) -> None:
        self.exit_status = exit_status
        self.stdout = stdout
        self.hang = hang
        self.stdin = MagicMock()
        self.killed = False
        self.command = ""
        self.kwargs: dict[str, Any] = {}

    async def __aenter__(self) -> FakeProcess:
        return self

    async def __aexit__(self, *exc: object) -> None:
        return None

    async def wait(self, check: bool = False) -> SimpleNamespace:
        if self.hang:
            await asyncio.Event().wait()
        return SimpleNamespace(exit_status=self.exit_status, stdout=self.stdout)

    def kill(self) -> None:
        self.killed = True


class FakeSFTPFile:
    """Async file object backed by a local file."""

    def __init__(self, path: Path, mode: str) -> None:
        self._handle = path.open(mode)

    async def __aenter__(self) -> FakeSFTPFile:
        return self

    async def __aexit__(self, *exc: object) -> None:
        self._handle.close()

    async def read(self, size: int = -1) -> bytes:
        return self._handle.read(size)

    async def write(self, data: bytes) -> None:
        self._handle.write(data)


class FakeSFTPClient:
    """SFTP client whose remote filesystem is a local directory."""

    def __init__(self, root: Path) -> None:
        self.root = root

    def local(self, remote_path: str) -> Path:
        return self.root / remote_path.lstrip("/")

    def __await__(self) -> Generator[Any, None, FakeSFTPClient]:
        # start_sftp_client() is both awaitable and an async context manager
        return self._started().__await__()

    async def _started(self) -> FakeSFTPClient:
        return self

    async def __aenter__(self) -> FakeSFTPClient:
        return self

    async def __aexit__(self, *exc: object) -> None:
        return None

    async def exists(self, path: str) -> bool:
        return self.local(path).exists()

    async def isdir(self, path: str) -> bool:
        return self.local(path).is_dir()

    async def makedirs(self, path: str, exist_ok: bool = False) -> None:
        self.local(path).mkdir(parents=True, exist_ok=exist_ok)

    def open(self, path: str, mode: str = "r") -> FakeSFTPFile:
        return FakeSFTPFile(self.local(path), mode)

    async def remove(self, path: str) -> None:
        self.local(path).unlink()


def _default_process(command: str) -> FakeProcess:
    """Emulate a handful of shell commands."""
    if command.startswith("echo "):
        return FakeProcess(stdout=command.removeprefix("echo ") + "\n")
    if command.startswith("sleep"):
        return FakeProcess(hang=True)
    if command == "false":
        return FakeProcess(exit_status=1)
    if command.startswith("exit "):
        return FakeProcess(exit_status=int(command.split()[1]))
    return FakeProcess()


ConnectionFactory: TypeAlias = Callable[..., MagicMock]


@pytest.fixture
def remote_root(tmp_path: Path) -> Path:
    """Local directory standing in for the remote filesystem."""
    root = tmp_path / "remote"
    root.mkdir()
    return root


@pytest.fixture
def connection_factory(remote_root: Path) -> ConnectionFactory:
    """Build mock asyncssh connections sharing one fake remote filesystem.

    responses maps a command line to (exit_status, output); other commands
    fall back to a small set of emulated shell commands.
    """

    def factory(responses: Mapping[str, tuple[int, str]] | None = None) -> MagicMock:
        conn = MagicMock()
        conn.processes = []
        conn.sftp = FakeSFTPClient(remote_root)

        def create_process(command: str, **kwargs: Any) -> FakeProcess:
            if responses and command in responses:
                exit_status, output = responses[command]
                process = FakeProcess(exit_status=exit_status, stdout=output)
            else:
                process = _default_process(command)
            process.command = command
            process.kwargs = kwargs
            conn.processes.append(process)
            return process

        conn.create_process = MagicMock(side_effect=create_process)
        conn.start_sftp_client = MagicMock(return_value=conn.sftp)
        conn.close = MagicMock()
        conn.wait_closed = AsyncMock()
        return conn

    return factory


@pytest.fixture
def mock_connection(connection_factory: ConnectionFactory) -> MagicMock:
    """Create a mock asyncssh connection."""
    return connection_factory()


@pytest.fixture
def token() -> CancellationToken:
    """Fresh, live cancellation token."""
    return CancellationToken()


@pytest.fixture
def registry() -> CommandRegistry:
    """Registry holding the built-in commands."""
    return CommandRegistry.with_builtins()


@pytest.fixture
def make_host() -> Callable[..., HostConfig]:
    """Build HostConfig instances with numbered addresses."""
    counter = iter(range(1, 255))

    def factory(host_id: str, **overrides: Any) -> HostConfig:
        values: dict[str, Any] = {
            "id": host_id,
            "address": f"10.0.0.{next(counter)}",
            "username": "deploy",
            "password": "secret",
        }
        values.update(overrides)
        return HostConfig(**values)

    return factory


@pytest.fixture
def ssh_connect(connection_factory: ConnectionFactory) -> Iterator[AsyncMock]:
    """Patch asyncssh.connect with a fake dialer.

    Password "wrong" fails authentication and addresses listed in
    ``failing`` refuse the connection. Every connection handed out is kept
    in ``connections`` keyed by address (latest wins) and in ``history``.
    """
    responses: dict[str, tuple[int, str]] = {}

    async def fake_connect(address: str, **kwargs: Any) -> MagicMock:
        if kwargs.get("password") == "wrong":
            raise asyncssh.PermissionDenied("Permission denied")
        if address in mock.failing:
            raise OSError(f"connection refused by {address}")
        conn = connection_factory(responses)
        mock.connections[address] = conn
        mock.history.append(conn)
        return conn

    with patch("asyncssh.connect", new=AsyncMock(side_effect=fake_connect)) as mock:
        mock.failing = set()
        mock.connections = {}
        mock.history = []
        mock.responses = responses
        yield mock
