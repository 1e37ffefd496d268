"""remex: concurrent command execution and file transfer across a fleet of SSH hosts."""

from __future__ import annotations

from importlib.metadata import PackageNotFoundError, version

from remex.cancellation import CancellationToken
from remex.commands import Command, CommandKind, CommandRegistry, UploadStreamCommand, parse_command
from remex.config import Configuration
from remex.connection import RemoteSession
from remex.console import ConsoleResultHandler
from remex.engine import ExecutionEngine
from remex.errors import (
    CancellationError,
    CloseError,
    CommandDispatchError,
    CommandFailedError,
    CommandHandlerError,
    ConfigurationError,
    DeadlineExceededError,
    HostConnectionError,
    LocalExecutionError,
    NoConnectionsError,
    NotConnectedError,
    RemexError,
    RemoteExecutionError,
    TransferError,
)
from remex.events import ResultHandler, ResultPipeline
from remex.logging import configure_logging, get_logger
from remex.models import ExecutionEvent, ExecutionReport, HostConfig, HostOutcome, Stage
from remex.transfer import copy_stream, download_file, make_remote_dirs, upload_file, upload_stream

try:
    __version__ = version("remex")
except PackageNotFoundError:
    __version__ = "0.0.0.dev0"

__all__ = [
    "CancellationError",
    "CancellationToken",
    "CloseError",
    "Command",
    "CommandDispatchError",
    "CommandFailedError",
    "CommandHandlerError",
    "CommandKind",
    "CommandRegistry",
    "Configuration",
    "ConfigurationError",
    "ConsoleResultHandler",
    "DeadlineExceededError",
    "ExecutionEngine",
    "ExecutionEvent",
    "ExecutionReport",
    "HostConfig",
    "HostConnectionError",
    "HostOutcome",
    "LocalExecutionError",
    "NoConnectionsError",
    "NotConnectedError",
    "RemexError",
    "RemoteExecutionError",
    "RemoteSession",
    "ResultHandler",
    "ResultPipeline",
    "Stage",
    "TransferError",
    "UploadStreamCommand",
    "__version__",
    "configure_logging",
    "copy_stream",
    "download_file",
    "get_logger",
    "make_remote_dirs",
    "parse_command",
    "upload_file",
    "upload_stream",
]
