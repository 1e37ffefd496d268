"""In-band command system for remex."""

from __future__ import annotations

from .base import NAMESPACE, Command, CommandFunction, CommandKind, FunctionCommand, ParsedCommand, parse_command
from .builtins import (
    BUILTIN_COMMANDS,
    DownloadCommand,
    MkdirCommand,
    ShellCommand,
    UploadCommand,
    UploadStreamCommand,
)
from .registry import CommandRegistry

__all__ = [
    "BUILTIN_COMMANDS",
    "NAMESPACE",
    "Command",
    "CommandFunction",
    "CommandKind",
    "CommandRegistry",
    "DownloadCommand",
    "FunctionCommand",
    "MkdirCommand",
    "ParsedCommand",
    "ShellCommand",
    "UploadCommand",
    "UploadStreamCommand",
    "parse_command",
]
