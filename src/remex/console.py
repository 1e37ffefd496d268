"""Result handler rendering execution events to a terminal."""

from __future__ import annotations

from typing import ClassVar

from rich.console import Console
from rich.text import Text

from remex.models import ExecutionEvent, Stage

__all__ = ["ConsoleResultHandler"]


class ConsoleResultHandler:
    """Result handler printing one colored line per event with Rich.

    Register an instance with ExecutionEngine.register_handler().
    """

    STAGE_COLORS: ClassVar[dict[Stage, str]] = {
        Stage.CONNECTED: "cyan",
        Stage.STARTED: "blue",
        Stage.FINISHED: "green",
    }

    def __init__(self, console: Console | None = None, show_output: bool = True) -> None:
        """Initialize the handler.

        Args:
            console: Rich console to print to, a new stdout console by default
            show_output: Print captured command output below FINISHED lines
        """
        self._console = console or Console()
        self._show_output = show_output

    def __call__(self, event: ExecutionEvent) -> None:
        self._console.print(self.render(event))
        if self._show_output and event.stage is Stage.FINISHED and event.output:
            self._console.print(Text(event.output.rstrip("\n"), style="dim"))

    def render(self, event: ExecutionEvent) -> Text:
        """Render the event header line."""
        color = "bold red" if event.error is not None else self.STAGE_COLORS[event.stage]

        text = Text()
        text.append(f"{event.timestamp.strftime('%H:%M:%S')} ", style="dim")
        text.append(f"[{event.stage.value:9}]", style=color)
        text.append(f" {event.host_id}", style="magenta")
        text.append(f" ({event.remote_address})", style="dim")
        if event.index >= 0:
            text.append(f" #{event.index}", style="blue")
        if event.command:
            text.append(f" {event.command}")
        if event.error is not None:
            text.append(f" error: {event.error}", style="red")
        return text
