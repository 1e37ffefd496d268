"""Result pipeline fanning execution events out to observer callbacks."""

from __future__ import annotations

import threading
from collections.abc import Callable
from typing import TypeAlias

from remex.logging import get_logger
from remex.models import ExecutionEvent

__all__ = ["ResultHandler", "ResultPipeline"]

logger = get_logger(__name__)

ResultHandler: TypeAlias = Callable[[ExecutionEvent], None]


class ResultPipeline:
    """Thread-safe, append-only list of result handlers.

    Handlers run synchronously on the task that publishes the event, so a
    slow handler only stalls the host that produced the event. The lock may
    be shared with the owner so handler registration and session bookkeeping
    are serialized together.
    """

    def __init__(self, lock: threading.RLock | None = None) -> None:
        self._lock = lock if lock is not None else threading.RLock()
        self._handlers: list[ResultHandler] = []

    def register(self, *handlers: ResultHandler) -> None:
        with self._lock:
            self._handlers.extend(handlers)

    def __len__(self) -> int:
        with self._lock:
            return len(self._handlers)

    def publish(self, event: ExecutionEvent) -> None:
        """Deliver event to every handler registered so far, in order.

        A failing handler is logged and does not prevent delivery to the
        remaining handlers.
        """
        with self._lock:
            handlers = list(self._handlers)

        for handler in handlers:
            logger.debug(
                "notifying handler",
                host=event.host_id,
                stage=event.stage.value,
                index=event.index,
            )
            try:
                handler(event)
            except Exception:
                logger.exception("result handler failed", host=event.host_id, stage=event.stage.value)
