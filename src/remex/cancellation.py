"""Cooperative cancellation shared by every blocking remex operation."""

from __future__ import annotations

import asyncio
import weakref
from collections.abc import Awaitable
from typing import TypeVar

from remex.errors import CancellationError, DeadlineExceededError

__all__ = ["CancellationToken"]

T = TypeVar("T")


class CancellationToken:
    """Cancellation signal observed by connects, command runs and transfers.

    A token fires once; the error it fired with is raised unchanged by every
    operation that observes it. Child tokens fire together with their parent
    but can also be cancelled on their own, which lets a caller compose an
    outer deadline with the engine's lifecycle.
    """

    def __init__(self, parent: CancellationToken | None = None) -> None:
        self._event = asyncio.Event()
        self._error: CancellationError | None = None
        self._children: weakref.WeakSet[CancellationToken] = weakref.WeakSet()
        self._deadline: asyncio.TimerHandle | None = None
        if parent is not None:
            parent._children.add(self)
            if parent.cancelled:
                self.cancel(parent.error)

    @property
    def cancelled(self) -> bool:
        return self._error is not None

    @property
    def error(self) -> CancellationError | None:
        """Error the token fired with, or None while still live."""
        return self._error

    def cancel(self, error: CancellationError | None = None) -> None:
        """Fire the token and every child. Later calls are ignored."""
        if self._error is not None:
            return
        self._error = error or CancellationError()
        self._event.set()
        if self._deadline is not None:
            self._deadline.cancel()
            self._deadline = None
        for child in list(self._children):
            child.cancel(self._error)

    def cancel_after(self, delay: float) -> None:
        """Fire with DeadlineExceededError after delay seconds.

        Must be called from a running event loop.
        """
        if self._deadline is not None:
            self._deadline.cancel()
        loop = asyncio.get_running_loop()
        self._deadline = loop.call_later(delay, self.cancel, DeadlineExceededError())

    def child(self) -> CancellationToken:
        return CancellationToken(parent=self)

    def raise_if_cancelled(self) -> None:
        """Raise the error the token fired with, if it has fired.

        Every observer receives the same instance, so callers can match it by
        identity. Its traceback is reset on each raise and only describes the
        most recent raise site.
        """
        if self._error is not None:
            raise self._error.with_traceback(None)

    async def wait(self) -> CancellationError:
        """Block until the token fires and return its error."""
        await self._event.wait()
        assert self._error is not None
        return self._error

    async def run(self, awaitable: Awaitable[T]) -> T:
        """Await awaitable unless the token fires first.

        When the token wins, the pending work is cancelled and the token's
        error is raised. When both finish together the completed result wins.
        """
        self.raise_if_cancelled()
        work = asyncio.ensure_future(awaitable)
        waiter = asyncio.ensure_future(self._event.wait())
        try:
            await asyncio.wait({work, waiter}, return_when=asyncio.FIRST_COMPLETED)
        finally:
            waiter.cancel()
            if not work.done():
                work.cancel()
                await asyncio.gather(work, return_exceptions=True)
        if work.cancelled() and self._error is not None:
            raise self._error.with_traceback(None)
        return work.result()
