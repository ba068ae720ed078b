"""Cooperative cancellation tokens for in-flight network operations.

A token is checked at stage boundaries (``raise_if_cancelled``) and also
wraps the network awaitables themselves (``guard``) so that cancelling the
token aborts the underlying request task instead of merely ignoring its
result.
"""

from __future__ import annotations

import asyncio
import itertools
import logging
from typing import Awaitable, Callable, Optional, Set, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")

_token_ids = itertools.count(1)


class OperationCancelled(Exception):
    """Raised when an operation's cancellation token has been invalidated."""

    def __init__(self, label: str = "operation") -> None:
        super().__init__(f"{label} was cancelled")
        self.label = label


def _consume_result(task: "asyncio.Future[object]") -> None:
    # Abandoned tasks must not log "exception was never retrieved".
    if not task.cancelled():
        task.exception()


class CancellationToken:
    """Handle shared between an operation and whoever may supersede it."""

    def __init__(self, label: str = "operation") -> None:
        self.label = label
        self.token_id = next(_token_ids)
        self._cancelled = False
        self._waiters: Set["asyncio.Future[None]"] = set()

    def __repr__(self) -> str:
        state = "cancelled" if self._cancelled else "active"
        return f"<CancellationToken {self.label}#{self.token_id} {state}>"

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    def cancel(self) -> None:
        """Invalidate the token and wake every guarded await."""

        if self._cancelled:
            return
        self._cancelled = True
        logger.debug("Cancelled %r", self)
        for waiter in list(self._waiters):
            if not waiter.done():
                waiter.set_result(None)

    def raise_if_cancelled(self) -> None:
        if self._cancelled:
            raise OperationCancelled(self.label)

    async def guard(self, awaitable: Awaitable[T]) -> T:
        """Await ``awaitable`` unless the token fires first.

        When the token is cancelled while waiting, the task running the
        awaitable is cancelled as well and ``OperationCancelled`` is raised.
        """

        if self._cancelled:
            if asyncio.iscoroutine(awaitable):
                awaitable.close()
            raise OperationCancelled(self.label)

        loop = asyncio.get_running_loop()
        task = asyncio.ensure_future(awaitable)
        waiter: "asyncio.Future[None]" = loop.create_future()
        self._waiters.add(waiter)
        try:
            await asyncio.wait({task, waiter}, return_when=asyncio.FIRST_COMPLETED)
        finally:
            self._waiters.discard(waiter)
            if not waiter.done():
                waiter.cancel()
            if not task.done():
                task.cancel()
                task.add_done_callback(_consume_result)

        if self._cancelled:
            if task.done():
                _consume_result(task)
            raise OperationCancelled(self.label)
        return task.result()

    async def sleep(
        self,
        seconds: float,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        """Backoff wait that aborts as soon as the token is cancelled."""

        await self.guard(sleep(seconds))


class CancellationScope:
    """Issues tokens for one class of operation; a new token supersedes the old."""

    def __init__(self, label: str) -> None:
        self.label = label
        self._current: Optional[CancellationToken] = None

    @property
    def current(self) -> Optional[CancellationToken]:
        return self._current

    def issue(self) -> CancellationToken:
        self.cancel()
        self._current = CancellationToken(self.label)
        return self._current

    def cancel(self) -> bool:
        """Cancel the active token, returning True when one was in flight."""

        token, self._current = self._current, None
        if token is None or token.cancelled:
            return False
        token.cancel()
        return True

    def is_current(self, token: CancellationToken) -> bool:
        return self._current is token and not token.cancelled

    def release(self, token: CancellationToken) -> None:
        """Forget a token that settled on its own, without cancelling it."""

        if self._current is token:
            self._current = None


__all__ = ["OperationCancelled", "CancellationToken", "CancellationScope"]
