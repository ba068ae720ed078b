"""One-shot playback warm-up required by restrictive mobile runtimes."""

from __future__ import annotations

import asyncio
import logging
from typing import Awaitable, Callable, Optional, Set

logger = logging.getLogger(__name__)


class AudioUnlockGate:
    """Run ``warm_up`` at most once per process and remember the outcome.

    The gate is marked done whether the warm-up succeeds or fails; playback
    is still attempted later and may fail on its own.
    """

    def __init__(self, warm_up: Callable[[], Awaitable[object]]) -> None:
        self._warm_up = warm_up
        self._attempt: Optional["asyncio.Future[bool]"] = None
        self._outcome: Optional[bool] = None
        self._pending: Set["asyncio.Future[bool]"] = set()

    @property
    def done(self) -> bool:
        return self._outcome is not None

    @property
    def outcome(self) -> Optional[bool]:
        return self._outcome

    async def unlock(self) -> bool:
        if self._outcome is not None:
            logger.debug("Audio already unlocked")
            return self._outcome
        if self._attempt is None or self._attempt.cancelled():
            self._attempt = asyncio.ensure_future(self._run())
        return await asyncio.shield(self._attempt)

    def trigger(self) -> None:
        """Start the unlock without waiting for it."""

        if self._outcome is not None or (self._attempt is not None and not self._attempt.done()):
            return
        task = asyncio.ensure_future(self.unlock())
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)

    async def _run(self) -> bool:
        logger.info("Attempting audio unlock...")
        try:
            await self._warm_up()
        except Exception as exc:
            logger.error("Audio unlock failed: %s", exc)
            self._outcome = False
        else:
            logger.info("Audio unlock succeeded")
            self._outcome = True
        return self._outcome


__all__ = ["AudioUnlockGate"]
