"""Viewport-driven attraction loading with debouncing, retries and cancellation."""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Awaitable, Callable, List, Mapping, Optional, Protocol, Set

from audioguide.config.settings import LoaderConfig, settings
from audioguide.domain.models import Attraction, Bounds

from .cancellation import CancellationScope, CancellationToken, OperationCancelled
from .errors import RateLimitedError
from .overpass import transform_attractions

logger = logging.getLogger(__name__)

Sleep = Callable[[float], Awaitable[None]]


class AttractionSearch(Protocol):
    async def search_attractions(
        self, bounds: Bounds, token: CancellationToken | None = None
    ) -> List[Mapping[str, Any]]:
        ...


class AttractionLoader:
    """Fetch and transform attractions for a viewport.

    Every ``load`` supersedes the previous one: its token is cancelled, the
    underlying request is aborted and none of its callbacks fire.
    """

    def __init__(
        self,
        search: AttractionSearch,
        *,
        config: LoaderConfig | None = None,
        sleep: Sleep = asyncio.sleep,
    ) -> None:
        config = config or settings.loader
        self._search = search
        self._max_retries = config.max_retries
        self._backoff_base = config.backoff_base_seconds
        self._sleep = sleep
        self._scope = CancellationScope("attraction-load")

    def backoff_delay(self, attempt: int) -> float:
        return self._backoff_base * (2 ** attempt)

    async def load(
        self,
        bounds: Bounds,
        on_start: Optional[Callable[[], Any]] = None,
        on_loaded: Optional[Callable[[List[Attraction]], Any]] = None,
        on_error: Optional[Callable[[Exception], Any]] = None,
    ) -> None:
        token = self._scope.issue()
        if on_start is not None:
            on_start()

        try:
            elements = await self._fetch_with_retry(bounds, token)
        except OperationCancelled:
            logger.debug("Attraction load superseded for %s", bounds)
            return
        except Exception as exc:
            if token.cancelled:
                return
            self._scope.release(token)
            logger.warning("Attraction load failed for %s: %s", bounds, exc)
            if on_error is not None:
                on_error(exc)
            return

        if token.cancelled:
            return
        self._scope.release(token)
        attractions = transform_attractions(elements)
        logger.info("Loaded %d attractions for %s", len(attractions), bounds)
        if on_loaded is not None:
            on_loaded(attractions)

    def cancel(self) -> bool:
        """Cancel the in-flight load, if any."""

        return self._scope.cancel()

    async def _fetch_with_retry(
        self, bounds: Bounds, token: CancellationToken
    ) -> List[Mapping[str, Any]]:
        attempt = 0
        while True:
            token.raise_if_cancelled()
            try:
                return await self._search.search_attractions(bounds, token)
            except RateLimitedError:
                if attempt >= self._max_retries:
                    raise
                delay = self.backoff_delay(attempt)
                logger.info(
                    "Overpass rate limited; retry %d/%d in %.1fs",
                    attempt + 1,
                    self._max_retries,
                    delay,
                )
                await token.sleep(delay, self._sleep)
                attempt += 1


class Debouncer:
    """Collapse calls made within ``wait`` seconds into one, using the last arguments."""

    def __init__(self, func: Callable[..., Awaitable[Any]], wait: float) -> None:
        self._func = func
        self._wait = wait
        self._handle: Optional[asyncio.TimerHandle] = None
        self._tasks: Set["asyncio.Task[Any]"] = set()

    @property
    def pending(self) -> bool:
        return self._handle is not None

    def __call__(self, *args: Any, **kwargs: Any) -> None:
        if self._handle is not None:
            self._handle.cancel()
        loop = asyncio.get_running_loop()
        self._handle = loop.call_later(self._wait, self._fire, args, kwargs)

    def cancel(self) -> None:
        if self._handle is not None:
            self._handle.cancel()
            self._handle = None

    async def drain(self) -> None:
        """Wait for calls that have already fired to finish."""

        if self._tasks:
            await asyncio.gather(*tuple(self._tasks), return_exceptions=True)

    def _fire(self, args: tuple, kwargs: dict) -> None:
        self._handle = None
        task = asyncio.ensure_future(self._func(*args, **kwargs))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)


__all__ = ["AttractionSearch", "AttractionLoader", "Debouncer"]
