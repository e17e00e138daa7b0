"""
Debounce Scheduler

Per-key debounce timers with last-write-wins generation tokens.

Every request for a key takes the next value of that key's monotonic
generation counter. Scheduling a new timer cancels the key's timer that has
not fired yet; a run that already started is left to finish, and its owner
discards the outcome when ``is_current`` reports a newer generation.

All timers run as tasks on the running asyncio event loop; ``schedule`` must
be called from code running inside that loop.
"""

import asyncio
from typing import Awaitable, Callable, Dict, Optional, Set

import structlog
logger = structlog.get_logger("business.scheduler")


DebouncedCallback = Callable[[int], Awaitable[None]]


class DebounceScheduler:
    """
    Debounce timers keyed by field name.

    Example:
        scheduler = DebounceScheduler(delay_ms=300)
        scheduler.schedule('email', run_validation)   # superseded
        scheduler.schedule('email', run_validation)   # only this one fires
        await scheduler.wait_idle()
    """

    def __init__(
        self,
        delay_ms: float = 300,
        on_superseded: Optional[Callable[[str], None]] = None
    ):
        self.delay_ms = delay_ms
        self._on_superseded = on_superseded
        self._generations: Dict[str, int] = {}
        self._timers: Dict[str, asyncio.Task] = {}
        self._tasks: Set[asyncio.Task] = set()

    def next_generation(self, key: str) -> int:
        generation = self._generations.get(key, 0) + 1
        self._generations[key] = generation
        return generation

    def current_generation(self, key: str) -> int:
        return self._generations.get(key, 0)

    def is_current(self, key: str, generation: int) -> bool:
        return self._generations.get(key, 0) == generation

    def is_pending(self, key: str) -> bool:
        """True while a timer for ``key`` is waiting to fire."""
        return key in self._timers

    def schedule(
        self,
        key: str,
        callback: DebouncedCallback,
        delay_ms: Optional[float] = None
    ) -> int:
        """
        Run ``callback(generation)`` after the debounce delay unless superseded.

        Args:
            key: Debounce key, usually the field name
            callback: Coroutine function receiving the generation token
            delay_ms: Override of the scheduler-wide delay

        Returns:
            The generation token assigned to this request
        """
        loop = asyncio.get_running_loop()

        previous = self._timers.pop(key, None)
        if previous is not None and not previous.done():
            previous.cancel()
            logger.debug("Debounced run superseded", key=key)
            if self._on_superseded is not None:
                self._on_superseded(key)

        generation = self.next_generation(key)
        delay = (self.delay_ms if delay_ms is None else delay_ms) / 1000.0

        task = loop.create_task(self._fire(key, generation, delay, callback))
        self._timers[key] = task
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return generation

    async def _fire(self, key: str, generation: int, delay: float, callback: DebouncedCallback) -> None:
        await asyncio.sleep(delay)
        if self._timers.get(key) is asyncio.current_task():
            del self._timers[key]
        await callback(generation)

    def cancel(self, key: str) -> bool:
        """Cancel the pending timer for ``key``; runs already in flight are untouched."""
        task = self._timers.pop(key, None)
        if task is None or task.done():
            return False
        task.cancel()
        return True

    def cancel_all(self) -> None:
        for key in list(self._timers):
            self.cancel(key)

    async def wait_idle(self) -> None:
        """Wait until no timer is pending and no scheduled run is in flight."""
        while True:
            pending = {task for task in self._tasks if not task.done()}
            if not pending:
                return
            await asyncio.wait(pending)

    @property
    def pending_count(self) -> int:
        return len(self._timers)

    async def shutdown(self) -> None:
        """Cancel every timer and every run in flight, then wait for them to finish."""
        self._timers.clear()
        tasks = [task for task in self._tasks if not task.done()]
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)
