"""
Keyed throttle with single-flight semantics.

Work submitted under a key runs at most once per interval. Callers arriving
while the work is in flight wait for its outcome; callers arriving after it
settled (and before the interval elapsed) get the cached outcome, which may
be an error.
"""
import asyncio
import logging
import time
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Hashable, Optional, TypeVar

from .config import idle_threshold

logger = logging.getLogger("cache_lookup.throttle")

T = TypeVar("T")

DEFAULT_GC_INTERVAL_SECONDS = 30.0


@dataclass
class ThrottleOutcome:
    """Settled result of one unit of work"""

    value: Any = None
    error: Optional[BaseException] = None

    def unwrap(self) -> Any:
        if self.error is not None:
            raise self.error
        return self.value


@dataclass
class ThrottleTask:
    """Bookkeeping for one throttle key"""

    interval: float
    background: bool = False
    last_active: Optional[float] = None
    outcome: Optional[ThrottleOutcome] = None
    waiters: set[asyncio.Future] = field(default_factory=set)
    in_flight: bool = False

    def is_due(self, now: float) -> bool:
        return self.last_active is None or now - self.last_active >= self.interval


class ThrottleCoordinator:
    """
    Registry of throttle tasks.

    Example:
        coordinator = ThrottleCoordinator()

        # Concurrent calls within 10 seconds share one execution
        records = await coordinator.run(
            ("lookup", "example.com"),
            10.0,
            lambda: query("example.com"),
        )
    """

    def __init__(
        self,
        gc_interval_seconds: float = DEFAULT_GC_INTERVAL_SECONDS,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._gc_interval = gc_interval_seconds
        self._clock = clock
        self._tasks: dict[Hashable, ThrottleTask] = {}
        self._background: set[asyncio.Task] = set()
        self._gc_task: Optional[asyncio.Task] = None
        self._last_sweep: Optional[float] = None

    async def run(
        self,
        key: Hashable,
        interval: float,
        work: Callable[[], Awaitable[T]],
        *,
        background: bool = False,
    ) -> T:
        """
        Run `work` under `key` at most once per `interval` seconds.

        `interval` and `background` are taken from the first call for a key;
        later calls for the same key reuse the existing task as is.

        With `background`, a due task whose previous outcome is known serves
        that outcome immediately and refreshes it in a background task.
        """
        now = self._clock()
        if self._gc_task is None:
            self._sweep_if_due(now)

        task = self._get_or_create(key, interval, background)

        if task.is_due(now):
            task.last_active = now

            if task.background and task.outcome is not None:
                logger.debug(f"run: {key!r} refreshing in background")
                self._refresh_in_background(key, task, work)
                return task.outcome.unwrap()

            logger.debug(f"run: {key!r} leading")
            return await self._lead(key, task, work)

        if task.outcome is not None:
            logger.debug(f"run: {key!r} served from cached outcome")
            return task.outcome.unwrap()

        logger.debug(f"run: {key!r} waiting on in-flight work")
        waiter = asyncio.get_running_loop().create_future()
        task.waiters.add(waiter)
        waiter.add_done_callback(task.waiters.discard)
        return await waiter

    def _get_or_create(
        self,
        key: Hashable,
        interval: float,
        background: bool,
    ) -> ThrottleTask:
        task = self._tasks.get(key)
        if task is None:
            if interval <= 0:
                raise ValueError("The throttle interval must be greater than 0")
            task = ThrottleTask(interval=interval, background=background)
            self._tasks[key] = task
        elif task.interval != interval or task.background != background:
            logger.debug(
                f"_get_or_create: {key!r} keeps interval={task.interval}, "
                f"background={task.background}; "
                f"ignoring interval={interval}, background={background}"
            )
        return task

    async def _lead(
        self,
        key: Hashable,
        task: ThrottleTask,
        work: Callable[[], Awaitable[T]],
    ) -> T:
        outcome = await self._execute(key, task, work, promote=True)
        return outcome.unwrap()

    async def _execute(
        self,
        key: Hashable,
        task: ThrottleTask,
        work: Callable[[], Awaitable[Any]],
        *,
        promote: bool,
    ) -> ThrottleOutcome:
        task.outcome = None
        task.in_flight = True

        try:
            value = await work()
            outcome = ThrottleOutcome(value=value)
        except asyncio.CancelledError:
            task.in_flight = False
            task.last_active = None
            if promote and task.waiters:
                self._promote(key, task, work)
            raise
        except Exception as error:
            outcome = ThrottleOutcome(error=error)

        task.in_flight = False
        task.outcome = outcome

        # Waiters settle on the next loop turn, after the leader resumed.
        asyncio.get_running_loop().call_soon(self._drain, key, task, outcome)
        return outcome

    def _promote(
        self,
        key: Hashable,
        task: ThrottleTask,
        work: Callable[[], Awaitable[Any]],
    ) -> None:
        """Re-run the work of a cancelled leader on behalf of its waiters"""
        logger.debug(f"_promote: {key!r} leader cancelled, re-running for {len(task.waiters)} waiter(s)")
        task.last_active = self._clock()

        def settle(runner: asyncio.Task) -> None:
            self._background.discard(runner)
            if runner.cancelled():
                task.in_flight = False
                task.last_active = None
                self._cancel_waiters(key, task)

        runner = asyncio.get_running_loop().create_task(
            self._execute(key, task, work, promote=False)
        )
        self._background.add(runner)
        runner.add_done_callback(settle)

    def _cancel_waiters(self, key: Hashable, task: ThrottleTask) -> None:
        waiters = list(task.waiters)
        task.waiters.clear()
        if waiters:
            logger.debug(f"_cancel_waiters: {key!r} cancelling {len(waiters)} waiter(s)")
        for waiter in waiters:
            if not waiter.done():
                waiter.cancel()

    def _drain(self, key: Hashable, task: ThrottleTask, outcome: ThrottleOutcome) -> None:
        if not task.waiters:
            return

        waiters = list(task.waiters)
        task.waiters.clear()
        logger.debug(f"_drain: {key!r} settling {len(waiters)} waiter(s)")

        for waiter in waiters:
            if waiter.done():
                continue
            if outcome.error is not None:
                waiter.set_exception(outcome.error)
            else:
                waiter.set_result(outcome.value)

    def _refresh_in_background(
        self,
        key: Hashable,
        task: ThrottleTask,
        work: Callable[[], Awaitable[Any]],
    ) -> None:
        async def refresh() -> None:
            try:
                task.outcome = ThrottleOutcome(value=await work())
            except asyncio.CancelledError:
                raise
            except Exception as error:
                logger.debug(f"_refresh_in_background: {key!r} failed: {error!r}")
                task.outcome = ThrottleOutcome(error=error)

        refresher = asyncio.get_running_loop().create_task(refresh())
        self._background.add(refresher)
        refresher.add_done_callback(self._background.discard)

    def sweep(self, now: Optional[float] = None) -> int:
        """Drop idle tasks. Returns the number of tasks removed."""
        if now is None:
            now = self._clock()

        idle_keys = [
            key
            for key, task in self._tasks.items()
            if not task.in_flight
            and not task.waiters
            and task.last_active is not None
            and now - task.last_active > idle_threshold(task.interval, self._gc_interval)
        ]
        for key in idle_keys:
            del self._tasks[key]

        if idle_keys:
            logger.debug(f"sweep: removed {len(idle_keys)} idle task(s)")
        return len(idle_keys)

    def _sweep_if_due(self, now: float) -> None:
        """Sweep from the call path when no sweep loop is running"""
        if self._last_sweep is None:
            self._last_sweep = now
        elif now - self._last_sweep >= self._gc_interval:
            self._last_sweep = now
            self.sweep(now)

    async def _gc_loop(self) -> None:
        while True:
            await asyncio.sleep(self._gc_interval)
            self.sweep()

    def start(self) -> None:
        """Start the periodic idle-task sweep"""
        if self._gc_task is None:
            self._gc_task = asyncio.get_running_loop().create_task(self._gc_loop())

    async def stop(self) -> None:
        """Stop the sweep and cancel background refreshes"""
        tasks = list(self._background)
        if self._gc_task is not None:
            tasks.append(self._gc_task)
            self._gc_task = None

        for task in tasks:
            task.cancel()
        for task in tasks:
            try:
                await task
            except asyncio.CancelledError:
                pass
        self._background.clear()

    def has(self, key: Hashable) -> bool:
        return key in self._tasks

    def get_task(self, key: Hashable) -> Optional[ThrottleTask]:
        return self._tasks.get(key)

    def size(self) -> int:
        return len(self._tasks)

    def get_stats(self) -> dict:
        """Get statistics about throttle tasks"""
        return {
            "tasks": len(self._tasks),
            "in_flight": sum(1 for task in self._tasks.values() if task.in_flight),
            "waiters": sum(len(task.waiters) for task in self._tasks.values()),
        }

    def clear(self) -> None:
        """Drop all tasks that have nobody waiting on them"""
        for key in [k for k, t in self._tasks.items() if not t.in_flight and not t.waiters]:
            del self._tasks[key]
