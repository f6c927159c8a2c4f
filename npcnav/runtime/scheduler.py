"""
Deterministic frame scheduler for controller callbacks.

The host calls FrameScheduler.tick(dt) once per frame. Each tick:
1. Advance the simulated clock by dt
2. Run every frame binding, highest priority first (ties in bind order)
3. Run delayed tasks whose due time has passed, earliest first

Every task may carry a CancellationHandle. A task whose handle has been
invalidated is dropped silently the next time the scheduler reaches it,
so stale work from a superseded walk can never act.
"""
import heapq
import itertools
import logging
from dataclasses import dataclass
from typing import Callable, List, Optional, Tuple

logger = logging.getLogger(__name__)


class CancellationHandle:
    """
    Validity flag shared by all work scheduled for one request.

    `token` is the request's sequence number, for logging and debugging.
    """

    def __init__(self, token: int = 0):
        self.token = token
        self._valid = True

    @property
    def valid(self) -> bool:
        return self._valid

    def cancel(self) -> None:
        self._valid = False

    def __repr__(self) -> str:
        state = "valid" if self._valid else "cancelled"
        return f"CancellationHandle(token={self.token}, {state})"


class HandleSource:
    """Issues handles with increasing tokens; issuing one cancels the last."""

    def __init__(self):
        self._counter = itertools.count(1)
        self.current: Optional[CancellationHandle] = None

    def next(self) -> CancellationHandle:
        if self.current is not None:
            self.current.cancel()
        self.current = CancellationHandle(next(self._counter))
        return self.current

    def cancel(self) -> None:
        if self.current is not None:
            self.current.cancel()

    @property
    def token(self) -> int:
        return self.current.token if self.current is not None else 0


class ScheduledTask:
    """A frame binding or a delayed call. cancel() is idempotent."""

    def __init__(
        self,
        callback: Callable,
        handle: Optional[CancellationHandle] = None,
        name: str = "task",
    ):
        self.callback = callback
        self.handle = handle
        self.name = name
        self.cancelled = False

    def cancel(self) -> None:
        self.cancelled = True

    @property
    def active(self) -> bool:
        if self.cancelled:
            return False
        return self.handle is None or self.handle.valid


@dataclass
class _Binding:
    priority: int
    order: int
    task: ScheduledTask


class FrameScheduler:
    """
    Single-threaded cooperative scheduler with a simulated clock.

    Usage:
        scheduler = FrameScheduler()
        task = scheduler.bind_to_frame(on_frame, handle=walk_handle)
        scheduler.delay(0.2, retry, handle=walk_handle)

        while running:
            scheduler.tick(1 / 60)
    """

    def __init__(self, start_time: float = 0.0):
        self._now = start_time
        self._tick_count = 0
        self._order = itertools.count()
        self._bindings: List[_Binding] = []
        self._delayed: List[Tuple[float, int, ScheduledTask]] = []

    @property
    def now(self) -> float:
        return self._now

    @property
    def tick_count(self) -> int:
        return self._tick_count

    def bind_to_frame(
        self,
        callback: Callable[[float], None],
        priority: int = 0,
        handle: Optional[CancellationHandle] = None,
        name: str = "frame",
    ) -> ScheduledTask:
        """Call `callback(dt)` every tick until cancelled."""
        task = ScheduledTask(callback, handle, name)
        self._bindings.append(_Binding(priority, next(self._order), task))
        self._bindings.sort(key=lambda b: (-b.priority, b.order))
        return task

    def delay(
        self,
        seconds: float,
        callback: Callable[[], None],
        handle: Optional[CancellationHandle] = None,
        name: str = "delay",
    ) -> ScheduledTask:
        """Call `callback()` once, on the first tick at or after now + seconds."""
        if seconds < 0:
            raise ValueError("delay must be non-negative")
        task = ScheduledTask(callback, handle, name)
        heapq.heappush(self._delayed, (self._now + seconds, next(self._order), task))
        return task

    def tick(self, dt: float) -> None:
        if dt < 0:
            raise ValueError("dt must be non-negative")
        self._now += dt
        self._tick_count += 1

        # Snapshot so bindings made during this tick start next tick
        for binding in list(self._bindings):
            task = binding.task
            if not task.active:
                continue
            task.callback(dt)

        self._bindings = [b for b in self._bindings if b.task.active]

        due = []
        while self._delayed and self._delayed[0][0] <= self._now:
            due.append(heapq.heappop(self._delayed))
        for _, _, task in due:
            if not task.active:
                logger.debug("Dropping stale delayed task %s", task.name)
                continue
            task.cancel()
            task.callback()

    def run_for(self, seconds: float, dt: float = 1 / 60) -> None:
        """Tick repeatedly until `seconds` of simulated time have passed."""
        steps = int(round(seconds / dt))
        for _ in range(steps):
            self.tick(dt)

    @property
    def pending_bindings(self) -> int:
        return sum(1 for b in self._bindings if b.task.active)

    @property
    def pending_delays(self) -> int:
        return sum(1 for _, _, task in self._delayed if task.active)
