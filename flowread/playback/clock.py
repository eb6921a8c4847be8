"""Cooperative playback clock and the schedulers that drive it.

WHY: Auto-advance is a repeating timer whose period depends on the
current speed. Binding it to an explicit scheduler, rather than to a
wall-clock interval timer, lets the same clock run on an asyncio event
loop in the CLI and be stepped deterministically in tests.

HOW: A Scheduler provides ``now()`` and ``call_later(delay, callback)``.
PlaybackClock schedules exactly one pending timer at a time. When it
fires, the clock calls ``machine.tick(now)``, runs the optional on_tick
callback, and only then schedules the next fire one interval after the
scheduler's current time.

RULES:
- Interval is 60 / speed_wpm seconds, read from the machine at schedule time
- At most one pending timer; start() on a running clock is a no-op
- The next timer is scheduled after the current tick has fully returned
- Speed changes while running cancel the pending timer and schedule a
  full new interval (no partial carry-over)
- pause() and close() cancel without firing a partial tick
- The clock stops itself when the machine leaves ACTIVE
- The clock holds no session data of its own
- Autosave and completion writes run synchronously inside the timer
  callback, on the event loop thread
"""

from __future__ import annotations

import asyncio
import heapq
import itertools
import logging
from abc import ABC, abstractmethod
from typing import Any, Callable, List, Optional, Tuple

from flowread.playback.session import ReadingSessionMachine, SessionState

logger = logging.getLogger(__name__)


class Scheduler(ABC):
    """Source of time and delayed callbacks for the playback clock."""

    @abstractmethod
    def now(self) -> float:
        """Current time in seconds (monotonic)."""

    @abstractmethod
    def call_later(self, delay: float, callback: Callable[[], None]) -> Any:
        """Run ``callback`` after ``delay`` seconds; return a handle with cancel()."""


class AsyncioScheduler(Scheduler):
    """Scheduler backed by an asyncio event loop.

    Must be created while the loop is running (or given one explicitly).
    """

    def __init__(self, loop: Optional[asyncio.AbstractEventLoop] = None) -> None:
        self._loop = loop or asyncio.get_running_loop()

    def now(self) -> float:
        return self._loop.time()

    def call_later(self, delay: float, callback: Callable[[], None]) -> asyncio.TimerHandle:
        return self._loop.call_later(delay, callback)


class ManualTimer:
    """Handle for a ManualScheduler callback."""

    def __init__(self, due: float, callback: Callable[[], None]) -> None:
        self.due = due
        self.callback = callback
        self.cancelled = False

    def cancel(self) -> None:
        self.cancelled = True


class ManualScheduler(Scheduler):
    """Deterministic scheduler whose time only moves when advance() is called.

    WHY: Tests need to assert exactly how many ticks happen in a span of
    time, including across speed changes and pauses, without sleeping.

    RULES:
    - Callbacks run in due order; equal due times run in scheduling order
    - During a callback, now() equals that callback's due time
    - Callbacks scheduled by a callback run in the same advance() if due
    """

    def __init__(self, start: float = 0.0) -> None:
        self._now = start
        self._queue: List[Tuple[float, int, ManualTimer]] = []
        self._counter = itertools.count()

    def now(self) -> float:
        return self._now

    def call_later(self, delay: float, callback: Callable[[], None]) -> ManualTimer:
        timer = ManualTimer(self._now + max(0.0, delay), callback)
        heapq.heappush(self._queue, (timer.due, next(self._counter), timer))
        return timer

    def pending(self) -> int:
        """Number of scheduled, not-yet-cancelled callbacks."""
        return sum(1 for _, _, t in self._queue if not t.cancelled)

    def advance(self, seconds: float) -> int:
        """Move time forward, running every callback that falls due.

        Returns the number of callbacks run.
        """
        target = self._now + seconds
        ran = 0
        while self._queue and self._queue[0][0] <= target:
            _, _, timer = heapq.heappop(self._queue)
            if timer.cancelled:
                continue
            self._now = timer.due
            timer.callback()
            ran += 1
        self._now = target
        return ran


class PlaybackClock:
    """Drives a ReadingSessionMachine's tick at its current speed."""

    def __init__(
        self,
        machine: ReadingSessionMachine,
        scheduler: Scheduler,
        on_tick: Optional[Callable[[ReadingSessionMachine], None]] = None,
    ) -> None:
        self.machine = machine
        self.scheduler = scheduler
        self.on_tick = on_tick
        self._handle: Any = None

    @property
    def interval(self) -> float:
        """Seconds between ticks at the machine's current speed."""
        return 60.0 / self.machine.speed_wpm

    @property
    def is_running(self) -> bool:
        return self._handle is not None

    def start(self) -> bool:
        """Start playing. Returns False if already running or not playable."""
        if self.is_running:
            return False
        if self.machine.state is SessionState.PAUSED:
            self.machine.play(self.scheduler.now())
        if self.machine.state is not SessionState.ACTIVE:
            return False
        self._schedule()
        return True

    def pause(self) -> bool:
        """Stop the timer and pause the machine (saving a snapshot)."""
        self._cancel()
        return self.machine.pause(self.scheduler.now())

    def toggle(self) -> bool:
        """Play if paused, pause if playing. Returns True when now playing."""
        if self.is_running:
            self.pause()
            return False
        return self.start()

    def set_speed(self, speed_wpm: int) -> int:
        """Change speed; a running clock restarts its interval from now."""
        speed = self.machine.set_speed(speed_wpm)
        if self.is_running:
            self._cancel()
            self._schedule()
        return speed

    def close(self) -> bool:
        """Cancel the timer and save a final best-effort snapshot."""
        self._cancel()
        return self.machine.close(self.scheduler.now())

    def _schedule(self) -> None:
        self._handle = self.scheduler.call_later(self.interval, self._fire)

    def _cancel(self) -> None:
        if self._handle is not None:
            self._handle.cancel()
            self._handle = None

    def _fire(self) -> None:
        self._handle = None
        self.machine.tick(self.scheduler.now())
        if self.on_tick is not None:
            try:
                self.on_tick(self.machine)
            except Exception:
                logger.exception("Tick callback failed")
        # on_tick may have paused, restarted or closed the clock.
        if self.machine.state is SessionState.ACTIVE and self._handle is None:
            self._schedule()
