"""
Timer hosts: the facility the scheduler uses for interval ticks and
one-shot delayed callbacks.

Both hosts deliver callbacks serially, one at a time:
- ManualTimerHost: simulated clock, advanced explicitly (tests, replays)
- ThreadedTimerHost: real time, one daemon worker thread; callbacks run
  while holding `lock`, which callers share to serialize their own calls
"""

import heapq
import itertools
import logging
import threading
import time
from typing import Callable, List, Optional, Tuple

logger = logging.getLogger(__name__)


class TimerHandle:
    """Opaque handle returned by set_timeout()/set_interval()."""

    __slots__ = ("timer_id", "callback", "due_ms", "interval_ms", "cancelled", "fired")

    def __init__(self, timer_id: int, callback: Callable[[], None], due_ms: float,
                 interval_ms: Optional[float] = None) -> None:
        self.timer_id = timer_id
        self.callback = callback
        self.due_ms = due_ms
        self.interval_ms = interval_ms
        self.cancelled = False
        self.fired = False  # one-shot taken off the queue

    @property
    def repeating(self) -> bool:
        return self.interval_ms is not None

    def __repr__(self) -> str:
        kind = f"interval={self.interval_ms}" if self.repeating else "once"
        return f"<TimerHandle #{self.timer_id} due={self.due_ms} {kind}{' cancelled' if self.cancelled else ''}>"


class _TimerQueue:
    """Due-time ordered queue shared by both hosts. Not thread-safe on its own."""

    def __init__(self) -> None:
        self._heap: List[Tuple[float, int, TimerHandle]] = []
        self._seq = itertools.count(1)
        self._live = 0

    def push(self, callback: Callable[[], None], due_ms: float, interval_ms: Optional[float]) -> TimerHandle:
        handle = TimerHandle(next(self._seq), callback, due_ms, interval_ms)
        heapq.heappush(self._heap, (due_ms, handle.timer_id, handle))
        self._live += 1
        return handle

    def cancel(self, handle: Optional[TimerHandle]) -> None:
        if handle is None or handle.cancelled:
            return
        handle.cancelled = True
        if not handle.fired:
            self._live -= 1

    def next_due(self) -> Optional[float]:
        self._drop_stale()
        return self._heap[0][0] if self._heap else None

    def pop_due(self, now_ms: float) -> Optional[Tuple[float, TimerHandle]]:
        """
        Pop the earliest timer due at or before now_ms.

        Repeating timers are re-armed one interval later. Returns
        (fire_time_ms, handle) or None.
        """
        self._drop_stale()
        if not self._heap or self._heap[0][0] > now_ms:
            return None
        due, _, handle = heapq.heappop(self._heap)
        if handle.repeating:
            handle.due_ms = due + handle.interval_ms
            heapq.heappush(self._heap, (handle.due_ms, next(self._seq), handle))
        else:
            handle.fired = True
            self._live -= 1
        return due, handle

    def clear(self) -> None:
        for _, _, handle in self._heap:
            handle.cancelled = True
        self._heap.clear()
        self._live = 0

    def __len__(self) -> int:
        return self._live

    def _drop_stale(self) -> None:
        while self._heap:
            due, _, handle = self._heap[0]
            if handle.cancelled or due != handle.due_ms:
                heapq.heappop(self._heap)
            else:
                break


class ManualTimerHost:
    """
    Simulated clock. Nothing fires until advance() is called.

    Example:
        host = ManualTimerHost()
        host.set_timeout(cb, 500)
        host.advance(499)   # nothing
        host.advance(1)     # cb() runs
    """

    def __init__(self) -> None:
        self.now_ms: float = 0.0
        self._queue = _TimerQueue()

    def set_timeout(self, callback: Callable[[], None], delay_ms: float) -> TimerHandle:
        return self._queue.push(callback, self.now_ms + delay_ms, None)

    def set_interval(self, callback: Callable[[], None], interval_ms: float) -> TimerHandle:
        if interval_ms <= 0:
            raise ValueError("interval_ms must be positive")
        return self._queue.push(callback, self.now_ms + interval_ms, interval_ms)

    def cancel(self, handle: Optional[TimerHandle]) -> None:
        self._queue.cancel(handle)

    def pending(self) -> int:
        """Number of timers still armed."""
        return len(self._queue)

    def advance(self, ms: float) -> int:
        """Move the clock forward, firing every timer that comes due. Returns callbacks run."""
        target = self.now_ms + ms
        fired = 0
        while True:
            popped = self._queue.pop_due(target)
            if popped is None:
                break
            due, handle = popped
            self.now_ms = due
            handle.callback()
            fired += 1
        self.now_ms = target
        return fired


class ThreadedTimerHost:
    """
    Real-time timer host backed by one daemon worker thread.

    The worker takes `lock` around each callback. Code that mutates the
    same state from other threads (web handlers) must hold `lock` too.
    """

    def __init__(self) -> None:
        self.lock = threading.RLock()
        self._cond = threading.Condition()
        self._queue = _TimerQueue()
        self._worker: Optional[threading.Thread] = None
        self._stop_event = threading.Event()

    @staticmethod
    def _now_ms() -> float:
        return time.monotonic() * 1000.0

    def set_timeout(self, callback: Callable[[], None], delay_ms: float) -> TimerHandle:
        return self._schedule(callback, delay_ms, None)

    def set_interval(self, callback: Callable[[], None], interval_ms: float) -> TimerHandle:
        if interval_ms <= 0:
            raise ValueError("interval_ms must be positive")
        return self._schedule(callback, interval_ms, interval_ms)

    def cancel(self, handle: Optional[TimerHandle]) -> None:
        with self._cond:
            self._queue.cancel(handle)
            self._cond.notify()

    def pending(self) -> int:
        with self._cond:
            return len(self._queue)

    def shutdown(self, timeout: float = 2.0) -> None:
        """Drop every armed timer and stop the worker thread."""
        self._stop_event.set()
        with self._cond:
            self._queue.clear()
            self._cond.notify_all()
        if self._worker is not None:
            self._worker.join(timeout=timeout)
            self._worker = None
        logger.info("Timer host stopped")

    def _schedule(self, callback: Callable[[], None], delay_ms: float,
                  interval_ms: Optional[float]) -> TimerHandle:
        with self._cond:
            handle = self._queue.push(callback, self._now_ms() + delay_ms, interval_ms)
            self._ensure_worker()
            self._cond.notify()
        return handle

    def _ensure_worker(self) -> None:
        if self._worker is not None and self._worker.is_alive():
            return
        self._stop_event.clear()
        self._worker = threading.Thread(target=self._run, name="zone-trainer-timers", daemon=True)
        self._worker.start()
        logger.debug("Timer worker thread started")

    def _run(self) -> None:
        while not self._stop_event.is_set():
            with self._cond:
                due = self._queue.next_due()
                if due is None:
                    self._cond.wait()
                    continue
                wait_ms = due - self._now_ms()
                if wait_ms > 0:
                    self._cond.wait(wait_ms / 1000.0)
                    continue
                popped = self._queue.pop_due(self._now_ms())
            if popped is None:
                continue
            _, handle = popped

            # Condition released: a caller holding `lock` may cancel in between
            with self.lock:
                if handle.cancelled:
                    continue
                try:
                    handle.callback()
                except Exception:
                    logger.exception("Timer callback failed (%r)", handle)
