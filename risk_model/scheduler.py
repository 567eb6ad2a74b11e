"""
LifeGuard — Cooperative Scheduler
Virtual millisecond clock with periodic and one-shot timers.

Nothing here sleeps or spawns threads: time only moves when advance() is
called (by tests directly, by the server's clock task in production). Due
timers fire in due-time order, registration order breaking ties, and each
callback runs to completion before the next one starts.
"""
import heapq
import itertools
import logging
import time

logger = logging.getLogger(__name__)


class Scheduler:

    def __init__(self, start_ms=None):
        self.now_ms = int(time.time() * 1000) if start_ms is None else int(start_ms)
        self._queue = []                  # (due_ms, seq, timer_id)
        self._timers = {}                 # timer_id → {callback, interval_ms}
        self._seq = itertools.count()
        self._ids = itertools.count(1)

    def now(self):
        """Current virtual time in seconds."""
        return self.now_ms / 1000.0

    def _push(self, timer_id, due_ms):
        heapq.heappush(self._queue, (due_ms, next(self._seq), timer_id))

    def call_later(self, delay_ms, callback):
        """One-shot timer. Returns a timer id for cancel()."""
        timer_id = next(self._ids)
        self._timers[timer_id] = {"callback": callback, "interval_ms": None}
        self._push(timer_id, self.now_ms + max(0, int(delay_ms)))
        return timer_id

    def call_every(self, interval_ms, callback):
        """Periodic timer, first firing one interval from now."""
        interval_ms = int(interval_ms)
        if interval_ms <= 0:
            raise ValueError("interval_ms must be positive")
        timer_id = next(self._ids)
        self._timers[timer_id] = {"callback": callback, "interval_ms": interval_ms}
        self._push(timer_id, self.now_ms + interval_ms)
        return timer_id

    def cancel(self, timer_id):
        """Cancel a timer. Unknown or already-fired ids are ignored."""
        return self._timers.pop(timer_id, None) is not None

    def pending(self):
        return len(self._timers)

    def advance(self, ms):
        """
        Move the clock forward by `ms`, firing every timer that falls due on
        the way. Returns the number of callbacks run.
        """
        target = self.now_ms + max(0, int(ms))
        fired = 0
        while self._queue and self._queue[0][0] <= target:
            due_ms, _, timer_id = heapq.heappop(self._queue)
            timer = self._timers.get(timer_id)
            if timer is None:
                continue
            self.now_ms = max(self.now_ms, due_ms)
            if timer["interval_ms"] is None:
                del self._timers[timer_id]
            else:
                self._push(timer_id, due_ms + timer["interval_ms"])
            fired += 1
            try:
                timer["callback"]()
            except Exception:
                logger.exception("Timer %s callback failed", timer_id)
        self.now_ms = target
        return fired
