"""
Throughput Estimator Module

Computes the tokens/second rate of a streaming reply and reports it to an
observer callback without flooding it: the rate is recomputed on every delta
but only published once per ``update_interval`` seconds, and the publication
itself goes through a leading-edge debouncer owned by the estimator.
"""

import asyncio
import math
import time
from typing import Callable, Optional

from ...core.logging import logger


def round_rate(value: float) -> int:
    """Round half up to the nearest integer."""
    return int(math.floor(value + 0.5))


class DebouncedEmitter:
    """
    Leading-edge debouncer with an explicit timer.

    A value pushed when nothing was emitted during the last ``wait`` seconds
    is delivered immediately. Otherwise it is kept as pending and delivered
    by a timer at the end of the window (last value wins). ``flush`` cancels
    the timer and delivers a value synchronously.
    """

    def __init__(self, callback: Callable[[int], None], wait: float = 0.2,
                 clock: Callable[[], float] = time.monotonic):
        self.callback = callback
        self.wait = wait
        self.clock = clock
        self._last_emit: Optional[float] = None
        self._pending: Optional[int] = None
        self._timer: Optional[asyncio.TimerHandle] = None

    def push(self, value: int):
        now = self.clock()
        if self._last_emit is None or now - self._last_emit >= self.wait:
            self._cancel_timer()
            self._emit(value)
            return

        self._pending = value
        if self._timer is not None:
            return

        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            # без event loop таймер не запустить
            self._emit(value)
            return
        delay = self.wait - (now - self._last_emit)
        self._timer = loop.call_later(max(delay, 0.0), self._fire)

    def flush(self, value: int):
        self._cancel_timer()
        self._emit(value)

    def cancel(self):
        self._cancel_timer()

    @property
    def has_pending(self) -> bool:
        return self._timer is not None

    def _fire(self):
        self._timer = None
        if self._pending is not None:
            self._emit(self._pending)

    def _emit(self, value: int):
        self._pending = None
        self._last_emit = self.clock()
        self.callback(value)

    def _cancel_timer(self):
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None
        self._pending = None


class ThroughputEstimator:
    """
    Running tokens/second estimate for one stream.

    Attributes:
        token_count (float): Accumulated (fractional) token estimate
        start_time (float): Clock value when the stream started
        tokens_per_second (int): Last computed rate
    """

    def __init__(self, on_rate: Callable[[int], None], update_interval: float = 0.5,
                 debounce: float = 0.2, clock: Callable[[], float] = time.monotonic):
        self.update_interval = update_interval
        self.clock = clock
        self.emitter = DebouncedEmitter(on_rate, wait=debounce, clock=clock)
        self.token_count = 0.0
        self.start_time: Optional[float] = None
        self.last_update_time: Optional[float] = None
        self.tokens_per_second = 0
        self.running = False

    def start(self):
        self.token_count = 0.0
        self.start_time = self.clock()
        self.last_update_time = self.start_time
        self.tokens_per_second = 0
        self.running = True

    def record(self, tokens: float) -> Optional[int]:
        """
        Account for one delta.

        Returns:
            The freshly published rate, or None when the update interval
            has not elapsed yet.
        """
        if not self.running:
            self.start()

        self.token_count += tokens
        now = self.clock()
        if now - self.last_update_time <= self.update_interval:
            return None

        elapsed = now - self.start_time
        self.tokens_per_second = round_rate(self.token_count / elapsed) if elapsed > 0 else 0
        self.last_update_time = now
        self.emitter.push(self.tokens_per_second)
        return self.tokens_per_second

    def stop(self):
        """Terminal reset: publish 0 so no stale rate survives the stream."""
        elapsed = self.clock() - self.start_time if self.start_time is not None else 0.0
        logger.debug("Throughput estimator stopped", component="throughput",
                     token_count=round(self.token_count, 2), elapsed_seconds=round(elapsed, 3))
        self.running = False
        self.tokens_per_second = 0
        self.emitter.flush(0)
