"""Pace playback of time-stamped data against the system clock."""

from __future__ import annotations

import time
from typing import Callable

from .common import gettime_ms

TM_JITTER_MS = 1000


def _sleep_ms(ms: int) -> None:
    time.sleep(ms / 1000)


class SyncClock:
    """Sleep so that stream timestamps advance no faster than real time.

    A gap between stream and system time of at least ``jitter`` milliseconds
    in either direction resets the reference point instead of sleeping.
    """

    def __init__(
        self,
        jitter: int = TM_JITTER_MS,
        clock: Callable[[], int] = gettime_ms,
        sleep: Callable[[int], None] = _sleep_ms,
    ) -> None:
        self.jitter = jitter
        self._clock = clock
        self._sleep = sleep
        self._begin_rts: int | None = None
        self._begin_sys = 0

    def wait(self, rts_tm_ms: int) -> int:
        """Wait until *rts_tm_ms* is due; return the milliseconds slept."""
        if self._begin_rts is None:
            self._begin_rts = rts_tm_ms
            self._begin_sys = self._clock()
            return 0
        cur_sys = self._clock()
        d = (rts_tm_ms - self._begin_rts) - (cur_sys - self._begin_sys)
        if d >= self.jitter or d <= -self.jitter:
            self._begin_rts = rts_tm_ms
            self._begin_sys = cur_sys
            return 0
        if d > 0:
            self._sleep(d)
            return d
        return 0