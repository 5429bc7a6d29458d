"""Fixed-size ring buffer shared by one writer and many independent readers."""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from typing import Callable

from .common import gettime_ms

log = logging.getLogger(__name__)

DEFAULT_MAX_DATA_SIZE = 1024 * 1316  # about 5 Mbps for 2 s


@dataclass
class ReadCursor:
    """A reader's position in a :class:`RecycleArray`.

    A fresh cursor attaches at the current write position on its first read.
    """

    read_pos: int = 0
    data_count: int = 0
    first: bool = True


class RecycleArray:
    """Ring buffer that overwrites the oldest data; readers never block writers."""

    def __init__(
        self,
        size: int = DEFAULT_MAX_DATA_SIZE,
        clock: Callable[[], int] = gettime_ms,
    ) -> None:
        self._clock = clock
        self._lock = threading.Lock()
        self._size = size
        self._buf = bytearray(size)
        self._write_pos = 0
        self._count = 0
        self._last_read_time = clock()

    @property
    def size(self) -> int:
        return self._size

    @property
    def count(self) -> int:
        """Total number of bytes ever written."""
        with self._lock:
            return self._count

    @property
    def last_read_time(self) -> int:
        """Clock time in ms of the last read that found new data."""
        return self._last_read_time

    def set_size(self, n: int) -> None:
        """Reallocate the buffer; call before any put or get."""
        if n <= 0:
            raise ValueError(f"size must be positive, got {n}")
        with self._lock:
            self._size = n
            self._write_pos = 0
            self._buf = bytearray(n)

    def put(self, data: bytes) -> int:
        """Append *data*, wrapping around; return the number of bytes written."""
        n = len(data)
        if n == 0:
            raise ValueError("no data to put")
        if n > self._size:
            raise ValueError(f"data length {n} exceeds buffer size {self._size}")
        with self._lock:
            room = self._size - self._write_pos
            if room >= n:
                self._buf[self._write_pos:self._write_pos + n] = data
                self._write_pos += n
            else:
                self._buf[self._write_pos:] = data[:room]
                self._buf[:n - room] = data[room:]
                self._write_pos = n - room
            if self._write_pos == self._size:
                self._write_pos = 0
            self._count += n
        log.debug("[%x]RecycleArray.put, len=%d, write_pos=%d, count=%d.",
                  id(self), n, self._write_pos, self._count)
        return n

    def get(self, size: int, cursor: ReadCursor, aligned: int = 0) -> bytes:
        """Read up to *size* new bytes for *cursor*.

        With *aligned* > 0 the amount read is rounded down to a multiple of
        it. The first call on a fresh cursor only attaches it and returns b"".
        """
        with self._lock:
            if cursor.first:
                cursor.read_pos = self._write_pos
                cursor.data_count = self._count
                cursor.first = False
                return b""
            if cursor.read_pos == self._write_pos and cursor.data_count == self._count:
                return b""

            self._last_read_time = self._clock()
            total = self._size
            rp = cursor.read_pos
            if rp < self._write_pos:
                ready = self._write_pos - rp
            else:
                ready = total - rp + self._write_pos
            copy_len = min(ready, size)
            if aligned > 0:
                copy_len = copy_len // aligned * aligned

            out = b""
            if copy_len > 0:
                tail = total - rp
                if tail >= copy_len:
                    out = bytes(self._buf[rp:rp + copy_len])
                    rp += copy_len
                else:
                    out = bytes(self._buf[rp:]) + bytes(self._buf[:copy_len - tail])
                    rp = copy_len - tail

            if rp == total:
                rp = 0
            elif rp > total:
                log.warning("[%x]RecycleArray.get, read_pos=%d beyond size=%d.", id(self), rp, total)
                rp = 0
            cursor.read_pos = rp
            cursor.data_count = self._count
            return out