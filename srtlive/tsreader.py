"""Read a transport-stream file as UDP-sized payloads tagged with timestamps.

The first time a TS file is opened, a companion ``<name>.rts`` file is
generated next to it. Each record there is a signed 64-bit little-endian
timestamp on the 90 kHz clock, followed by one 1316-byte UDP payload
(seven TS packets). The timestamps are spread evenly between the DTS
values found in the stream, so a player can pace the data in real time.
"""

from __future__ import annotations

import logging
import os
import struct
from pathlib import Path
from typing import BinaryIO, NamedTuple

from .common import TS_PACK_LEN, TS_UDP_LEN
from .ts import INVALID_DTS_PTS, INVALID_PID, NULL_PACKET_HEADER, TsInfo, parse_ts_info

log = logging.getLogger(__name__)

RTS_SUFFIX = ".rts"
_RTS = struct.Struct("<q")
RTS_PACK_LEN = TS_UDP_LEN + _RTS.size
RTS_BUF_SIZE = RTS_PACK_LEN * 100
RTS_CLOCK_PER_MS = 90

_NULL_PACKET = NULL_PACKET_HEADER[:3] + bytes(TS_PACK_LEN - 3)


def _tdiv(a: int, b: int) -> int:
    """Integer division truncating toward zero."""
    q = abs(a) // abs(b)
    return q if (a >= 0) == (b >= 0) else -q


class RtsPacket(NamedTuple):
    """One payload read from an rts file and its time in milliseconds."""

    data: bytes
    tm_ms: int


class TsFileTimeReader:
    """Generate and read the time-stamped companion file of a TS file."""

    def __init__(self) -> None:
        self.file_name = ""
        self.loop = True
        self.dts_pid = INVALID_PID
        self.dts = INVALID_DTS_PTS
        self.pts = INVALID_DTS_PTS
        self.udp_duration = 0
        self.readed_count = 0
        self._file: BinaryIO | None = None
        self._buffer = bytearray()

    @property
    def is_open(self) -> bool:
        return self._file is not None

    def open(self, ts_file_name: str | os.PathLike[str], loop: bool = True) -> None:
        """Prepare the rts file of *ts_file_name* and open it for reading."""
        if not ts_file_name or not str(ts_file_name):
            raise ValueError("empty ts file name")
        try:
            self.generate_rts_file(ts_file_name)
        except OSError as exc:
            log.info("[%x]TsFileTimeReader.open, generate_rts_file failed, '%s': %s.",
                     id(self), ts_file_name, exc)
            self.file_name = str(ts_file_name) + RTS_SUFFIX
        self.close()
        self._file = open(self.file_name, "rb")
        self._buffer.clear()
        self.loop = loop
        self.readed_count = 0
        log.info("[%x]TsFileTimeReader.open, ok, file_name='%s', loop=%d.",
                 id(self), self.file_name, loop)

    def close(self) -> None:
        """Close the rts file if it is open."""
        if self._file is not None:
            log.info("[%x]TsFileTimeReader.close, ok, file_name='%s'.", id(self), self.file_name)
            self._file.close()
            self._file = None

    def _fill(self) -> None:
        assert self._file is not None
        chunk = self._file.read(RTS_BUF_SIZE)
        if chunk:
            self._buffer += chunk
            return
        if not self.loop:
            log.info("[%x]TsFileTimeReader.get, file end, file='%s'.", id(self), self.file_name)
            raise EOFError(f"end of file '{self.file_name}'")
        log.info("[%x]TsFileTimeReader.get, loop, reopen file='%s'.", id(self), self.file_name)
        self._file.close()
        self._file = open(self.file_name, "rb")
        self.readed_count = 0
        chunk = self._file.read(RTS_BUF_SIZE)
        if not chunk:
            raise EOFError(f"no data in '{self.file_name}'")
        self._buffer += chunk

    def _take(self, n: int) -> bytes:
        out = bytes(self._buffer[:n])
        del self._buffer[:n]
        return out

    def get(self, size: int = TS_UDP_LEN) -> RtsPacket:
        """Return the next payload of *size* bytes and its time in ms.

        Raises EOFError at the end of a non-looping file and ValueError
        when a record is incomplete.
        """
        if self._file is None:
            raise RuntimeError("reader is not open")
        if not self._buffer:
            self._fill()
        if not self._buffer:
            raise EOFError(f"no data in '{self.file_name}'")

        head = self._take(_RTS.size)
        if len(head) != _RTS.size:
            raise ValueError(f"incomplete timestamp, got {len(head)} bytes")
        (rts,) = _RTS.unpack(head)
        tm_ms = _tdiv(rts, RTS_CLOCK_PER_MS)

        data = self._take(size)
        self.readed_count += len(data)
        if len(data) != size:
            raise ValueError(f"incomplete payload, got {len(data)} bytes, not {size}")
        return RtsPacket(data, tm_ms)

    def generate_rts_file(self, ts_file_name: str | os.PathLike[str]) -> Path:
        """Create ``<ts_file_name>.rts`` unless it exists; return its path."""
        if not ts_file_name or not str(ts_file_name):
            raise ValueError("empty ts file name")
        rts_path = Path(str(ts_file_name) + RTS_SUFFIX)
        self.file_name = str(rts_path)
        if rts_path.exists():
            log.info("[%x]TsFileTimeReader.generate_rts_file, '%s' exist.", id(self), rts_path)
            return rts_path

        with open(ts_file_name, "rb") as ts_file, open(rts_path, "wb") as out:
            self._write_records(ts_file, out)
        log.info("[%x]TsFileTimeReader.generate_rts_file, ok, file='%s'.", id(self), rts_path)
        return rts_path

    def _write_records(self, ts_file: BinaryIO, out: BinaryIO) -> None:
        self.dts = INVALID_DTS_PTS
        self.pts = INVALID_DTS_PTS
        self.dts_pid = INVALID_PID
        self.udp_duration = 0
        pending = bytearray()
        info = TsInfo()

        def emit(rts: int, payload: bytes) -> None:
            out.write(_RTS.pack(rts))
            out.write(payload)

        while True:
            packet = ts_file.read(TS_PACK_LEN)
            if len(packet) < TS_PACK_LEN:
                break
            parse_ts_info(packet, info)
            if info.dts == INVALID_DTS_PTS:
                pending += packet
                continue
            if self.dts == INVALID_DTS_PTS:
                self.dts, self.pts, self.dts_pid = info.dts, info.pts, info.es_pid
                log.info("[%x]TsFileTimeReader.generate_rts_file, es_pid=%d, first dts=%d.",
                         id(self), info.es_pid, info.dts)
                info.dts = info.pts = INVALID_DTS_PTS
                pending += packet
                continue

            udp_count = len(pending) // TS_UDP_LEN
            if udp_count > 0:
                self.udp_duration = _tdiv(info.dts - self.dts, udp_count)
                rts = self.dts
                for _ in range(udp_count):
                    emit(rts, bytes(pending[:TS_UDP_LEN]))
                    del pending[:TS_UDP_LEN]
                    rts += self.udp_duration
                self.dts, self.pts = info.dts, info.pts
            info.dts = info.pts = INVALID_DTS_PTS
            pending += packet

        rts = self.dts
        if len(pending) // TS_UDP_LEN == 0:
            return
        while len(pending) >= TS_UDP_LEN:
            emit(rts, bytes(pending[:TS_UDP_LEN]))
            del pending[:TS_UDP_LEN]
            rts += self.udp_duration
        if pending:
            # pad the last payload with null packets
            payload = bytes(pending)
            payload += _NULL_PACKET * ((TS_UDP_LEN - len(payload)) // TS_PACK_LEN)
            emit(rts, payload)

    def __enter__(self) -> "TsFileTimeReader":
        return self

    def __exit__(self, *exc: object) -> None:
        self.close()