"""Shared helpers: clocks, hashing, string utilities and pid-file handling."""

from __future__ import annotations

import logging
import os
import re
import signal
import socket
import time
from pathlib import Path
from typing import Iterable

log = logging.getLogger(__name__)

TS_PACK_LEN = 188
TS_UDP_LEN = 1316  # 7 * 188
SHORT_STR_MAX_LEN = 256
STR_MAX_LEN = 1024
URL_MAX_LEN = STR_MAX_LEN
STR_DATE_TIME_LEN = 32
IP_MAX_LEN = 46

DEFAULT_TIME_FORMAT = "%Y-%m-%d %H:%M:%S"

PID_DIR = Path("/tmp/sls")
PID_FILE = PID_DIR / "pid.txt"

_LEADING_INT = re.compile(r"\s*([+-]?\d+)")


def gettime_us() -> int:
    """Return the wall-clock time in microseconds."""
    return time.time_ns() // 1000


def gettime_ms() -> int:
    """Return the wall-clock time in milliseconds."""
    return gettime_us() // 1000


def gettime_fmt(cur_time_sec: int, fmt: str = DEFAULT_TIME_FORMAT) -> str:
    """Format a Unix time in seconds as local time."""
    return time.strftime(fmt, time.localtime(cur_time_sec))


def gettime_default_string() -> str:
    """Return the current local time as 'YYYY-MM-DD HH:MM:SS'."""
    return gettime_fmt(gettime_us() // 1_000_000, DEFAULT_TIME_FORMAT)


def hash_key(data: str | bytes) -> int:
    """Return the 32-bit multiplicative (x31) hash of *data*.

    Bytes are treated as signed chars, so values above 0x7F count as negative.
    """
    if isinstance(data, str):
        data = data.encode("utf-8")
    key = 0
    for byte in data:
        signed = byte - 256 if byte >= 0x80 else byte
        key = (key * 31 + signed) & 0xFFFFFFFF
    return key


def gethostbyname(hostname: str) -> str:
    """Resolve *hostname* and return its first IPv4 address.

    Raises OSError when the name cannot be resolved.
    """
    return socket.gethostbyname(hostname)


def mkdir_p(path: str | os.PathLike[str]) -> None:
    """Create *path* and every missing parent directory (mode 0755)."""
    os.makedirs(path, mode=0o755, exist_ok=True)


def remove_marks(s: str) -> str:
    """Strip one pair of matching surrounding single or double quotes."""
    if len(s) >= 2 and s[0] == s[-1] and s[0] in ("'", '"'):
        return s[1:-1]
    return s


def split_string(s: str, separator: str, count: int = -1) -> list[str]:
    """Split *s* on *separator*, performing at most *count* splits.

    A *count* of zero or less means no limit.
    """
    if not separator:
        raise ValueError("empty separator")
    return s.split(separator, count if count > 0 else -1)


def find_string(src: Iterable[str], dst: str) -> str:
    """Return the first item of *src* containing *dst*, or '' if none does."""
    return next((item for item in src if dst in item), "")


def _atoi(text: str) -> int:
    match = _LEADING_INT.match(text)
    return int(match.group(1)) if match else 0


def read_pid(path: str | os.PathLike[str] = PID_FILE) -> int:
    """Read the pid stored in *path*; return 0 if there is none."""
    try:
        content = Path(path).read_text(errors="replace")[:128]
    except FileNotFoundError:
        log.info("no pid file='%s'.", path)
        return 0
    return _atoi(content)


def write_pid(pid: int, path: str | os.PathLike[str] = PID_FILE) -> None:
    """Store *pid* in *path*, creating its directory if needed."""
    target = Path(path)
    mkdir_p(target.parent)
    target.write_text(str(pid))
    log.info("write pid ok, file='%s', pid=%d.", target, pid)


def remove_pid(path: str | os.PathLike[str] = PID_FILE) -> None:
    """Empty the pid file at *path* if it exists."""
    target = Path(path)
    if target.exists():
        target.write_bytes(b"")


def send_cmd(cmd: str, path: str | os.PathLike[str] = PID_FILE) -> signal.Signals | None:
    """Signal the running server recorded in the pid file.

    'reload' sends SIGHUP and 'stop' sends SIGINT. Returns the signal sent,
    or None when there is no valid pid or the command is unknown.
    """
    if cmd is None:
        raise ValueError("cmd is None")
    pid = read_pid(path)
    if pid <= 0:
        log.info("send_cmd failed, pid is invalid.")
        return None
    sig = {"reload": signal.SIGHUP, "stop": signal.SIGINT}.get(cmd)
    if sig is None:
        return None
    log.info("send_cmd ok, %s, pid=%d, send %s.", cmd, pid, sig.name)
    os.kill(pid, sig)
    return sig