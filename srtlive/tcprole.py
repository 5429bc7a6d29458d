"""Plain TCP endpoint used as a client or a listening server."""

from __future__ import annotations

import errno
import logging
import socket
from dataclasses import dataclass

log = logging.getLogger(__name__)

_IN_PROGRESS = {0, errno.EINPROGRESS, errno.EWOULDBLOCK, errno.EALREADY}


@dataclass
class DataParam:
    """Readiness flags handed to :meth:`TcpRole.handler`."""

    readable: bool = False
    writable: bool = False


class TcpRole:
    """A TCP socket that is either connected to a peer or listening.

    Client sockets are made non-blocking before connecting, so a wrong host
    never blocks the caller; the connection may still be in progress when
    :meth:`open_client` returns.
    """

    role_name = "tcp_role"

    def __init__(self) -> None:
        self._sock: socket.socket | None = None
        self.port = 0
        self.remote_host = ""
        self.remote_port = 0
        self._valid = False
        self.last_param: DataParam | None = None

    @property
    def is_valid(self) -> bool:
        """True while the socket is open and no fatal read error was seen."""
        return self._valid

    def fileno(self) -> int:
        """Return the socket's file descriptor, or -1 when it is closed."""
        return self._sock.fileno() if self._sock is not None else -1

    def _setup(self) -> socket.socket:
        if self._sock is not None:
            raise RuntimeError(f"socket fd={self._sock.fileno()} already set up")
        sock = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
        try:
            sock.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
        except OSError:
            sock.close()
            raise
        self._sock = sock
        log.info("[%x]TcpRole.setup, create sock ok, fd=%d.", id(self), sock.fileno())
        return sock

    def set_nonblock(self) -> None:
        """Put the socket in non-blocking mode."""
        if self._sock is None:
            raise RuntimeError("socket is not set up")
        self._sock.setblocking(False)
        log.info("[%x]TcpRole.set_nonblock, ok, fd=%d.", id(self), self._sock.fileno())

    def _connect(self, host: str, port: int) -> None:
        sock = self._sock
        assert sock is not None
        self.set_nonblock()
        err = sock.connect_ex((host, port))
        if err not in _IN_PROGRESS:
            log.error("[%x]TcpRole.connect, failure, host=%s, port=%d, errno=%d.",
                      id(self), host, port, err)
            self._drop()
            raise OSError(err, f"connect to {host}:{port} failed: {errno.errorcode.get(err, err)}")
        log.info("[%x]TcpRole.connect, ok, host=%s, port=%d.", id(self), host, port)
        self.remote_host = host
        self.remote_port = port

    def _listen(self, port: int, backlog: int) -> None:
        sock = self._sock
        assert sock is not None
        try:
            sock.bind(("", port))
            self.port = sock.getsockname()[1]
            sock.listen(backlog)
        except OSError:
            log.error("[%x]TcpRole.listen, failure, port=%d.", id(self), port)
            self.close()
            raise
        log.info("[%x]TcpRole.listen, ok, port=%d.", id(self), self.port)

    def _drop(self) -> None:
        if self._sock is not None:
            self._sock.close()
            self._sock = None
        self._valid = False

    def open_client(self, host: str, port: int) -> None:
        """Create the socket and start a non-blocking connect to *host*:*port*."""
        self._setup()
        self._connect(host, port)
        self._valid = True

    def open_server(self, port: int, backlog: int) -> None:
        """Create the socket, bind it to *port* on all interfaces and listen."""
        self._setup()
        self._listen(port, backlog)
        self._valid = True

    def close(self) -> bool:
        """Close the socket; return False if it was not open."""
        if self._sock is None:
            return False
        log.info("[%x]TcpRole.close ok, fd=%d.", id(self), self._sock.fileno())
        self._drop()
        return True

    def handler(self, param: DataParam | None) -> int:
        """Record the readiness event for subclasses and return 0.

        The base role handles no data itself; the event is kept in
        :attr:`last_param`.
        """
        self.last_param = param
        return 0

    def write(self, data: bytes) -> int:
        """Send *data*; return the number of bytes sent, 0 on failure."""
        if self._sock is None:
            log.info("[%x]TcpRole.write, socket is not open.", id(self))
            return 0
        try:
            return self._sock.send(data)
        except BlockingIOError:
            return 0
        except OSError as exc:
            log.info("[%x]TcpRole.write, errno=%s, err='%s'.", id(self), exc.errno, exc.strerror)
            return 0

    def read(self, size: int) -> bytes:
        """Receive up to *size* bytes.

        Returns b"" when nothing is available. A closed peer or a socket
        error marks the role invalid.
        """
        if self._sock is None:
            self._valid = False
            return b""
        try:
            data = self._sock.recv(size)
        except BlockingIOError:
            return b""
        except OSError as exc:
            log.info("[%x]TcpRole.read, invalid tcp, errno=%s.", id(self), exc.errno)
            self._valid = False
            return b""
        if not data:
            log.info("[%x]TcpRole.read, invalid tcp, peer closed.", id(self))
            self._valid = False
        return data

    def __enter__(self) -> "TcpRole":
        return self

    def __exit__(self, *exc: object) -> None:
        self.close()

    def __del__(self) -> None:
        sock = getattr(self, "_sock", None)
        if sock is not None:
            sock.close()