"""Relay endpoints that pull a stream from, or push one to, an upstream server.

A relay URL takes one of two forms::

    srt://hostname:port?streamid=your_stream_id
    srt://hostname:port/app/stream_name

In the second form the stream id sent upstream is ``hostname/app/stream_name``.
"""

from __future__ import annotations

import enum
import logging
from typing import Any, Callable, NamedTuple

from .common import gethostbyname
from .conf import ConfCommand

log = logging.getLogger(__name__)

RELAY_CONF_NAME = "relay"

RELAY_CONF_COMMANDS = (
    ConfCommand("type", "string", "pull, push", 1, 31),
    ConfCommand("mode", "string", "relay mode.", 1, 31),
    ConfCommand("upstreams", "string", "upstreams", 1, 1023),
    ConfCommand("reconnect_interval", "int", "reconnect interval, unit s", 1, 3600),
    ConfCommand("idle_streams_timeout", "int", "idle streams timeout, unit s", -1, 3600),
)

_URL_HINT = (
    "url must like 'srt://hostname:port?streamid=your_stream_id' "
    "or 'srt://hostname:port/app/stream_name'"
)


class RelayUrlError(ValueError):
    """Raised for a relay URL that is not in one of the accepted forms."""


class RelayMode(enum.IntEnum):
    """How a relay chooses among several upstreams."""

    LOOP = 0
    HASH = 1
    ALL = 2


class RelayTarget(NamedTuple):
    """The parts of a relay URL needed to connect."""

    host: str
    port: int
    streamid: str


def _atoi(text: str) -> int:
    digits = ""
    for ch in text.lstrip():
        if ch.isdigit() or (not digits and ch in "+-"):
            digits += ch
        else:
            break
    try:
        return int(digits)
    except ValueError:
        return 0


def parse_relay_url(url: str) -> RelayTarget:
    """Split a relay URL into host, port and stream id."""
    if not url:
        raise RelayUrlError(f"empty url, {_URL_HINT}.")
    scheme, sep, rest = url.partition(":")
    if not sep:
        raise RelayUrlError(f"no ':', url='{url}', {_URL_HINT}.")
    if scheme != "srt":
        raise RelayUrlError(f"not 'srt' prefix, url='{url}', {_URL_HINT}.")
    rest = rest[2:]  # skip '//'

    host, sep, rest = rest.partition(":")
    if not sep:
        raise RelayUrlError(f"not 'hostname:port', url='{url}', {_URL_HINT}.")

    port_text, sep, query = rest.partition("?")
    if sep:
        key, sep, streamid = query.partition("=")
        if not sep or key != "streamid":
            raise RelayUrlError(
                f"url='{url}', no 'streamid=', url must like "
                "'hostname:port?streamid=your_stream_id'."
            )
        return RelayTarget(host, _atoi(port_text), streamid)

    port_text, sep, path = rest.partition("/")
    if not sep:
        raise RelayUrlError(f"url='{url}', {_URL_HINT}.")
    _app, sep, stream = path.partition("/")
    if not sep or not stream or "/" in stream[1:]:
        raise RelayUrlError(f"url='{url}', {_URL_HINT}.")
    return RelayTarget(host, _atoi(port_text), f"{host}/{path}")


Connector = Callable[[str, int, str], Any]


class Relay:
    """One connection to an upstream server.

    The transport is supplied as *connector*: a callable taking the server
    ip, port and stream id and returning a connection object with a
    ``close()`` method. Host names are resolved with *resolver*.
    """

    role_name = "relay"
    stat_base = ""

    def __init__(
        self,
        connector: Connector | None = None,
        resolver: Callable[[str], str] = gethostbyname,
    ) -> None:
        self._connector = connector
        self._resolver = resolver
        self._conn: Any = None
        self.url = ""
        self.streamid = ""
        self.server_ip = ""
        self.server_port = 0
        self.map_publisher: Any = None
        self.relay_manager: Any = None
        self.need_reconnect = True
        self.idle_streams_timeout = 10
        self.stat_info_base = ""
        self.inited = False

    @property
    def connection(self) -> Any:
        return self._conn

    def init(self) -> None:
        """Mark the relay ready for use."""
        self.inited = True

    def open(self, url: str) -> None:
        """Parse *url*, resolve its host and connect upstream."""
        self.url = url
        if self._conn is not None:
            raise RuntimeError(f"relay for url='{url}' is already open")
        target = parse_relay_url(url)
        if not target.streamid:
            raise RelayUrlError(f"url='{url}', no 'stream', {_URL_HINT}.")
        log.info("[%x]Relay.open, parse_url ok, url='%s'.", id(self), url)
        server_ip = self._resolver(target.host)
        if self._connector is None:
            raise ConnectionError("no transport configured for relay")
        self._conn = self._connector(server_ip, target.port, target.streamid)
        self.streamid = target.streamid
        self.server_ip = server_ip
        self.server_port = target.port

    def close(self) -> bool:
        """Close the upstream connection; return False if none was open."""
        if self._conn is None:
            return False
        log.info("[%x]Relay.close, ok, url='%s'.", id(self), self.url)
        conn, self._conn = self._conn, None
        conn.close()
        return True

    def uninit(self) -> None:
        """Ask the manager to reconnect this stream later, then close."""
        if self.relay_manager is not None:
            self.relay_manager.add_reconnect_stream(self.url)
            log.info("[%x]Relay.uninit, add_reconnect_stream, url=%s.", id(self), self.url)
        self.inited = False
        self.close()

    def get_peer_info(self) -> tuple[str, int]:
        """Return the upstream server's ip and port."""
        return self.server_ip, self.server_port

    def get_stat_base(self) -> str:
        """Return the %-format template of this relay's statistics line."""
        return self.stat_base