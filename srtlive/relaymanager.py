"""Base class for managers that create and supervise relays."""

from __future__ import annotations

import abc
import logging
from dataclasses import dataclass, field
from typing import Any

from .common import gettime_default_string, hash_key
from .relay import Relay, RelayMode

log = logging.getLogger(__name__)


@dataclass
class RelayInfo:
    """Relay settings shared by all relays of one application."""

    upstreams: list[str] = field(default_factory=list)
    type: str = ""
    mode: RelayMode = RelayMode.LOOP
    reconnect_interval: int = 10  # seconds
    idle_streams_timeout: int = 10  # seconds, -1 for unlimited


class RelayManager(abc.ABC):
    """Creates relays for one stream and connects them upstream."""

    def __init__(self) -> None:
        self.map_publisher: Any = None
        self.map_data: Any = None
        self.role_list: Any = None
        self.relay_info: RelayInfo | None = None
        self.reconnect_begin_tm = 0  # ms
        self.listen_port = 0
        self.app_uplive = ""
        self.stream_name = ""

    def set_relay_info(self, app_uplive: str, stream_name: str) -> None:
        """Set the application and stream this manager relays."""
        self.app_uplive = app_uplive
        self.stream_name = stream_name

    @abc.abstractmethod
    def start(self) -> None:
        """Start relaying."""

    @abc.abstractmethod
    def reconnect(self, cur_tm_ms: int) -> None:
        """Retry failed connections that are due at *cur_tm_ms*."""

    @abc.abstractmethod
    def add_reconnect_stream(self, relay_url: str) -> None:
        """Remember *relay_url* for a later reconnect."""

    @abc.abstractmethod
    def create_relay(self) -> Relay:
        """Return a new, unopened relay."""

    @abc.abstractmethod
    def set_relay_param(self, relay: Relay) -> None:
        """Attach a freshly connected *relay*; raise to reject it."""

    def connect(self, url: str) -> Relay:
        """Create a relay, open it on *url* and hand it to set_relay_param."""
        if not url:
            raise ValueError("empty relay url")
        relay = self.create_relay()
        relay.init()
        try:
            relay.open(url)
        except Exception:
            relay.uninit()
            raise

        if self.relay_info is not None:
            relay.idle_streams_timeout = self.relay_info.idle_streams_timeout

        stat_base = relay.get_stat_base()
        if stat_base:
            peer_name, peer_port = relay.get_peer_info()
            relay.stat_info_base = stat_base % (
                self.listen_port, relay.role_name, self.app_uplive, self.stream_name,
                url, peer_name, peer_port, gettime_default_string(),
            )

        try:
            self.set_relay_param(relay)
        except Exception:
            relay.uninit()
            raise
        return relay

    def connect_hash(self) -> Relay:
        """Connect to the upstream chosen by hashing the stream name."""
        url = f"srt://{self.get_hash_url()}/{self.stream_name}"
        try:
            relay = self.connect(url)
        except Exception:
            log.info("[%x]RelayManager.connect_hash, failed, url=%s, stream_name=%s.",
                     id(self), url, self.stream_name)
            raise
        log.info("[%x]RelayManager.connect_hash, ok, url=%s, stream_name=%s.",
                 id(self), url, self.stream_name)
        return relay

    def get_hash_url(self) -> str:
        """Return the upstream selected by the stream name's hash, or ''."""
        if self.relay_info is None:
            return ""
        upstreams = self.relay_info.upstreams
        if not upstreams:
            raise ValueError("no upstreams configured")
        return upstreams[hash_key(self.stream_name) % len(upstreams)]