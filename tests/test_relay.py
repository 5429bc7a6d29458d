import pytest

from srtlive.conf import ConfBlock, ConfError, ConfRegistry, parse_conf_lines
from srtlive.relay import (
    RELAY_CONF_COMMANDS,
    Relay,
    RelayMode,
    RelayUrlError,
    parse_relay_url,
)


class FakeConn:
    def __init__(self, ip, port, streamid):
        self.args = (ip, port, streamid)
        self.closed = False

    def close(self):
        self.closed = True


class FakeManager:
    def __init__(self):
        self.urls = []

    def add_reconnect_stream(self, url):
        self.urls.append(url)


def make_relay():
    return Relay(connector=FakeConn, resolver=lambda host: "127.0.0.1")


def test_parse_streamid_form():
    target = parse_relay_url("srt://upstream.example.com:8080?streamid=uplive.sls.net/live/1234")
    assert target.host == "upstream.example.com"
    assert target.port == 8080
    assert target.streamid == "uplive.sls.net/live/1234"


def test_parse_path_form():
    target = parse_relay_url("srt://127.0.0.1:9090/live/test")
    assert target.host == "127.0.0.1"
    assert target.port == 9090
    assert target.streamid == "127.0.0.1/live/test"


@pytest.mark.parametrize(
    "url",
    [
        "",
        "nocolon",
        "http://host:1?streamid=x",
        "srt://host?streamid=x",
        "srt://host:1",
        "srt://host:1/live",
        "srt://host:1/live/",
        "srt://host:1/live/a/b",
        "srt://host:1?stream=x",
        "srt://host:1?streamid",
    ],
)
def test_parse_bad_urls(url):
    with pytest.raises(RelayUrlError):
        parse_relay_url(url)


def test_relay_url_error_is_value_error():
    with pytest.raises(ValueError):
        parse_relay_url("udp://h:1/a/b")


def test_relay_mode_values():
    assert RelayMode(0) is RelayMode.LOOP
    assert RelayMode(1) is RelayMode.HASH
    assert RelayMode(2) is RelayMode.ALL
    with pytest.raises(ValueError):
        RelayMode(3)


def test_open_connects_and_records_peer():
    relay = make_relay()
    relay.open("srt://somehost:9000/live/cam")
    assert relay.connection.args == ("127.0.0.1", 9000, "somehost/live/cam")
    assert relay.get_peer_info() == ("127.0.0.1", 9000)
    assert relay.url == "srt://somehost:9000/live/cam"


def test_open_twice_raises():
    relay = make_relay()
    relay.open("srt://h:1/live/a")
    with pytest.raises(RuntimeError):
        relay.open("srt://h:1/live/a")


def test_open_without_connector_raises():
    relay = Relay(resolver=lambda host: "127.0.0.1")
    with pytest.raises(ConnectionError):
        relay.open("srt://h:1/live/a")
    assert relay.connection is None


def test_open_bad_url_keeps_url():
    relay = make_relay()
    with pytest.raises(RelayUrlError):
        relay.open("srt://h:1/live")
    assert relay.url == "srt://h:1/live"
    assert relay.connection is None


def test_close_closes_connection():
    relay = make_relay()
    relay.open("srt://h:1/live/a")
    conn = relay.connection
    assert relay.close() is True
    assert conn.closed is True
    assert relay.close() is False


def test_uninit_requests_reconnect_and_closes():
    relay = make_relay()
    manager = FakeManager()
    relay.relay_manager = manager
    relay.init()
    relay.open("srt://h:1/live/a")
    conn = relay.connection
    relay.uninit()
    assert manager.urls == ["srt://h:1/live/a"]
    assert conn.closed is True
    assert relay.inited is False


def test_uninit_without_manager_only_closes():
    relay = make_relay()
    relay.open("srt://h:1/live/a")
    conn = relay.connection
    relay.uninit()
    assert conn.closed is True
    assert relay.connection is None


def _registry():
    registry = ConfRegistry()
    registry.register("relay", ConfBlock, RELAY_CONF_COMMANDS)
    return registry


def test_relay_conf_block_parses():
    lines = [
        "relay {",
        "    type pull;",
        "    mode loop;",
        "    upstreams 127.0.0.1:9090/live;",
        "    reconnect_interval 10;",
        "    idle_streams_timeout -1;",
        "}",
    ]
    (block,) = parse_conf_lines(lines, _registry())
    assert block.type == "pull"
    assert block.mode == "loop"
    assert block.upstreams == "127.0.0.1:9090/live"
    assert block.reconnect_interval == 10
    assert block.idle_streams_timeout == -1


def test_relay_conf_range_checked():
    with pytest.raises(ConfError):
        parse_conf_lines(["relay {", "reconnect_interval 0;", "}"], _registry())