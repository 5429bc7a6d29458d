# srtlive

Building blocks for an SRT live streaming setup, as a plain Python library
with no third-party dependencies.

## Modules

- `srtlive.common` – time helpers (`gettime_us`, `gettime_ms`,
  `gettime_fmt`, `gettime_default_string`), the 32-bit x31 string hash
  `hash_key`, `gethostbyname` (first IPv4 address), `mkdir_p`,
  `remove_marks` (strips one pair of matching surrounding quotes),
  `split_string` and `find_string`, and pid-file helpers `read_pid`,
  `write_pid`, `remove_pid` and `send_cmd`. By default the pid file is
  `/tmp/sls/pid.txt`; `send_cmd("reload")` sends SIGHUP and
  `send_cmd("stop")` sends SIGINT to the recorded pid, returning the signal
  sent or `None`.
- `srtlive.ts` – MPEG transport stream inspection. `TsInfo` collects the
  elementary stream pid, DTS/PTS, PAT, PMT and, when `need_spspps` is set,
  H.264 SPS/PPS; `parse_ts_info` updates it packet by packet.
  `parse_pes_pts`, `parse_spspps` and `pes_to_es` handle the lower layers.
- `srtlive.recyclearray` – `RecycleArray`, a fixed-size ring buffer that
  overwrites its oldest data, read by any number of independent
  `ReadCursor`s. Reads can be rounded down to a multiple of a packet size.
- `srtlive.syncclock` – `SyncClock.wait(rts_tm_ms)` sleeps so stream
  timestamps do not run ahead of the wall clock; a gap of `jitter` ms or more
  resets the reference instead. The clock and sleep functions can be
  injected.
- `srtlive.worker` – `Worker`, which runs `work()` on a daemon thread;
  `stop()` sets `is_exit`, joins the thread and calls `clear()`. It is also a
  context manager.
- `srtlive.conf` – a block-structured configuration format. Block types are
  registered in a `ConfRegistry` with their `ConfCommand`s;
  `parse_conf_lines` and `load_conf` return the top-level `ConfBlock`s.
  `parse_argv` applies `-name value` pairs to any object. Errors raise
  `ConfError`.
- `srtlive.tcprole` – `TcpRole`, a TCP socket opened as a non-blocking
  client (`open_client`) or a listening server (`open_server`), with
  `read`, `write`, `close` and `DataParam` for readiness flags.
- `srtlive.rolelist` – `RoleList`, a thread-safe FIFO; `erase()` calls
  `uninit()` on every queued role.
- `srtlive.tsreader` – `TsFileTimeReader`. `open()` generates
  `<file>.ts.rts` once (records of a little-endian signed 64-bit 90 kHz
  timestamp followed by 1316 bytes of TS), then `get()` returns an
  `RtsPacket(data, tm_ms)`; at end of file it loops or raises `EOFError`.
- `srtlive.relay` – `parse_relay_url`, `RelayUrlError`, `RelayMode`,
  `RELAY_CONF_COMMANDS` and `Relay`, an upstream connection whose transport
  is a caller-supplied connector.
- `srtlive.relaymanager` – `RelayInfo` and the abstract `RelayManager`,
  which connects relays and picks an upstream by hashing the stream name
  (`get_hash_url`, `connect_hash`).

## Configuration format

Each line ends in `;` (a `name value` setting), `{` (opening a block, whose
name may also stand alone on the line before) or `}`. Text after `#` is a
comment. `int` and `double` values are range-checked, `string` values are
length-checked, `bool` values must be `true` or `false`.

```python
from srtlive.conf import ConfBlock, ConfCommand, ConfRegistry, parse_conf_lines

registry = ConfRegistry()
registry.register("srt", ConfBlock, [ConfCommand("worker_threads", "int", "threads", 1, 64)])
registry.register("server", ConfBlock, [ConfCommand("listen", "int", "port", 1, 65535)])

text = """
srt {
    worker_threads 2;
    server {
        listen 8080;
    }
}
"""
(root,) = parse_conf_lines(text.splitlines(), registry)
root.worker_threads            # 2
root.children[0].listen        # 8080
```

## Relay URLs

```python
from srtlive.relay import parse_relay_url

parse_relay_url("srt://example.com:8080?streamid=live/stream")
# RelayTarget(host='example.com', port=8080, streamid='live/stream')
parse_relay_url("srt://example.com:8080/live/stream")
# RelayTarget(host='example.com', port=8080, streamid='example.com/live/stream')
```

Any other shape raises `RelayUrlError`.

## Ring buffer

```python
from srtlive.recyclearray import RecycleArray, ReadCursor

ring = RecycleArray()
cursor = ReadCursor()
ring.get(1316, cursor, 1316)          # first call only attaches the cursor
ring.put(b"\x47" * 1316)
chunk = ring.get(1316 * 10, cursor, 1316)   # 1316 bytes
```

## What this package does not do

It is a library, not a server: there is no command to run, no SRT
transport, and no publisher, player or listener. `Relay` needs a connector
callable to reach an upstream, and `RelayManager` leaves `start`,
`reconnect`, `add_reconnect_stream`, `create_relay` and `set_relay_param`
to subclasses. No block types other than those you register are known to
the configuration parser.

## Running the tests

```
pip install -e .[test]
pytest
```