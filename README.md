# annego

A toolkit for small back-end services that speak a length-prefixed,
little-endian binary protocol over TCP. Everything it uses comes from the
standard library.

## Modules

| Module | Purpose |
| --- | --- |
| `annego.packet` | `Pack` / `Unpack` codec, `Header`, `Marshallable`, and `Registry`, which maps URIs to message classes |
| `annego.connect` | `YYConnect`, a connection that carries whole packets, plus `dial()` and the `ReadBuffer` behind it |
| `annego.server` | `YYServer`, which accepts connections and passes each message to the handler for its URI |
| `annego.console` | `Console`, a line-based admin console over TCP |
| `annego.timer` | `Timer`, which calls handlers at whole-second intervals |
| `annego.pool` | `Pool`, a connection pool with idle limit, active limit and idle timeout |
| `annego.logger` | Levelled logging (`LogLevel`) to standard output, or to syslog after `init_log()` |
| `annego.logcontext` | Typed log fields and `LogContent`, which renders them as a JSON object |
| `annego.config` | `HostInfoConfig`: reads a host-info INI file and picks addresses by ISP |
| `annego.netaddr` | Byte-order swaps and IPv4 helpers: `inet_aton`, `inet_ntoa`, `inet_ston`, `inet_ntos` |
| `annego.encoding` | XML string maps, and `EncodedJSONNode` for keeping JSON values as raw text |
| `annego.maputil` | `get_map_keys`, `map_diff`, `sorted_items`, `map_sorted_range`, `sort_values` |
| `annego.ringqueue` | `Queue`, a double-ended queue that returns `None` instead of raising when empty |
| `annego.rbtree` | `Tree` and `Map`, sorted containers with bidirectional iterators |

## Install

```
pip install .
```

To run the tests:

```
pip install ".[test]"
pytest
```

## Packets

Every packet begins with a 10-byte header: length (uint32), URI (uint32)
and result code (uint16). A message class sets its `uri` and writes and
reads its body:

```python
from annego.packet import Marshallable, Registry, get_marshal_pack

class Ping(Marshallable):
    uri = 1

    def __init__(self, seq=0, text=""):
        self.seq = seq
        self.text = text

    def marshal(self, pack):
        pack.put_uint32(self.seq)
        pack.put_short_str(self.text)

    def unmarshal(self, unpack):
        self.seq = unpack.pop_uint32()
        self.text = unpack.pop_short_str()

wire = get_marshal_pack(Ping(7, "hello")).data

registry = Registry()
registry.register(Ping)
msg, used = registry.unmarshal_bytes(wire)
```

A message that is a dataclass can skip `marshal` and `unmarshal`: the
defaults encode its fields in declaration order. The wire type comes from
the annotation (`bool`, `str`, `bytes`, message classes, and lists or dicts
of these) or from `field(metadata={"yyp": ...})`, with schemas such as
`packet.UINT32`, `packet.STR32`, `[packet.STR]` or `{packet.UINT32: packet.STR}`;
`"-"` leaves a field out.

`unmarshal_bytes` raises `InputNotEnough` while the data does not yet hold a
whole packet, and `UnpackError` for malformed data or an unregistered URI.

## Serving messages

```python
from annego.server import YYServer

def on_ping(conn, msg):
    conn.send(msg)          # echo back
    return True             # keep the connection open

server = YYServer()
server.register_handle(Ping, on_ping)
server.start("127.0.0.1:6000")
```

A connect handler returning `False` refuses the connection; a message
handler returning `False` closes it. The close handler receives `None` when
a handler closed the connection, or the error that ended it (`EOFError`
when the peer closed). `server.stop()` stops accepting.

A client calls `annego.connect.dial("127.0.0.1:6000")`, then `send(msg)` and
`recv(registry)`. `set_timeout(read, write)` sets timeouts in seconds, once;
`recv` raises `TimeoutError` when the read timeout passes.

## Admin console

```python
from annego.console import Console

console = Console()
console.add_default_commands()       # setLogLevel, getLogLevel
console.add_command("echo", "echo param", lambda params: params[1] if len(params) == 2 else "")
console.start_range("127.0.0.1:6000", 10)
print(console.listen_port())
```

Each line is split on spaces and the first word picks the command. A
`help` command listing all commands is added on start. `execute(line)` runs
a line directly and returns the reply.

## Timer

```python
from annego.timer import Timer

timer = Timer()
timer.add_handle(3, lambda now: print("every 3 s", now))
timer.start()
```

`tick(now)` can be called by hand instead: the first call records the
start time, later calls run the handlers that are due.

## Connection pool

```python
from annego.pool import Pool, PoolExhausted

with Pool(dial=make_connection, max_idle=4, max_active=10) as pool:
    conn = pool.get()
    try:
        ...
    finally:
        pool.put(conn, False)
```

`get` raises `PoolExhausted` once `max_active` connections are out.
`filter_idle(check)` closes idle connections that fail `check`.

## Structured logging

```python
from annego import logger
from annego.logcontext import LogContent, integer, text

ctx = LogContent(integer("uid", 123), text("op", "login"))
ctx.log(logger.LogLevel.INFO)        # ... {"uid":123,"op":"login"}
```

`logger.info("x=%d", 1)` and the other level functions prefix the caller's
file and line. `logger.init_log()` switches output to syslog and raises
`OSError` where the platform has none.

## What it does not do

- It is a library only: it installs no command-line programs.
- It has no service registration or discovery; servers and clients are
  given addresses directly.
- Connections are plain TCP, without TLS.