# tntwire

Building blocks for talking to a Tarantool server over its binary
(IPROTO) protocol:

* protocol constants: command codes (`Command`), body keys (`Key`), iterator
  types (`IterType`), server error codes (`ErrorCode`), defaults, and the
  helpers `version_id` and `iterator_name` (`tntwire.constants`);
* a small MessagePack `Reader` and the writers `pack_map_header`,
  `pack_array_header`, `pack_uint` and `pack_value` (`tntwire.codec`);
* `PackData`, which resolves space and index names to numbers and encodes
  the space and index entries of a request body (`tntwire.packdata`);
* request bodies — `Auth`, `Call`, `Call17`, `Eval`, `Insert`, `Delete`,
  `Ping`, `Join`, `FetchSnapshot` — with `marshal()` and `unmarshal()`, plus
  `new_query()` and the chap-sha1 `scramble()` (`tntwire.queries`);
* update operators `OpAdd`, `OpSub`, `OpBitAND`, `OpBitXOR`, `OpBitOR`,
  `OpDelete`, `OpInsert`, `OpAssign`, `OpSplice`, with `marshal_operator()`
  and `unmarshal_operator()` (`tntwire.operators`);
* `Packet`, which decodes a packet header and its request or response body
  (`tntwire.packet`);
* `BinaryPacket`, which reads and writes length-prefixed packets on byte
  streams, and `BinaryPacketPool` to reuse them (`tntwire.binpacket`);
* an error hierarchy rooted at `TarantoolError` (`tntwire.errors`);
* `CountedReader` and `CountedWriter`, which count calls on a `Counter`
  (`tntwire.countio`);
* `Box` and `new_box()`, which start a throw-away local `tarantool` process
  for tests (`tntwire.box`).

## Installing

```
pip install tntwire
```

Running the test suite:

```
pip install "tntwire[test]"
pytest
```

Python 3.10 or newer is required. `Box` additionally needs a `tarantool`
executable on `PATH` (or the one named by `BoxOptions.executable`) and Unix
domain sockets.

## Examples

Version numbers are packed into one integer:

```python
from tntwire.constants import IterType, iterator_name, version_id

assert version_id(2, 3, 1) == 131841
print(iterator_name(IterType.ALL))   # "ALL"
print(iterator_name(42))             # "ER"
```

Encoding a request body and decoding it back:

```python
from tntwire.queries import Call17

body = Call17(name="sel_name", tuple=[2, "Music"]).marshal()
decoded = Call17()
decoded.unmarshal(body)
assert decoded.name == "sel_name" and decoded.tuple == [2, "Music"]
```

Resolving space names while packing:

```python
from tntwire.packdata import PackData
from tntwire.queries import Insert

schema = PackData()
schema.space_map["tester"] = 42
body = Insert(space="tester", tuple=[4, "Hello"]).marshal(schema)
```

Computing the authentication scramble from the base64 salt the server sends
in its greeting:

```python
from tntwire.queries import scramble

password = "password"
digest = scramble(greeting_salt, password)
```

Framing a request and reading a packet back from a stream:

```python
import io

from tntwire.binpacket import BinaryPacket
from tntwire.packet import Packet
from tntwire.queries import Ping

out = io.BytesIO()
outgoing = BinaryPacket()
outgoing.packet.request_id = 1
outgoing.pack_query(Ping())
outgoing.write_to(out)

incoming = BinaryPacket()
incoming.read_from(io.BytesIO(out.getvalue()))

packet = Packet()
body = packet.unmarshal_header(incoming.body)
packet.unmarshal_request(body)
print(packet.cmd, packet.request_id)
```

For responses, `Packet.result_code` holds the error code (0 on success) and
`Packet.result` the decoded body map.

Starting a temporary server for an integration test:

```python
from tntwire.box import new_box

with new_box("box.schema.space.create('tester')", None) as box:
    print(box.version(), box.addr())
```

`new_box` tries ports 8000 to 9000 unless `BoxOptions` narrows the range or
pins `port`; it raises `TarantoolError` if none can be bound. `Box.close()`
stops the process and removes its temporary directory.

## Errors

All errors derive from `TarantoolError`. `QueryError` carries an error code
in `code`; `UnexpectedReplicaSetUUIDError` is a `QueryError` with `expected`
and `got`. `ConnectionError` and `ContextError` describe transport and
deadline failures. Each answers `temporary()` and `timeout()`, so callers
can decide whether a retry makes sense. Malformed MessagePack raises
`tntwire.codec.DecodeError`, a `ValueError`.

## What this package does not do

* It has no client connection: it does not dial a server, read the
  greeting, authenticate, pull the schema or execute queries. The pieces
  above are what such a client would be built from.
* It has no `Select`, `Replace`, `Update` or `Upsert` request types;
  `new_query()` returns `None` for those commands. The update operators
  exist, but no request here carries them.
* It does not act as a replica: `Join` and `FetchSnapshot` can be encoded,
  but there is no subscription or snapshot streaming.