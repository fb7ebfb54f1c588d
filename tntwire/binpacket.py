"""Length-prefixed binary packets and a pool to reuse them."""

from __future__ import annotations

import queue
import struct
from dataclasses import dataclass, field
from typing import Any

from .codec import DecodeError, Reader, pack_map_header, pack_uint
from .constants import Command, Key
from .packdata import PackData
from .packet import Packet
from .queries import Query

_POOL_SIZE = 1024
_HEADER_LENGTHS = {0xCC: 2, 0xCD: 3, 0xCE: 5}


def _read_exact(reader: Any, size: int) -> bytes:
    chunks = []
    remaining = size
    while remaining:
        chunk = reader.read(remaining)
        if not chunk:
            break
        chunks.append(chunk)
        remaining -= len(chunk)
    data = b"".join(chunks)
    if not data and size:
        raise EOFError("end of stream")
    if len(data) < size:
        raise EOFError(f"unexpected end of stream: read {len(data)} of {size} bytes")
    return data


@dataclass
class BinaryPacket:
    """A packet body with its header fields, as read from or written to a stream."""

    body: bytes = b""
    packet: Packet = field(default_factory=Packet)
    pool: BinaryPacketPool | None = field(default=None, repr=False, compare=False)

    def write_to(self, writer: Any) -> int:
        """Write the length prefix, header and body; return the bytes written."""
        header = b"".join(
            (
                pack_map_header(2),
                pack_uint(Key.CODE),
                pack_uint(self.packet.cmd),
                pack_uint(Key.SYNC),
                pack_uint(self.packet.request_id),
            )
        )
        prefix = b"\xce" + struct.pack(">I", len(header) + len(self.body)) + header
        writer.write(prefix)
        writer.write(self.body)
        written = len(prefix) + len(self.body)
        self.body = b""
        return written

    def read_from(self, reader: Any) -> int:
        """Read one length-prefixed packet into ``body``; return the bytes read."""
        first = _read_exact(reader, 1)
        code = first[0]
        if code <= 0x7F:
            prefix = first
        elif code in _HEADER_LENGTHS:
            prefix = first + _read_exact(reader, _HEADER_LENGTHS[code] - 1)
        else:
            raise DecodeError(f"wrong packet header: 0x{code:02x}")

        length = Reader(prefix).read_uint()
        if length == 0:
            raise DecodeError("Packet should not be 0 length")

        self.body = _read_exact(reader, length)
        return len(prefix) + length

    def read_raw_packet(self, reader: Any) -> int:
        """Read a packet and return only its request id (0 if absent)."""
        self.read_from(reader)
        body = Reader(self.body)
        for _ in range(body.read_map_header()):
            if body.read_uint() == Key.SYNC:
                return body.read_uint()
            body.skip()
        return 0

    def pack_query(self, query: Query, pack_data: PackData | None = None) -> None:
        """Encode ``query`` into the body and set the command code."""
        try:
            self.body = query.marshal(pack_data)
        except Exception:
            self.packet.cmd = int(Command.ERROR_FLAG)
            raise
        self.packet.cmd = int(query.command)

    def reset(self) -> None:
        """Clear the header fields and body."""
        self.packet = Packet()
        self.body = b""

    def release(self) -> None:
        """Return the packet to the pool it came from, if any."""
        if self.pool is not None:
            self.pool.put(self)


class BinaryPacketPool:
    """A bounded pool of reusable packets."""

    def __init__(self, size: int = _POOL_SIZE) -> None:
        self._queue: queue.Queue[BinaryPacket] = queue.Queue(maxsize=size)
        self._closed = False

    def get(self, request_id: int = 0) -> BinaryPacket:
        """Take a reset packet from the pool, or a new one if it is empty."""
        if self._closed:
            raise RuntimeError("packet pool is closed")
        try:
            packet = self._queue.get_nowait()
        except queue.Empty:
            packet = BinaryPacket()
        packet.reset()
        packet.pool = self
        packet.packet.request_id = request_id
        return packet

    def put(self, packet: BinaryPacket) -> None:
        """Return a packet to the pool; it is dropped when the pool is full."""
        if self._closed:
            raise RuntimeError("packet pool is closed")
        packet.pool = None
        try:
            self._queue.put_nowait(packet)
        except queue.Full:
            pass

    def close(self) -> None:
        """Close the pool and drop the packets it holds."""
        self._closed = True
        while True:
            try:
                self._queue.get_nowait()
            except queue.Empty:
                break