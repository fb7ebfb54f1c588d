"""Decoded protocol packets: header fields plus a request or a response."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any

from .codec import DecodeError, Reader
from .constants import Command, Key
from .queries import Query, new_query

_UINT32_MAX = 0xFFFFFFFF


def _read_uint32(reader: Reader) -> int:
    value = reader.read_uint()
    if value > _UINT32_MAX:
        raise DecodeError(f"integer {value} overflows uint32")
    return value


def _rfc3339(moment: datetime | None) -> str:
    if moment is None:
        return "0001-01-01T00:00:00Z"
    t = moment.astimezone(timezone.utc)
    return (
        f"{t.year:04d}-{t.month:02d}-{t.day:02d}"
        f"T{t.hour:02d}:{t.minute:02d}:{t.second:02d}Z"
    )


@dataclass
class Packet:
    """A packet: header fields and either a decoded request or a response body.

    For responses ``result_code`` holds the error code (0 for success) and
    ``result`` the decoded body map.
    """

    cmd: int = int(Command.OK)
    lsn: int = 0
    request_id: int = 0
    instance_id: int = 0
    timestamp: datetime | None = None
    request: Query | None = None
    result_code: int | None = None
    result: Any = None

    def __str__(self) -> str:
        if self.result_code is not None:
            return (
                f"Packet Type:{int(self.cmd)}, ReqID:{self.request_id}\n"
                f"code={self.result_code} {self.result!r}"
            )
        if self.request_id != 0:
            return (
                f"Packet Type:{int(self.cmd)}, ReqID:{self.request_id}\n"
                f"Request:{self.request!r}"
            )
        if self.lsn != 0:
            return (
                f"Packet LSN:{self.lsn}, InstanceID:{self.instance_id}, "
                f"Timestamp:{_rfc3339(self.timestamp)}\nRequest:{self.request!r}"
            )
        return f"Packet {self!r}"

    def unmarshal_header(self, data: bytes) -> bytes:
        """Decode the header map into this packet; return the body bytes."""
        reader = Reader(data)
        for _ in range(reader.read_map_header()):
            key = reader.read_uint()
            if key == Key.SYNC:
                self.request_id = reader.read_uint()
            elif key == Key.CODE:
                self.cmd = reader.read_uint()
            elif key == Key.SCHEMA_ID:
                _read_uint32(reader)
            elif key == Key.LSN:
                self.lsn = reader.read_uint()
            elif key == Key.INSTANCE_ID:
                self.instance_id = _read_uint32(reader)
            elif key == Key.TIMESTAMP:
                self.timestamp = datetime.fromtimestamp(reader.read_float(), timezone.utc)
            else:
                reader.skip()
        return reader.remaining()

    def unmarshal_request(self, data: bytes) -> bytes:
        """Decode the body according to ``cmd``; return the unconsumed bytes.

        Error responses and responses to requests fill ``result_code`` and
        ``result``; known request types fill ``request``.
        """
        if self.cmd & Command.ERROR_FLAG:
            return self._unpack_result(self.cmd ^ Command.ERROR_FLAG, data)

        query = new_query(self.cmd)
        if query is not None:
            rest = query.unmarshal(data)
            self.request = query
            return rest
        return self._unpack_result(int(Command.OK), data)

    def _unpack_result(self, code: int, data: bytes) -> bytes:
        reader = Reader(data)
        body = reader.read_value() if data else {}
        self.result_code = code
        self.result = body
        return reader.remaining()