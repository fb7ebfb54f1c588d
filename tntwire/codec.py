"""MessagePack reading and writing helpers for the wire protocol."""

from __future__ import annotations

import struct
from typing import Any

import msgpack

_UINT64_MAX = (1 << 64) - 1
_INT64_MAX = (1 << 63) - 1

_FIXED = {
    0xCA: ">f",
    0xCB: ">d",
    0xCC: ">B",
    0xCD: ">H",
    0xCE: ">I",
    0xCF: ">Q",
    0xD0: ">b",
    0xD1: ">h",
    0xD2: ">i",
    0xD3: ">q",
}

_STR_LENGTHS = {0xD9: ">B", 0xDA: ">H", 0xDB: ">I"}
_BIN_LENGTHS = {0xC4: ">B", 0xC5: ">H", 0xC6: ">I"}
_MAP_LENGTHS = {0xDE: ">H", 0xDF: ">I"}
_ARRAY_LENGTHS = {0xDC: ">H", 0xDD: ">I"}


class DecodeError(ValueError):
    """The data is not valid MessagePack or not of the expected type."""


class Reader:
    """Sequential reader over a MessagePack byte string.

    A read that fails leaves the position unchanged.
    """

    def __init__(self, data: bytes | bytearray | memoryview) -> None:
        self._data = bytes(data)
        self._pos = 0

    def _peek(self) -> int:
        if self._pos >= len(self._data):
            raise DecodeError("unexpected end of data")
        return self._data[self._pos]

    def _unpack(self, fmt: str) -> tuple[Any, int]:
        start = self._pos + 1
        end = start + struct.calcsize(fmt)
        if end > len(self._data):
            raise DecodeError("unexpected end of data")
        return struct.unpack_from(fmt, self._data, start)[0], end

    def _integer(self) -> tuple[int, int]:
        code = self._peek()
        if code <= 0x7F:
            return code, self._pos + 1
        if code >= 0xE0:
            return code - 0x100, self._pos + 1
        if 0xCC <= code <= 0xD3:
            return self._unpack(_FIXED[code])
        raise DecodeError(f"expected integer, found type byte 0x{code:02x}")

    def _length(
        self, what: str, fix_low: int, fix_high: int, lengths: dict[int, str]
    ) -> tuple[int, int]:
        code = self._peek()
        if fix_low <= code <= fix_high:
            return code - fix_low, self._pos + 1
        if code in lengths:
            return self._unpack(lengths[code])
        raise DecodeError(f"expected {what}, found type byte 0x{code:02x}")

    def _payload(self, length: int, start: int) -> tuple[bytes, int]:
        end = start + length
        if end > len(self._data):
            raise DecodeError("unexpected end of data")
        return self._data[start:end], end

    def read_map_header(self) -> int:
        """Read a map header and return the number of entries."""
        size, self._pos = self._length("map", 0x80, 0x8F, _MAP_LENGTHS)
        return size

    def read_array_header(self) -> int:
        """Read an array header and return the number of elements."""
        size, self._pos = self._length("array", 0x90, 0x9F, _ARRAY_LENGTHS)
        return size

    def read_uint(self) -> int:
        """Read a non-negative integer."""
        value, end = self._integer()
        if value < 0:
            raise DecodeError(f"integer {value} is below zero")
        self._pos = end
        return value

    def read_int(self) -> int:
        """Read an integer that fits in a signed 64-bit value."""
        value, end = self._integer()
        if value > _INT64_MAX:
            raise DecodeError(f"integer {value} overflows int64")
        self._pos = end
        return value

    def read_float(self) -> float:
        """Read a 32- or 64-bit float."""
        code = self._peek()
        if code not in (0xCA, 0xCB):
            raise DecodeError(f"expected float, found type byte 0x{code:02x}")
        value, self._pos = self._unpack(_FIXED[code])
        return float(value)

    def read_string(self) -> str:
        """Read a UTF-8 string."""
        length, start = self._length("string", 0xA0, 0xBF, _STR_LENGTHS)
        raw, end = self._payload(length, start)
        try:
            text = raw.decode("utf-8")
        except UnicodeDecodeError as exc:
            raise DecodeError(f"invalid UTF-8 string: {exc}") from exc
        self._pos = end
        return text

    def read_bytes(self) -> bytes:
        """Read a binary blob."""
        code = self._peek()
        if code not in _BIN_LENGTHS:
            raise DecodeError(f"expected bytes, found type byte 0x{code:02x}")
        length, start = self._unpack(_BIN_LENGTHS[code])
        raw, self._pos = self._payload(length, start)
        return raw

    def _unpacker(self) -> msgpack.Unpacker:
        unpacker = msgpack.Unpacker(raw=False, strict_map_key=False)
        unpacker.feed(self._data[self._pos :])
        return unpacker

    def read_value(self) -> Any:
        """Read any value: arrays become lists, maps become dicts."""
        unpacker = self._unpacker()
        try:
            value = unpacker.unpack()
        except msgpack.OutOfData as exc:
            raise DecodeError("unexpected end of data") from exc
        except (ValueError, TypeError) as exc:
            raise DecodeError(f"invalid value: {exc}") from exc
        self._pos += unpacker.tell()
        return value

    def skip(self) -> None:
        """Skip over one value of any type."""
        unpacker = self._unpacker()
        try:
            unpacker.skip()
        except msgpack.OutOfData as exc:
            raise DecodeError("unexpected end of data") from exc
        except (ValueError, TypeError) as exc:
            raise DecodeError(f"invalid value: {exc}") from exc
        self._pos += unpacker.tell()

    def remaining(self) -> bytes:
        """Return the bytes not yet consumed."""
        return self._data[self._pos :]


def _header(size: int, fix_base: int, code16: int, code32: int) -> bytes:
    if size < 0 or size > 0xFFFFFFFF:
        raise ValueError(f"header size out of range: {size}")
    if size <= 0x0F:
        return bytes((fix_base | size,))
    if size <= 0xFFFF:
        return struct.pack(">BH", code16, size)
    return struct.pack(">BI", code32, size)


def pack_map_header(size: int) -> bytes:
    """Encode a map header for ``size`` entries."""
    return _header(size, 0x80, 0xDE, 0xDF)


def pack_array_header(size: int) -> bytes:
    """Encode an array header for ``size`` elements."""
    return _header(size, 0x90, 0xDC, 0xDD)


def pack_uint(value: int) -> bytes:
    """Encode a non-negative integer in its shortest form."""
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValueError(f"not an integer: {value!r}")
    if value < 0 or value > _UINT64_MAX:
        raise ValueError(f"unsigned integer out of range: {value}")
    return msgpack.packb(int(value))


def pack_value(value: Any) -> bytes:
    """Encode any supported value; bytes become bin, tuples become arrays."""
    return msgpack.packb(value, use_bin_type=True)