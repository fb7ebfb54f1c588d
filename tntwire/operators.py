"""Update operations and their MessagePack encoding."""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, fields
from typing import Any, Callable, ClassVar

from .codec import DecodeError, Reader, pack_value


class Operator(ABC):
    """A single field operation of an UPDATE or UPSERT request."""

    symbol: ClassVar[str]

    @abstractmethod
    def as_tuple(self) -> list:
        """Return the operation as the list sent over the wire."""


@dataclass
class OpAdd(Operator):
    """Add ``argument`` to a numeric field."""

    symbol: ClassVar[str] = "+"

    field: int = 0
    argument: int = 0

    def as_tuple(self) -> list:
        return [self.symbol, self.field, self.argument]


@dataclass
class OpSub(Operator):
    """Subtract ``argument`` from a numeric field."""

    symbol: ClassVar[str] = "-"

    field: int = 0
    argument: int = 0

    def as_tuple(self) -> list:
        return [self.symbol, self.field, self.argument]


@dataclass
class OpBitAND(Operator):
    """Bitwise AND of a field with ``argument``."""

    symbol: ClassVar[str] = "&"

    field: int = 0
    argument: int = 0

    def as_tuple(self) -> list:
        return [self.symbol, self.field, self.argument]


@dataclass
class OpBitXOR(Operator):
    """Bitwise XOR of a field with ``argument``."""

    symbol: ClassVar[str] = "^"

    field: int = 0
    argument: int = 0

    def as_tuple(self) -> list:
        return [self.symbol, self.field, self.argument]


@dataclass
class OpBitOR(Operator):
    """Bitwise OR of a field with ``argument``."""

    symbol: ClassVar[str] = "|"

    field: int = 0
    argument: int = 0

    def as_tuple(self) -> list:
        return [self.symbol, self.field, self.argument]


@dataclass
class OpDelete(Operator):
    """Delete ``count`` fields starting at ``from_``."""

    symbol: ClassVar[str] = "#"

    from_: int = 0
    count: int = 0

    def as_tuple(self) -> list:
        return [self.symbol, self.from_, self.count]


@dataclass
class OpInsert(Operator):
    """Insert ``argument`` before field ``before``."""

    symbol: ClassVar[str] = "!"

    before: int = 0
    argument: Any = None

    def as_tuple(self) -> list:
        return [self.symbol, self.before, self.argument]


@dataclass
class OpAssign(Operator):
    """Assign ``argument`` to a field."""

    symbol: ClassVar[str] = "="

    field: int = 0
    argument: Any = None

    def as_tuple(self) -> list:
        return [self.symbol, self.field, self.argument]


@dataclass
class OpSplice(Operator):
    """Replace part of a string field with ``argument``."""

    symbol: ClassVar[str] = ":"

    field: int = 0
    offset: int = 0
    position: int = 0
    argument: str = ""

    def as_tuple(self) -> list:
        return [self.symbol, self.field, self.position, self.offset, self.argument]


_ArgReaders = tuple[tuple[str, Callable[[Reader], Any]], ...]

_OPERATORS: dict[str, tuple[type[Operator], _ArgReaders]] = {
    "+": (OpAdd, (("argument", Reader.read_int),)),
    "-": (OpSub, (("argument", Reader.read_int),)),
    "&": (OpBitAND, (("argument", Reader.read_uint),)),
    "^": (OpBitXOR, (("argument", Reader.read_uint),)),
    "|": (OpBitOR, (("argument", Reader.read_uint),)),
    "#": (OpDelete, (("count", Reader.read_uint),)),
    "!": (OpInsert, (("argument", Reader.read_value),)),
    "=": (OpAssign, (("argument", Reader.read_value),)),
    ":": (
        OpSplice,
        (
            ("position", Reader.read_uint),
            ("offset", Reader.read_uint),
            ("argument", Reader.read_string),
        ),
    ),
}


def marshal_operator(op: Operator) -> bytes:
    """Encode an operation as a MessagePack array."""
    return pack_value(op.as_tuple())


def unmarshal_operator(data: bytes) -> tuple[Operator, bytes]:
    """Decode one operation; return it with the unconsumed bytes."""
    reader = Reader(data)
    count = reader.read_array_header()
    symbol = reader.read_string()
    first = reader.read_int()

    try:
        op_type, arg_readers = _OPERATORS[symbol]
    except KeyError:
        raise DecodeError(f"unknown op {symbol}") from None

    if count != len(arg_readers) + 2:
        raise DecodeError(
            f"unexpected number of arguments in {op_type.__name__}: {count}"
        )

    values = {fields(op_type)[0].name: first}
    for name, read in arg_readers:
        values[name] = read(reader)
    return op_type(**values), reader.remaining()