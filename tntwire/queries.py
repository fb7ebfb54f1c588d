"""Request types and their MessagePack body encodings."""

from __future__ import annotations

import base64
import binascii
import hashlib
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, ClassVar

from .codec import DecodeError, Reader, pack_array_header, pack_map_header, pack_uint, pack_value
from .constants import Command, Key
from .errors import NOT_SUPPORTED
from .packdata import DEFAULT_PACK_DATA, PackData

AUTH_HASH = "chap-sha1"
SCRAMBLE_SIZE = 20


def scramble(encoded_salt: bytes | str, password: str) -> bytes:
    """Compute the chap-sha1 scramble of ``password`` with a base64 salt."""
    try:
        salt = base64.b64decode(encoded_salt, validate=True)
    except (binascii.Error, ValueError) as exc:
        raise ValueError(f"invalid salt: {exc}") from exc
    if len(salt) < SCRAMBLE_SIZE:
        raise ValueError(f"salt is too short: {len(salt)} bytes")
    step1 = hashlib.sha1(password.encode("utf-8")).digest()
    step2 = hashlib.sha1(step1).digest()
    step3 = hashlib.sha1(salt[:SCRAMBLE_SIZE] + step2).digest()
    return bytes(a ^ b for a, b in zip(step1, step3))


def _read_tuple(reader: Reader) -> list:
    value = reader.read_value()
    if not isinstance(value, list):
        raise DecodeError(f"tuple is not an array: {value!r}")
    return value


def _pack_tuple(values: list | None) -> bytes:
    if values is None:
        return pack_array_header(0)
    return pack_value(values)


class Query(ABC):
    """A request that can be encoded into and decoded from a packet body."""

    command: ClassVar[Command]

    @abstractmethod
    def marshal(self, pack_data: PackData | None = None) -> bytes:
        """Encode the request body."""

    @abstractmethod
    def unmarshal(self, data: bytes) -> bytes:
        """Decode the request body from ``data``; return the unconsumed bytes."""


@dataclass
class Auth(Query):
    """Authentication request."""

    command: ClassVar[Command] = Command.AUTH

    user: str = ""
    password: str = ""
    greeting_auth: bytes = b""

    def marshal(self, pack_data: PackData | None = None) -> bytes:
        try:
            scr = scramble(self.greeting_auth, self.password)
        except ValueError as exc:
            raise ValueError(f"auth: scrambling failure: {exc}") from exc
        return b"".join(
            (
                pack_map_header(2),
                pack_uint(Key.USER_NAME),
                pack_value(self.user),
                pack_uint(Key.TUPLE),
                pack_array_header(2),
                pack_value(AUTH_HASH),
                pack_value(scr),
            )
        )

    def unmarshal(self, data: bytes) -> bytes:
        """Decode the body; the scramble is stored in ``greeting_auth``."""
        reader = Reader(data)
        for _ in range(reader.read_map_header()):
            key = reader.read_uint()
            if key == Key.USER_NAME:
                self.user = reader.read_string()
            elif key == Key.TUPLE:
                count = reader.read_array_header()
                if count == 2:
                    reader.skip()
                    try:
                        self.greeting_auth = reader.read_bytes()
                    except DecodeError:
                        self.greeting_auth = reader.read_string().encode("utf-8")
                else:
                    for _ in range(count):
                        reader.skip()
            else:
                raise DecodeError("Auth.Unpack: Expected KeyUserName or KeyTuple")
        return reader.remaining()


@dataclass
class _FunctionCall(Query):
    name: str = ""
    tuple: list | None = None

    _label: ClassVar[str] = "Call"

    def _marshal_call(self) -> bytes:
        return b"".join(
            (
                pack_map_header(2),
                pack_uint(Key.FUNCTION_NAME),
                pack_value(self.name),
                pack_uint(Key.TUPLE),
                _pack_tuple(self.tuple),
            )
        )

    def _unmarshal_call(self, data: bytes) -> bytes:
        self.name = ""
        self.tuple = None
        reader = Reader(data)
        size = reader.read_map_header()
        if size != 2:
            raise DecodeError(f"{self._label}.Unpack: expected map of length 2")
        for _ in range(size):
            key = reader.read_uint()
            if key == Key.FUNCTION_NAME:
                self.name = reader.read_string()
            elif key == Key.TUPLE:
                self.tuple = _read_tuple(reader) or None
            else:
                reader.skip()
        if not self.name:
            raise DecodeError(f"{self._label}.Unpack: no function name specified")
        return reader.remaining()


@dataclass
class Call(_FunctionCall):
    """Stored procedure call with the old result format."""

    command: ClassVar[Command] = Command.CALL
    _label: ClassVar[str] = "Call"

    def marshal(self, pack_data: PackData | None = None) -> bytes:
        return self._marshal_call()

    def unmarshal(self, data: bytes) -> bytes:
        return self._unmarshal_call(data)


@dataclass
class Call17(_FunctionCall):
    """Stored procedure call with the new result format (server >= 1.7.2)."""

    command: ClassVar[Command] = Command.CALL17
    _label: ClassVar[str] = "Call17"

    def marshal(self, pack_data: PackData | None = None) -> bytes:
        return self._marshal_call()

    def unmarshal(self, data: bytes) -> bytes:
        return self._unmarshal_call(data)


@dataclass
class Eval(Query):
    """Evaluation of a Lua expression."""

    command: ClassVar[Command] = Command.EVAL

    expression: str = ""
    tuple: list | None = None

    def marshal(self, pack_data: PackData | None = None) -> bytes:
        return b"".join(
            (
                pack_map_header(2),
                pack_uint(Key.EXPRESSION),
                pack_value(self.expression),
                pack_uint(Key.TUPLE),
                _pack_tuple(self.tuple),
            )
        )

    def unmarshal(self, data: bytes) -> bytes:
        reader = Reader(data)
        size = reader.read_map_header()
        if size != 2:
            raise DecodeError("Eval.Unpack: expected map of length 2")
        for _ in range(size):
            key = reader.read_uint()
            if key == Key.EXPRESSION:
                self.expression = reader.read_string()
            elif key == Key.TUPLE:
                self.tuple = _read_tuple(reader) or None
            else:
                reader.skip()
        return reader.remaining()


@dataclass
class Insert(Query):
    """Insertion of a tuple into a space."""

    command: ClassVar[Command] = Command.INSERT

    space: Any = None
    tuple: list | None = None

    def marshal(self, pack_data: PackData | None = None) -> bytes:
        if self.tuple is None:
            raise ValueError("Tuple can not be nil")
        data = pack_data if pack_data is not None else DEFAULT_PACK_DATA
        return b"".join(
            (
                pack_map_header(2),
                data.pack_space(self.space),
                pack_uint(Key.TUPLE),
                pack_value(self.tuple),
            )
        )

    def unmarshal(self, data: bytes) -> bytes:
        self.space = None
        self.tuple = None
        reader = Reader(data)
        for _ in range(reader.read_map_header()):
            key = reader.read_uint()
            if key == Key.SPACE_NO:
                self.space = reader.read_uint()
            elif key == Key.TUPLE:
                self.tuple = _read_tuple(reader)
            else:
                reader.skip()
        if self.space is None:
            raise DecodeError("Insert.Unpack: no space specified")
        if self.tuple is None:
            raise DecodeError("Insert.Unpack: no tuple specified")
        return reader.remaining()


@dataclass
class Delete(Query):
    """Deletion of a tuple by a single key or a composite key."""

    command: ClassVar[Command] = Command.DELETE

    space: Any = None
    index: Any = None
    key: Any = None
    key_tuple: list | None = None

    def marshal(self, pack_data: PackData | None = None) -> bytes:
        data = pack_data if pack_data is not None else DEFAULT_PACK_DATA
        if self.key is not None:
            key_part = data.packed_single_key + pack_value(self.key)
        elif self.key_tuple is not None:
            key_part = pack_uint(Key.KEY) + pack_value(self.key_tuple)
        else:
            raise ValueError("Delete: no key specified")
        return b"".join(
            (
                pack_map_header(3),
                data.pack_space(self.space),
                data.pack_index(self.space, self.index),
                key_part,
            )
        )

    def unmarshal(self, data: bytes) -> bytes:
        self.space = None
        self.index = 0
        self.key = None
        self.key_tuple = None
        reader = Reader(data)
        for _ in range(reader.read_map_header()):
            key = reader.read_uint()
            if key == Key.SPACE_NO:
                self.space = reader.read_uint()
            elif key == Key.INDEX_NO:
                self.index = reader.read_uint()
            elif key == Key.KEY:
                values = _read_tuple(reader)
                if len(values) == 1:
                    self.key = values[0]
                    self.key_tuple = None
                else:
                    self.key_tuple = values
            else:
                reader.skip()
        if self.space is None:
            raise DecodeError("Delete.Unpack: no space specified")
        if self.key is None and self.key_tuple is None:
            raise DecodeError("Delete.Unpack: no tuple specified")
        return reader.remaining()


@dataclass
class Ping(Query):
    """Ping request; has an empty body."""

    command: ClassVar[Command] = Command.PING

    def marshal(self, pack_data: PackData | None = None) -> bytes:
        return b""

    def unmarshal(self, data: bytes) -> bytes:
        return b""


@dataclass
class Join(Query):
    """Replica JOIN request."""

    command: ClassVar[Command] = Command.JOIN

    uuid: str = ""

    def marshal(self, pack_data: PackData | None = None) -> bytes:
        return pack_map_header(1) + pack_uint(Key.INSTANCE_UUID) + pack_value(self.uuid)

    def unmarshal(self, data: bytes) -> bytes:
        raise NOT_SUPPORTED


@dataclass
class FetchSnapshot(Query):
    """FETCH_SNAPSHOT request that starts anonymous replication."""

    command: ClassVar[Command] = Command.FETCH_SNAPSHOT

    def marshal(self, pack_data: PackData | None = None) -> bytes:
        return b""

    def unmarshal(self, data: bytes) -> bytes:
        raise NOT_SUPPORTED


_QUERY_TYPES: dict[int, type[Query]] = {
    Command.AUTH: Auth,
    Command.INSERT: Insert,
    Command.DELETE: Delete,
    Command.CALL: Call,
    Command.CALL17: Call17,
    Command.PING: Ping,
    Command.EVAL: Eval,
}


def new_query(cmd: int) -> Query | None:
    """Return an empty request object for command ``cmd``, or None if unknown."""
    query_type = _QUERY_TYPES.get(cmd)
    return query_type() if query_type is not None else None