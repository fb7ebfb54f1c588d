"""Space and index name resolution and pre-encoded request fragments."""

from __future__ import annotations

from typing import Any

from .codec import pack_array_header, pack_uint
from .constants import DEFAULT_LIMIT, IterType, Key

_UINT64_MASK = (1 << 64) - 1


def number_to_uint64(number: Any) -> int:
    """Convert an integer to its unsigned 64-bit form; reject anything else."""
    if isinstance(number, bool) or not isinstance(number, int):
        raise ValueError(f"bad number {number!r}")
    return number & _UINT64_MASK


def _pair(key: int, value: int) -> bytes:
    return pack_uint(key) + pack_uint(value)


class PackData:
    """Schema lookup tables and cached encodings used when packing requests."""

    def __init__(self, default_space: Any = None) -> None:
        self.default_space = default_space
        self.packed_default_space: bytes | None = None
        if isinstance(default_space, int) and not isinstance(default_space, bool):
            self.packed_default_space = _pair(Key.SPACE_NO, number_to_uint64(default_space))
        self.packed_default_index = _pair(Key.INDEX_NO, 0)
        self.packed_iter_eq = _pair(Key.ITERATOR, IterType.EQ)
        self.packed_default_limit = _pair(Key.LIMIT, DEFAULT_LIMIT)
        self.packed_default_offset = _pair(Key.OFFSET, 0)
        self.packed_single_key = pack_uint(Key.KEY) + pack_array_header(1)
        self.space_map: dict[str, int] = {}
        self.index_map: dict[int, dict[str, int]] = {}
        self.primary_key_map: dict[int, list[int]] = {}

    def space_no(self, space: Any) -> int:
        """Resolve a space name or number; ``None`` means the default space."""
        if space is None:
            space = self.default_space
        if isinstance(space, str):
            try:
                return self.space_map[space]
            except KeyError:
                raise ValueError(f"unknown space {space!r}") from None
        return number_to_uint64(space)

    def pack_space(self, space: Any) -> bytes:
        """Encode the space-number entry of a request body."""
        if space is None and self.packed_default_space is not None:
            return self.packed_default_space
        return _pair(Key.SPACE_NO, self.space_no(space))

    def field_no(self, field: Any) -> int:
        """Resolve a field number."""
        return number_to_uint64(field)

    def index_no(self, space: Any, index: Any) -> int:
        """Resolve an index name or number within ``space``; ``None`` is index 0."""
        if index is None:
            return 0
        if isinstance(index, str):
            try:
                space_no = self.space_no(space)
            except ValueError:
                return 0
            indexes = self.index_map.get(space_no)
            if indexes is None:
                raise ValueError(f"no indexes defined for space {space!r}")
            try:
                return indexes[index]
            except KeyError:
                raise ValueError(f"unknown index {index!r}") from None
        return number_to_uint64(index)

    def pack_index(self, space: Any, index: Any) -> bytes:
        """Encode the index-number entry of a request body."""
        if index is None:
            return self.packed_default_index
        return _pair(Key.INDEX_NO, self.index_no(space, index))


DEFAULT_PACK_DATA = PackData()