"""Stream wrappers that count read and write calls."""

from __future__ import annotations

import threading
from typing import BinaryIO


class Counter:
    """A thread-safe integer counter."""

    def __init__(self, value: int = 0) -> None:
        self._value = value
        self._lock = threading.Lock()

    @property
    def value(self) -> int:
        with self._lock:
            return self._value

    def add(self, delta: int) -> int:
        """Add ``delta`` and return the new value."""
        with self._lock:
            self._value += delta
            return self._value

    def __int__(self) -> int:
        return self.value

    def __repr__(self) -> str:
        return f"Counter({self.value})"


class CountedReader:
    """Reader that counts every read call made through it."""

    def __init__(self, stream: BinaryIO, counter: Counter) -> None:
        self.stream = stream
        self.counter = counter

    def read(self, size: int = -1) -> bytes:
        self.counter.add(1)
        return self.stream.read(size)


class CountedWriter:
    """Writer that counts every write call made through it."""

    def __init__(self, stream: BinaryIO, counter: Counter) -> None:
        self.stream = stream
        self.counter = counter

    def write(self, data: bytes) -> int:
        self.counter.add(1)
        return self.stream.write(data)