"""Tarantool binary protocol: request encoding, packet framing, errors and a local test instance runner."""

__version__ = "0.1.0"

__all__ = [
    "binpacket",
    "box",
    "codec",
    "constants",
    "countio",
    "errors",
    "operators",
    "packdata",
    "packet",
    "queries",
]