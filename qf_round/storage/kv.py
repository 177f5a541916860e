"""
qf_round/storage/kv.py: The host's key-value interface.

Keys are str, values are bytes. ``iterate`` yields pairs in ascending key order.
There are no transactions at this level.
"""

from typing import Iterator, Optional, Protocol


class KeyValueStore(Protocol):
    def read(self, key: str) -> Optional[bytes]:
        ...

    def write(self, key: str, value: bytes) -> None:
        ...

    def iterate(self, prefix: str) -> Iterator[tuple[str, bytes]]:
        ...


class MemoryStore:
    """Dict-backed KeyValueStore used by tests and the LocalHost."""

    def __init__(self, initial: Optional[dict[str, bytes]] = None):
        self._data: dict[str, bytes] = dict(initial or {})

    def read(self, key: str) -> Optional[bytes]:
        return self._data.get(key)

    def write(self, key: str, value: bytes) -> None:
        if not isinstance(value, (bytes, bytearray)):
            raise TypeError(f"store values must be bytes, got {type(value).__name__}")
        self._data[key] = bytes(value)

    def iterate(self, prefix: str) -> Iterator[tuple[str, bytes]]:
        for key in sorted(k for k in self._data if k.startswith(prefix)):
            yield key, self._data[key]

    def snapshot(self) -> dict[str, bytes]:
        """Copy of the full contents, for byte-for-byte comparisons."""
        return dict(self._data)

    def __len__(self) -> int:
        return len(self._data)
