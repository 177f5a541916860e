"""
qf_round/storage/staged.py: All-or-nothing writes over a plain key-value store.

Every engine invocation runs against a StagedStore. Reads see the staged
writes first, then the base store. Nothing reaches the base store until
commit(); an invocation that raises discards its buffer, leaving the base
store byte-for-byte unchanged.
"""

import logging
from contextlib import contextmanager
from typing import Iterator, Optional

from qf_round.storage.kv import KeyValueStore

logger = logging.getLogger(__name__)


class StagedStore:
    def __init__(self, base: KeyValueStore):
        self.base = base
        self._writes: dict[str, bytes] = {}
        self._closed = False

    def read(self, key: str) -> Optional[bytes]:
        if key in self._writes:
            return self._writes[key]
        return self.base.read(key)

    def write(self, key: str, value: bytes) -> None:
        if self._closed:
            raise RuntimeError("write to a committed or discarded StagedStore")
        self._writes[key] = bytes(value)

    def iterate(self, prefix: str) -> Iterator[tuple[str, bytes]]:
        merged = {k: v for k, v in self.base.iterate(prefix)}
        merged.update({k: v for k, v in self._writes.items() if k.startswith(prefix)})
        for key in sorted(merged):
            yield key, merged[key]

    @property
    def pending(self) -> int:
        return len(self._writes)

    def commit(self) -> int:
        """Flush staged writes to the base store in key order. Returns count."""
        if self._closed:
            raise RuntimeError("StagedStore already closed")
        for key in sorted(self._writes):
            self.base.write(key, self._writes[key])
        count = len(self._writes)
        self._writes.clear()
        self._closed = True
        logger.debug("Committed %d staged writes.", count)
        return count

    def discard(self) -> None:
        if self._writes:
            logger.debug("Discarding %d staged writes.", len(self._writes))
        self._writes.clear()
        self._closed = True


@contextmanager
def staged(base: KeyValueStore) -> Iterator[StagedStore]:
    """
    Run a block against a StagedStore over ``base``.

    Commits when the block returns normally; discards and re-raises on any
    exception.
    """
    buffer = StagedStore(base)
    try:
        yield buffer
    except BaseException:
        buffer.discard()
        raise
    buffer.commit()
