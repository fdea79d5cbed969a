"""A most-recently-used cache of disk blocks."""

from __future__ import annotations

from dataclasses import dataclass, field

from .disk import DiskError, MemoryDisk
from .layout import BSIZE, NBUF


class CacheError(Exception):
    """Misuse of the buffer cache or an exhausted cache."""


@dataclass(eq=False)
class Buf:
    """A cached copy of one disk block."""

    dev: int
    blockno: int
    data: bytearray = field(default_factory=lambda: bytearray(BSIZE))
    valid: bool = False
    dirty: bool = False
    refcnt: int = 0
    locked: bool = False


class BufferCache:
    """Fixed pool of block buffers kept in most-recently-used order.

    A buffer is held exclusively between ``bread`` and ``brelse``. A dirty
    buffer is never recycled, even when nobody holds it.
    """

    def __init__(self, disk: MemoryDisk, nbuf: int = NBUF) -> None:
        self.disk = disk
        self._mru = [Buf(dev=-1, blockno=-1) for _ in range(nbuf)]

    def _get(self, dev: int, blockno: int) -> Buf:
        for b in self._mru:
            if b.dev == dev and b.blockno == blockno:
                if b.locked:
                    raise CacheError(f"block {blockno} on device {dev} is already held")
                b.refcnt += 1
                b.locked = True
                return b
        for b in reversed(self._mru):
            if b.refcnt == 0 and not b.dirty:
                b.dev = dev
                b.blockno = blockno
                b.valid = False
                b.dirty = False
                b.refcnt = 1
                b.locked = True
                return b
        raise CacheError("bget: no buffers")

    def _sync(self, b: Buf) -> None:
        if b.valid and not b.dirty:
            raise CacheError("iderw: nothing to do")
        if b.dirty:
            self.disk.write(b.blockno, bytes(b.data))
            b.dirty = False
        else:
            b.data[:] = self.disk.read(b.blockno)
        b.valid = True

    def bread(self, dev: int, blockno: int) -> Buf:
        """Return a held buffer with the contents of the block."""
        if dev != self.disk.dev:
            raise DiskError(f"request for device {dev}, disk is device {self.disk.dev}")
        b = self._get(dev, blockno)
        if not b.valid:
            try:
                self._sync(b)
            except Exception:
                b.locked = False
                b.refcnt -= 1
                raise
        return b

    def bwrite(self, buf: Buf) -> None:
        """Write a held buffer's contents to disk."""
        if not buf.locked:
            raise CacheError("bwrite: buffer not held")
        buf.dirty = True
        self._sync(buf)

    def brelse(self, buf: Buf) -> None:
        """Release a held buffer, making it the most recently used."""
        if not buf.locked:
            raise CacheError("brelse: buffer not held")
        buf.locked = False
        buf.refcnt -= 1
        if buf.refcnt == 0:
            self._mru.remove(buf)
            self._mru.insert(0, buf)