"""A disk whose blocks are held in memory."""

from __future__ import annotations

import os

from .layout import BSIZE, ROOTDEV


class DiskError(Exception):
    """A request the disk cannot serve."""


class MemoryDisk:
    """A block device backed by an in-memory image."""

    def __init__(self, data: bytes | bytearray = b"", dev: int = ROOTDEV) -> None:
        self._data = bytearray(data)
        self.dev = dev

    @property
    def nblocks(self) -> int:
        return len(self._data) // BSIZE

    def __bytes__(self) -> bytes:
        return bytes(self._data)

    def _offset(self, blockno: int) -> int:
        if not 0 <= blockno < self.nblocks:
            raise DiskError(f"block {blockno} out of range")
        return blockno * BSIZE

    def read(self, blockno: int) -> bytes:
        """Return the contents of one block."""
        off = self._offset(blockno)
        return bytes(self._data[off : off + BSIZE])

    def write(self, blockno: int, data: bytes) -> None:
        """Replace the contents of one block."""
        off = self._offset(blockno)
        if len(data) != BSIZE:
            raise DiskError(f"block write needs {BSIZE} bytes, got {len(data)}")
        self._data[off : off + BSIZE] = data

    @classmethod
    def from_file(cls, path: str | os.PathLike[str], dev: int = ROOTDEV) -> MemoryDisk:
        with open(path, "rb") as fh:
            return cls(fh.read(), dev)

    def save(self, path: str | os.PathLike[str]) -> None:
        with open(path, "wb") as fh:
            fh.write(self._data)