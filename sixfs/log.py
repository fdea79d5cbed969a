"""Write-ahead redo log that makes multi-block updates atomic."""

from __future__ import annotations

import struct
from collections.abc import Iterator
from contextlib import contextmanager

from .bufcache import Buf, BufferCache
from .layout import BSIZE, LOGSIZE, MAXOPBLOCKS, Superblock

_COUNT = struct.Struct("<i")


class LogError(Exception):
    """Misuse of the log or a transaction that does not fit in it."""


class Log:
    """Groups block writes into transactions committed through an on-disk log.

    The on-disk log is a header block holding the count and home block
    numbers of the logged blocks, followed by the logged block copies.
    A commit happens when the last outstanding operation ends.
    """

    def __init__(self, cache: BufferCache, dev: int) -> None:
        if _COUNT.size * (LOGSIZE + 1) >= BSIZE:
            raise LogError("initlog: too big logheader")
        bp = cache.bread(dev, 1)
        try:
            sb = Superblock.unpack(bytes(bp.data))
        finally:
            cache.brelse(bp)
        self.cache = cache
        self.dev = dev
        self.start = sb.logstart
        self.size = sb.nlog
        self.outstanding = 0
        self.committing = False
        self.blocks: list[int] = []
        self._recover()

    def _read_head(self) -> None:
        bp = self.cache.bread(self.dev, self.start)
        try:
            (n,) = _COUNT.unpack_from(bp.data)
            if not 0 <= n <= LOGSIZE:
                raise LogError(f"corrupt log header: {n} blocks")
            self.blocks = list(struct.unpack_from(f"<{n}i", bp.data, _COUNT.size))
        finally:
            self.cache.brelse(bp)

    def _write_head(self) -> None:
        """Write the in-memory header; this is the real commit point."""
        bp = self.cache.bread(self.dev, self.start)
        try:
            n = len(self.blocks)
            struct.pack_into(f"<i{n}i", bp.data, 0, n, *self.blocks)
            self.cache.bwrite(bp)
        finally:
            self.cache.brelse(bp)

    def _install_trans(self) -> None:
        """Copy committed blocks from the log to their home locations."""
        for tail, blockno in enumerate(self.blocks):
            lbuf = self.cache.bread(self.dev, self.start + tail + 1)
            try:
                dbuf = self.cache.bread(self.dev, blockno)
                try:
                    dbuf.data[:] = lbuf.data
                    self.cache.bwrite(dbuf)
                finally:
                    self.cache.brelse(dbuf)
            finally:
                self.cache.brelse(lbuf)

    def _write_log(self) -> None:
        """Copy modified blocks from the cache into the log area."""
        for tail, blockno in enumerate(self.blocks):
            to = self.cache.bread(self.dev, self.start + tail + 1)
            try:
                src = self.cache.bread(self.dev, blockno)
                try:
                    to.data[:] = src.data
                    self.cache.bwrite(to)
                finally:
                    self.cache.brelse(src)
            finally:
                self.cache.brelse(to)

    def _recover(self) -> None:
        self._read_head()
        self._install_trans()
        self.blocks = []
        self._write_head()

    def _commit(self) -> None:
        if self.blocks:
            self._write_log()
            self._write_head()
            self._install_trans()
            self.blocks = []
            self._write_head()

    def begin_op(self) -> None:
        """Start a file system operation.

        Raises LogError where the operation would have to wait for a commit
        or for log space.
        """
        if self.committing:
            raise LogError("begin_op: commit in progress")
        if len(self.blocks) + (self.outstanding + 1) * MAXOPBLOCKS > LOGSIZE:
            raise LogError("begin_op: log space exhausted")
        self.outstanding += 1

    def end_op(self) -> None:
        """End an operation; commit if it was the last outstanding one."""
        if self.outstanding < 1:
            raise LogError("end_op without begin_op")
        self.outstanding -= 1
        if self.committing:
            raise LogError("log.committing")
        if self.outstanding == 0:
            self.committing = True
            try:
                self._commit()
            finally:
                self.committing = False

    def log_write(self, buf: Buf) -> None:
        """Record a modified buffer in the current transaction and pin it."""
        if len(self.blocks) >= LOGSIZE or len(self.blocks) >= self.size - 1:
            raise LogError("too big a transaction")
        if self.outstanding < 1:
            raise LogError("log_write outside of trans")
        if buf.blockno not in self.blocks:
            self.blocks.append(buf.blockno)
        buf.dirty = True

    @contextmanager
    def transaction(self) -> Iterator[Log]:
        """Run the body between ``begin_op`` and ``end_op``."""
        self.begin_op()
        try:
            yield self
        finally:
            self.end_op()