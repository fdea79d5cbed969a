"""A bounded in-memory pipe with a read end and a write end."""

from __future__ import annotations

import errno

PIPESIZE = 512


class WouldBlock(BlockingIOError):
    """The operation would have to wait for the other side to act."""


class Pipe:
    """A ring buffer of PIPESIZE bytes shared by a reader and a writer."""

    def __init__(self) -> None:
        self._data = bytearray(PIPESIZE)
        self.nread = 0
        self.nwrite = 0
        self.readopen = True
        self.writeopen = True

    def __len__(self) -> int:
        return self.nwrite - self.nread

    @property
    def closed(self) -> bool:
        """True once both ends have been closed."""
        return not (self.readopen or self.writeopen)

    def write(self, data: bytes) -> int:
        """Append all of data to the pipe and return its length.

        Raises BrokenPipeError when the pipe is full and nobody can read it,
        and WouldBlock when it is full and the reader has yet to drain it;
        the bytes written before that stay in the pipe and are reported in
        ``characters_written``.
        """
        if not self.writeopen:
            raise BrokenPipeError(errno.EPIPE, "pipe: write end closed")
        for written, byte in enumerate(bytes(data)):
            if self.nwrite == self.nread + PIPESIZE:
                if not self.readopen:
                    raise BrokenPipeError(errno.EPIPE, "pipe: read end closed")
                raise WouldBlock(errno.EAGAIN, "pipe full", written)
            self._data[self.nwrite % PIPESIZE] = byte
            self.nwrite += 1
        return len(data)

    def read(self, n: int) -> bytes:
        """Take up to n bytes from the pipe.

        Returns b"" once the pipe is empty and the write end is closed;
        raises WouldBlock when it is empty and a writer may still add data.
        """
        if self.nread == self.nwrite and self.writeopen:
            raise WouldBlock(errno.EAGAIN, "pipe empty")
        count = max(0, min(n, self.nwrite - self.nread))
        out = bytes(self._data[(self.nread + i) % PIPESIZE] for i in range(count))
        self.nread += count
        return out

    def close(self, writable: bool) -> None:
        """Close the write end if writable is true, else the read end."""
        if writable:
            self.writeopen = False
        else:
            self.readopen = False