"""Open file objects and the system-wide table that holds them."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

from .fs import FileSystem, Inode
from .layout import LOGSIZE, NFILE, Stat
from .pipe import Pipe

_MAX_WRITE = ((LOGSIZE - 1 - 1 - 2) // 2) * 512


class FileError(Exception):
    """An operation an open file does not allow."""


class FileType(Enum):
    NONE = 0
    PIPE = 1
    INODE = 2


@dataclass(eq=False)
class File:
    """An open file: a pipe end or an inode with an offset."""

    type: FileType = FileType.NONE
    ref: int = 0
    readable: bool = False
    writable: bool = False
    pipe: Pipe | None = None
    ip: Inode | None = None
    off: int = 0


class FileTable:
    """A fixed pool of open files shared by all users."""

    def __init__(self, fs: FileSystem | None = None, nfile: int = NFILE) -> None:
        self.fs = fs
        self._files = [File() for _ in range(nfile)]

    def _filesystem(self) -> FileSystem:
        if self.fs is None:
            raise FileError("no file system attached")
        return self.fs

    def alloc(self) -> File:
        """Take a free file from the table."""
        for f in self._files:
            if f.ref == 0:
                f.ref = 1
                f.type = FileType.NONE
                f.readable = f.writable = False
                f.pipe = None
                f.ip = None
                f.off = 0
                return f
        raise FileError("file table full")

    def dup(self, f: File) -> File:
        """Take another reference to an open file."""
        if f.ref < 1:
            raise FileError("filedup")
        f.ref += 1
        return f

    def close(self, f: File) -> None:
        """Drop a reference; release the pipe end or inode at the last one."""
        if f.ref < 1:
            raise FileError("fileclose")
        f.ref -= 1
        if f.ref > 0:
            return
        ftype, pipe, ip, writable = f.type, f.pipe, f.ip, f.writable
        f.type = FileType.NONE
        f.pipe = None
        f.ip = None
        if ftype is FileType.PIPE and pipe is not None:
            pipe.close(writable)
        elif ftype is FileType.INODE and ip is not None:
            fs = self._filesystem()
            with fs.log.transaction():
                fs.iput(ip)

    def stat(self, f: File) -> Stat:
        """Return the metadata of an inode file."""
        if f.type is not FileType.INODE or f.ip is None:
            raise FileError("stat of a file without an inode")
        fs = self._filesystem()
        fs.ilock(f.ip)
        try:
            return fs.stati(f.ip)
        finally:
            fs.iunlock(f.ip)

    def read(self, f: File, n: int) -> bytes:
        """Read up to n bytes, advancing the offset of an inode file."""
        if not f.readable:
            raise FileError("file not open for reading")
        if f.type is FileType.PIPE and f.pipe is not None:
            return f.pipe.read(n)
        if f.type is FileType.INODE and f.ip is not None:
            fs = self._filesystem()
            fs.ilock(f.ip)
            try:
                data = fs.readi(f.ip, f.off, n)
                f.off += len(data)
            finally:
                fs.iunlock(f.ip)
            return data
        raise FileError("fileread")

    def write(self, f: File, data: bytes) -> int:
        """Write all of data and return its length.

        Inode writes go out a few blocks per transaction so that none
        outgrows the log.
        """
        if not f.writable:
            raise FileError("file not open for writing")
        if f.type is FileType.PIPE and f.pipe is not None:
            return f.pipe.write(data)
        if f.type is FileType.INODE and f.ip is not None:
            fs = self._filesystem()
            view = memoryview(bytes(data))
            done = 0
            while done < len(view):
                chunk = view[done : done + _MAX_WRITE]
                with fs.log.transaction():
                    fs.ilock(f.ip)
                    try:
                        r = fs.writei(f.ip, chunk, f.off)
                        if r > 0:
                            f.off += r
                    finally:
                        fs.iunlock(f.ip)
                if r != len(chunk):
                    raise FileError("short filewrite")
                done += r
            return len(view)
        raise FileError("filewrite")

    def open_inode(self, ip: Inode, readable: bool, writable: bool) -> File:
        """Open an inode; the file takes over the caller's reference."""
        f = self.alloc()
        f.type = FileType.INODE
        f.ip = ip
        f.off = 0
        f.readable = bool(readable)
        f.writable = bool(writable)
        return f

    def pipe(self) -> tuple[File, File]:
        """Create a pipe and return its (read end, write end) files."""
        rfile = self.alloc()
        try:
            wfile = self.alloc()
        except FileError:
            self.close(rfile)
            raise
        p = Pipe()
        rfile.type = FileType.PIPE
        rfile.readable, rfile.writable = True, False
        rfile.pipe = p
        wfile.type = FileType.PIPE
        wfile.readable, wfile.writable = False, True
        wfile.pipe = p
        return rfile, wfile