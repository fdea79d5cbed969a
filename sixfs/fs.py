"""Inodes, directories and path names on top of the log and buffer cache."""

from __future__ import annotations

import struct
from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import Protocol

from .bufcache import Buf, BufferCache
from .disk import MemoryDisk
from .layout import (
    BPB,
    BSIZE,
    DIRSIZ,
    IPB,
    MAXFILE,
    NDIRECT,
    NINDIRECT,
    NINODE,
    ROOTINO,
    DiskInode,
    Dirent,
    InodeType,
    Stat,
    Superblock,
    bitmap_block,
    inode_block,
)
from .log import Log

_ADDR = struct.Struct("<I")
_INDIRECT = struct.Struct(f"<{NINDIRECT}I")


class FsError(Exception):
    """A file system operation that cannot be carried out."""


class Device(Protocol):
    """A character device reachable through a device inode."""

    def read(self, n: int) -> bytes: ...

    def write(self, data: bytes) -> int: ...


@dataclass(eq=False)
class Inode:
    """In-memory copy of an inode with reference and lock state."""

    dev: int = 0
    inum: int = 0
    ref: int = 0
    locked: bool = False
    valid: bool = False
    type: int = 0
    major: int = 0
    minor: int = 0
    nlink: int = 0
    size: int = 0
    addrs: list[int] = field(default_factory=lambda: [0] * (NDIRECT + 1))


def _name_bytes(name: str) -> bytes:
    raw = name.encode("utf-8", "surrogateescape")
    return raw.split(b"\0", 1)[0][:DIRSIZ]


def namecmp(s: str, t: str) -> int:
    """Compare two names over their first DIRSIZ bytes; 0 means equal."""
    a, b = _name_bytes(s), _name_bytes(t)
    return (a > b) - (a < b)


def skipelem(path: str) -> tuple[str, str] | None:
    """Split off the first path element.

    Returns the element (cut to DIRSIZ bytes) and the rest of the path
    without leading slashes, or None if there is no element.
    """
    path = path.lstrip("/")
    if not path:
        return None
    elem, _, rest = path.partition("/")
    name = _name_bytes(elem).decode("utf-8", "surrogateescape")
    return name, rest.lstrip("/")


class FileSystem:
    """A mounted file system: inode cache, block allocator and name lookup."""

    def __init__(self, cache: BufferCache, log: Log, sb: Superblock, dev: int) -> None:
        self.cache = cache
        self.log = log
        self.sb = sb
        self.dev = dev
        self.devices: dict[int, Device] = {}
        self._icache = [Inode() for _ in range(NINODE)]

    @classmethod
    def mount(cls, disk: MemoryDisk, dev: int | None = None) -> FileSystem:
        """Open the file system on a disk, replaying any committed log."""
        dev = disk.dev if dev is None else dev
        cache = BufferCache(disk)
        bp = cache.bread(dev, 1)
        try:
            sb = Superblock.unpack(bytes(bp.data))
        finally:
            cache.brelse(bp)
        log = Log(cache, dev)
        return cls(cache, log, sb, dev)

    @contextmanager
    def _block(self, dev: int, blockno: int) -> Iterator[Buf]:
        bp = self.cache.bread(dev, blockno)
        try:
            yield bp
        finally:
            self.cache.brelse(bp)

    def _inode_slot(self, inum: int) -> tuple[int, slice]:
        off = (inum % IPB) * DiskInode.SIZE
        return inode_block(inum, self.sb), slice(off, off + DiskInode.SIZE)

    # Blocks.

    def _bzero(self, dev: int, bno: int) -> None:
        with self._block(dev, bno) as bp:
            bp.data[:] = bytes(BSIZE)
            self.log.log_write(bp)

    def _balloc(self, dev: int) -> int:
        size = self.sb.size
        for base in range(0, size, BPB):
            found = None
            with self._block(dev, bitmap_block(base, self.sb)) as bp:
                for bi in range(min(BPB, size - base)):
                    byte, mask = bi // 8, 1 << (bi % 8)
                    if not bp.data[byte] & mask:
                        bp.data[byte] |= mask
                        self.log.log_write(bp)
                        found = base + bi
                        break
            if found is not None:
                self._bzero(dev, found)
                return found
        raise FsError("balloc: out of blocks")

    def _bfree(self, dev: int, b: int) -> None:
        with self._block(dev, bitmap_block(b, self.sb)) as bp:
            bi = b % BPB
            byte, mask = bi // 8, 1 << (bi % 8)
            if not bp.data[byte] & mask:
                raise FsError("freeing free block")
            bp.data[byte] &= ~mask & 0xFF
            self.log.log_write(bp)

    # Inodes.

    def ialloc(self, itype: int) -> Inode:
        """Allocate a free on-disk inode; return it referenced but unlocked."""
        for inum in range(1, self.sb.ninodes):
            bn, slot = self._inode_slot(inum)
            with self._block(self.dev, bn) as bp:
                din = DiskInode.unpack(bytes(bp.data[slot]))
                if din.type != 0:
                    continue
                bp.data[slot] = DiskInode(type=int(itype)).pack()
                self.log.log_write(bp)
            return self._iget(self.dev, inum)
        raise FsError("ialloc: no inodes")

    def iupdate(self, ip: Inode) -> None:
        """Copy a modified in-memory inode to disk."""
        bn, slot = self._inode_slot(ip.inum)
        with self._block(ip.dev, bn) as bp:
            bp.data[slot] = DiskInode(
                type=ip.type,
                major=ip.major,
                minor=ip.minor,
                nlink=ip.nlink,
                size=ip.size,
                addrs=list(ip.addrs),
            ).pack()
            self.log.log_write(bp)

    def _iget(self, dev: int, inum: int) -> Inode:
        empty = None
        for ip in self._icache:
            if ip.ref > 0 and ip.dev == dev and ip.inum == inum:
                ip.ref += 1
                return ip
            if empty is None and ip.ref == 0:
                empty = ip
        if empty is None:
            raise FsError("iget: no inodes")
        empty.dev = dev
        empty.inum = inum
        empty.ref = 1
        empty.valid = False
        return empty

    def idup(self, ip: Inode) -> Inode:
        """Take another reference to an inode."""
        ip.ref += 1
        return ip

    def ilock(self, ip: Inode) -> None:
        """Lock an inode, reading it from disk if needed."""
        if ip is None or ip.ref < 1:
            raise FsError("ilock")
        if ip.locked:
            raise FsError("ilock: inode already locked")
        ip.locked = True
        if not ip.valid:
            bn, slot = self._inode_slot(ip.inum)
            try:
                with self._block(ip.dev, bn) as bp:
                    din = DiskInode.unpack(bytes(bp.data[slot]))
            except Exception:
                ip.locked = False
                raise
            ip.type = din.type
            ip.major = din.major
            ip.minor = din.minor
            ip.nlink = din.nlink
            ip.size = din.size
            ip.addrs = list(din.addrs)
            ip.valid = True
            if ip.type == 0:
                ip.locked = False
                raise FsError("ilock: no type")

    def iunlock(self, ip: Inode) -> None:
        """Unlock a locked inode."""
        if ip is None or not ip.locked or ip.ref < 1:
            raise FsError("iunlock")
        ip.locked = False

    def iput(self, ip: Inode) -> None:
        """Drop a reference; free the inode on disk if it was the last one
        and no links remain."""
        if ip.locked:
            raise FsError("iput: inode is locked")
        ip.locked = True
        try:
            if ip.valid and ip.nlink == 0 and ip.ref == 1:
                self._itrunc(ip)
                ip.type = 0
                self.iupdate(ip)
                ip.valid = False
        finally:
            ip.locked = False
        ip.ref -= 1

    def iunlockput(self, ip: Inode) -> None:
        self.iunlock(ip)
        self.iput(ip)

    def _bmap(self, ip: Inode, bn: int) -> int:
        if bn < NDIRECT:
            if ip.addrs[bn] == 0:
                ip.addrs[bn] = self._balloc(ip.dev)
            return ip.addrs[bn]
        bn -= NDIRECT
        if bn < NINDIRECT:
            if ip.addrs[NDIRECT] == 0:
                ip.addrs[NDIRECT] = self._balloc(ip.dev)
            with self._block(ip.dev, ip.addrs[NDIRECT]) as bp:
                off = bn * _ADDR.size
                (addr,) = _ADDR.unpack_from(bp.data, off)
                if addr == 0:
                    addr = self._balloc(ip.dev)
                    _ADDR.pack_into(bp.data, off, addr)
                    self.log.log_write(bp)
            return addr
        raise FsError("bmap: out of range")

    def _itrunc(self, ip: Inode) -> None:
        for i, addr in enumerate(ip.addrs[:NDIRECT]):
            if addr:
                self._bfree(ip.dev, addr)
                ip.addrs[i] = 0
        if ip.addrs[NDIRECT]:
            with self._block(ip.dev, ip.addrs[NDIRECT]) as bp:
                entries = _INDIRECT.unpack(bytes(bp.data))
                for addr in entries:
                    if addr:
                        self._bfree(ip.dev, addr)
            self._bfree(ip.dev, ip.addrs[NDIRECT])
            ip.addrs[NDIRECT] = 0
        ip.size = 0
        self.iupdate(ip)

    def stati(self, ip: Inode) -> Stat:
        """Return the metadata of a locked inode."""
        return Stat(type=ip.type, dev=ip.dev, ino=ip.inum, nlink=ip.nlink, size=ip.size)

    def _device(self, ip: Inode) -> Device:
        device = self.devices.get(ip.major)
        if device is None:
            raise FsError(f"no device with major number {ip.major}")
        return device

    def readi(self, ip: Inode, off: int, n: int) -> bytes:
        """Read up to n bytes at offset off from a locked inode."""
        if ip.type == InodeType.DEVICE:
            return bytes(self._device(ip).read(n))
        if n < 0 or off < 0 or off > ip.size:
            raise FsError("read outside the file")
        n = min(n, ip.size - off)
        out = bytearray()
        while len(out) < n:
            with self._block(ip.dev, self._bmap(ip, off // BSIZE)) as bp:
                start = off % BSIZE
                m = min(n - len(out), BSIZE - start)
                out += bp.data[start : start + m]
            off += m
        return bytes(out)

    def writei(self, ip: Inode, data: bytes, off: int) -> int:
        """Write data at offset off into a locked inode; return bytes written."""
        if ip.type == InodeType.DEVICE:
            return self._device(ip).write(bytes(data))
        view = memoryview(bytes(data))
        n = len(view)
        if off < 0 or off > ip.size:
            raise FsError("write outside the file")
        if off + n > MAXFILE * BSIZE:
            raise FsError("file too large")
        pos = 0
        while pos < n:
            with self._block(ip.dev, self._bmap(ip, off // BSIZE)) as bp:
                start = off % BSIZE
                m = min(n - pos, BSIZE - start)
                bp.data[start : start + m] = view[pos : pos + m]
                self.log.log_write(bp)
            pos += m
            off += m
        if n > 0 and off > ip.size:
            ip.size = off
            self.iupdate(ip)
        return n

    # Directories.

    def _entries(self, dp: Inode) -> Iterator[tuple[int, Dirent]]:
        for off in range(0, dp.size, Dirent.SIZE):
            raw = self.readi(dp, off, Dirent.SIZE)
            if len(raw) != Dirent.SIZE:
                raise FsError("directory read")
            yield off, Dirent.unpack(raw)

    def dirlookup(self, dp: Inode, name: str) -> tuple[Inode, int] | None:
        """Find name in a locked directory; return its inode and entry offset."""
        if dp.type != InodeType.DIR:
            raise FsError("dirlookup not DIR")
        for off, de in self._entries(dp):
            if de.inum and namecmp(name, de.name) == 0:
                return self._iget(dp.dev, de.inum), off
        return None

    def dirlink(self, dp: Inode, name: str, inum: int) -> None:
        """Add the entry (name, inum) to a locked directory."""
        found = self.dirlookup(dp, name)
        if found is not None:
            self.iput(found[0])
            raise FsError(f"dirlink: {name!r} already exists")
        off = next((o for o, de in self._entries(dp) if de.inum == 0), dp.size)
        if self.writei(dp, Dirent(inum, name).pack(), off) != Dirent.SIZE:
            raise FsError("dirlink")

    # Paths.

    def _namex(self, path: str, parent: bool, cwd: Inode | None) -> tuple[Inode, str] | None:
        if path.startswith("/") or cwd is None:
            ip = self._iget(self.dev, ROOTINO)
        else:
            ip = self.idup(cwd)
        name = ""
        while (step := skipelem(path)) is not None:
            name, path = step
            self.ilock(ip)
            if ip.type != InodeType.DIR:
                self.iunlockput(ip)
                return None
            if parent and path == "":
                self.iunlock(ip)
                return ip, name
            found = self.dirlookup(ip, name)
            if found is None:
                self.iunlockput(ip)
                return None
            self.iunlockput(ip)
            ip = found[0]
        if parent:
            self.iput(ip)
            return None
        return ip, name

    def namei(self, path: str, cwd: Inode | None = None) -> Inode | None:
        """Return the unlocked inode for a path, or None if there is none."""
        found = self._namex(path, False, cwd)
        return None if found is None else found[0]

    def nameiparent(self, path: str, cwd: Inode | None = None) -> tuple[Inode, str] | None:
        """Return the parent directory's inode and the final path element."""
        return self._namex(path, True, cwd)