"""Build a file system image holding a root directory and some files."""

from __future__ import annotations

import struct
import sys
from collections.abc import Iterable, Sequence
from pathlib import Path

from .layout import (
    BPB,
    BSIZE,
    FSSIZE,
    IPB,
    LOGSIZE,
    MAXFILE,
    NDIRECT,
    NINDIRECT,
    ROOTINO,
    DiskInode,
    Dirent,
    InodeType,
    Superblock,
    inode_block,
)

NINODES = 200

_INDIRECT = struct.Struct(f"<{NINDIRECT}I")


class ImageBuilder:
    """Lays out a fresh image and appends files to its root directory.

    Layout: boot block, superblock, log, inode blocks, bitmap, data blocks.
    """

    def __init__(self, fssize: int = FSSIZE, ninodes: int = NINODES, nlog: int = LOGSIZE) -> None:
        self.fssize = fssize
        self.nlog = nlog
        self.nbitmap = fssize // BPB + 1
        self.ninodeblocks = ninodes // IPB + 1
        self.nmeta = 2 + nlog + self.ninodeblocks + self.nbitmap
        if self.nmeta >= fssize:
            raise ValueError("image too small for its metadata")
        self.sb = Superblock(
            size=fssize,
            nblocks=fssize - self.nmeta,
            ninodes=ninodes,
            nlog=nlog,
            logstart=2,
            inodestart=2 + nlog,
            bmapstart=2 + nlog + self.ninodeblocks,
        )
        self.image = bytearray(fssize * BSIZE)
        self.freeinode = 1
        self.freeblock = self.nmeta
        self._finished = False

        self._wsect(1, self.sb.pack().ljust(BSIZE, b"\0"))
        self.rootino = self.ialloc(InodeType.DIR)
        if self.rootino != ROOTINO:
            raise RuntimeError("root inode was not allocated first")
        self.iappend(self.rootino, Dirent(self.rootino, ".").pack())
        self.iappend(self.rootino, Dirent(self.rootino, "..").pack())

    def _check_open(self) -> None:
        if self._finished:
            raise RuntimeError("image already finished")

    def _wsect(self, sec: int, data: bytes) -> None:
        if not 0 <= sec < self.fssize:
            raise ValueError(f"sector {sec} out of range")
        self.image[sec * BSIZE : (sec + 1) * BSIZE] = data

    def _rsect(self, sec: int) -> bytearray:
        if not 0 <= sec < self.fssize:
            raise ValueError(f"sector {sec} out of range")
        return self.image[sec * BSIZE : (sec + 1) * BSIZE]

    def _inode_slot(self, inum: int) -> tuple[int, int]:
        return inode_block(inum, self.sb), (inum % IPB) * DiskInode.SIZE

    def _rinode(self, inum: int) -> DiskInode:
        bn, off = self._inode_slot(inum)
        return DiskInode.unpack(self._rsect(bn)[off : off + DiskInode.SIZE])

    def _winode(self, inum: int, din: DiskInode) -> None:
        bn, off = self._inode_slot(inum)
        buf = self._rsect(bn)
        buf[off : off + DiskInode.SIZE] = din.pack()
        self._wsect(bn, buf)

    def _alloc_block(self) -> int:
        if self.freeblock >= self.fssize:
            raise ValueError("out of blocks")
        block = self.freeblock
        self.freeblock += 1
        return block

    def ialloc(self, itype: int) -> int:
        """Allocate the next inode with one link and return its number."""
        self._check_open()
        if self.freeinode >= self.sb.ninodes:
            raise ValueError("out of inodes")
        inum = self.freeinode
        self.freeinode += 1
        self._winode(inum, DiskInode(type=int(itype), nlink=1, size=0))
        return inum

    def iappend(self, inum: int, data: bytes) -> None:
        """Append bytes to the end of an inode's content."""
        self._check_open()
        din = self._rinode(inum)
        off = din.size
        view = memoryview(bytes(data))
        if off + len(view) > MAXFILE * BSIZE:
            raise ValueError("file too large")
        pos = 0
        while pos < len(view):
            fbn = off // BSIZE
            if fbn < NDIRECT:
                if din.addrs[fbn] == 0:
                    din.addrs[fbn] = self._alloc_block()
                block = din.addrs[fbn]
            else:
                if din.addrs[NDIRECT] == 0:
                    din.addrs[NDIRECT] = self._alloc_block()
                ind = din.addrs[NDIRECT]
                indirect = list(_INDIRECT.unpack(self._rsect(ind)))
                slot = fbn - NDIRECT
                if indirect[slot] == 0:
                    indirect[slot] = self._alloc_block()
                    self._wsect(ind, _INDIRECT.pack(*indirect))
                block = indirect[slot]
            n1 = min(len(view) - pos, (fbn + 1) * BSIZE - off)
            buf = self._rsect(block)
            start = off - fbn * BSIZE
            buf[start : start + n1] = view[pos : pos + n1]
            self._wsect(block, buf)
            pos += n1
            off += n1
        din.size = off
        self._winode(inum, din)

    def add_file(self, name: str, data: bytes) -> int:
        """Add a file to the root directory; a leading '_' is dropped."""
        if "/" in name:
            raise ValueError(f"file name may not contain '/': {name!r}")
        if name.startswith("_"):
            name = name[1:]
        inum = self.ialloc(InodeType.FILE)
        self.iappend(self.rootino, Dirent(inum, name).pack())
        self.iappend(inum, data)
        return inum

    def _balloc(self, used: int) -> None:
        if used >= BPB:
            raise ValueError("too many blocks in use for one bitmap block")
        buf = bytearray(BSIZE)
        full, rest = divmod(used, 8)
        buf[:full] = b"\xff" * full
        if rest:
            buf[full] = (1 << rest) - 1
        self._wsect(self.sb.bmapstart, buf)

    def finish(self) -> bytes:
        """Pad the root directory, write the bitmap and return the image."""
        if not self._finished:
            din = self._rinode(self.rootino)
            din.size = (din.size // BSIZE + 1) * BSIZE
            self._winode(self.rootino, din)
            self._balloc(self.freeblock)
            self._finished = True
        return bytes(self.image)


def build_image(files: Iterable[tuple[str, bytes]]) -> bytes:
    """Return an image holding the given (name, data) files."""
    builder = ImageBuilder()
    for name, data in files:
        builder.add_file(name, data)
    return builder.finish()


def main(argv: Sequence[str] | None = None) -> int:
    args = list(sys.argv[1:] if argv is None else argv)
    if not args:
        print("Usage: mkfs fs.img files...", file=sys.stderr)
        return 1
    image_path, *names = args

    builder = ImageBuilder()
    print(
        f"nmeta {builder.nmeta} (boot, super, log blocks {builder.nlog} "
        f"inode blocks {builder.ninodeblocks}, bitmap blocks {builder.nbitmap}) "
        f"blocks {builder.sb.nblocks} total {builder.fssize}"
    )
    for name in names:
        try:
            data = Path(name).read_bytes()
        except OSError as exc:
            print(f"{name}: {exc.strerror}", file=sys.stderr)
            return 1
        try:
            builder.add_file(name, data)
        except ValueError as exc:
            print(f"mkfs: {exc}", file=sys.stderr)
            return 1

    print(f"balloc: first {builder.freeblock} blocks have been allocated")
    print(f"balloc: write bitmap block at sector {builder.sb.bmapstart}")
    try:
        image = builder.finish()
    except ValueError as exc:
        print(f"mkfs: {exc}", file=sys.stderr)
        return 1
    try:
        Path(image_path).write_bytes(image)
    except OSError as exc:
        print(f"{image_path}: {exc.strerror}", file=sys.stderr)
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())