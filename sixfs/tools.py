"""Small user tools: cat, echo and ls."""

from __future__ import annotations

import sys
from collections.abc import Sequence
from typing import BinaryIO, TextIO

from .disk import MemoryDisk
from .fs import FileSystem, FsError
from .layout import DIRSIZ, Dirent, InodeType, Stat

_CHUNK = 512
_PATHBUF = 512


def cat(src: BinaryIO, out: BinaryIO) -> None:
    """Copy everything from src to out."""
    while chunk := src.read(_CHUNK):
        written = out.write(chunk)
        if written is not None and written != len(chunk):
            raise OSError("cat: write error")


def echo(args: Sequence[str]) -> str:
    """Return the arguments joined by spaces and ended by a newline."""
    return " ".join(args) + "\n" if args else ""


def fmtname(path: str) -> str:
    """Return the last path element, blank-padded to DIRSIZ characters."""
    name = path.rsplit("/", 1)[-1]
    if len(name) >= DIRSIZ:
        return name
    return name.ljust(DIRSIZ)


def _line(path: str, st: Stat) -> str:
    return f"{fmtname(path)} {st.type} {st.ino} {st.size}\n"


def _stat_path(fs: FileSystem, path: str) -> Stat | None:
    with fs.log.transaction():
        ip = fs.namei(path)
    if ip is None:
        return None
    try:
        fs.ilock(ip)
        try:
            return fs.stati(ip)
        finally:
            fs.iunlock(ip)
    finally:
        with fs.log.transaction():
            fs.iput(ip)


def ls(fs: FileSystem, path: str, out: TextIO) -> None:
    """List a file, or each entry of a directory, as name, type, inode and size."""
    with fs.log.transaction():
        ip = fs.namei(path)
    if ip is None:
        raise FsError(f"ls: cannot open {path}")
    try:
        fs.ilock(ip)
        try:
            st = fs.stati(ip)
            listing = fs.readi(ip, 0, ip.size) if st.type == InodeType.DIR else b""
        finally:
            fs.iunlock(ip)
    finally:
        with fs.log.transaction():
            fs.iput(ip)

    if st.type == InodeType.FILE:
        out.write(_line(path, st))
    elif st.type == InodeType.DIR:
        if len(path.encode("utf-8", "surrogateescape")) + 1 + DIRSIZ + 1 > _PATHBUF:
            out.write("ls: path too long\n")
            return
        for off in range(0, len(listing) - Dirent.SIZE + 1, Dirent.SIZE):
            de = Dirent.unpack(listing[off : off + Dirent.SIZE])
            if de.inum == 0:
                continue
            child = f"{path}/{de.name}"
            cst = _stat_path(fs, child)
            if cst is None:
                out.write(f"ls: cannot stat {child}\n")
                continue
            out.write(_line(child, cst))


def _main_cat(paths: list[str]) -> int:
    out = sys.stdout.buffer
    try:
        if not paths:
            cat(sys.stdin.buffer, out)
            return 0
        for path in paths:
            try:
                fh = open(path, "rb")
            except OSError:
                out.write(f"cat: cannot open {path}\n".encode())
                return 1
            with fh:
                try:
                    cat(fh, out)
                except OSError:
                    out.write(b"cat: read error\n")
                    return 1
        return 0
    finally:
        out.flush()


def _main_ls(args: list[str]) -> int:
    if not args:
        print("usage: ls image [path ...]", file=sys.stderr)
        return 1
    image, *paths = args
    try:
        fs = FileSystem.mount(MemoryDisk.from_file(image))
    except OSError as exc:
        print(f"ls: cannot open {image}: {exc.strerror}", file=sys.stderr)
        return 1
    status = 0
    for path in paths or ["."]:
        try:
            ls(fs, path, sys.stdout)
        except FsError as exc:
            print(str(exc), file=sys.stderr)
            status = 1
    return status


def main(argv: Sequence[str] | None = None) -> int:
    args = list(sys.argv[1:] if argv is None else argv)
    if not args or args[0] not in ("cat", "echo", "ls"):
        print("usage: tools {cat|echo|ls} [args ...]", file=sys.stderr)
        return 2
    tool, *rest = args
    if tool == "echo":
        sys.stdout.write(echo(rest))
        return 0
    if tool == "cat":
        return _main_cat(rest)
    return _main_ls(rest)


if __name__ == "__main__":
    sys.exit(main())