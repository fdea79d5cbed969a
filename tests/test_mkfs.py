import struct

import pytest

from sixfs.layout import (
    BSIZE,
    DIRSIZ,
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
from sixfs.mkfs import NINODES, ImageBuilder, build_image, main


def _block(image, n):
    return image[n * BSIZE : (n + 1) * BSIZE]


def _sb(image):
    return Superblock.unpack(_block(image, 1))


def _inode(image, inum):
    sb = _sb(image)
    blk = _block(image, inode_block(inum, sb))
    off = (inum % IPB) * DiskInode.SIZE
    return DiskInode.unpack(blk[off : off + DiskInode.SIZE])


def _contents(image, inum):
    din = _inode(image, inum)
    count = -(-din.size // BSIZE)
    addrs = list(din.addrs[:NDIRECT])
    if din.addrs[NDIRECT]:
        addrs += struct.unpack(f"<{NINDIRECT}I", _block(image, din.addrs[NDIRECT]))
    data = b"".join(_block(image, a) for a in addrs[:count])
    return data[: din.size]


def _root_entries(image):
    raw = _contents(image, ROOTINO)
    entries = [Dirent.unpack(raw[i : i + Dirent.SIZE]) for i in range(0, len(raw), Dirent.SIZE)]
    return [e for e in entries if e.inum != 0]


def test_empty_image_superblock():
    image = build_image([])
    assert len(image) == FSSIZE * BSIZE
    sb = _sb(image)
    assert sb.size == FSSIZE
    assert sb.ninodes == NINODES
    assert sb.nlog == LOGSIZE
    assert sb.logstart == 2
    assert sb.inodestart == sb.logstart + LOGSIZE
    assert sb.bmapstart == sb.inodestart + NINODES // IPB + 1
    assert sb.nblocks == FSSIZE - (sb.bmapstart + 1)


def test_root_directory_entries():
    image = build_image([])
    root = _inode(image, ROOTINO)
    assert root.type == InodeType.DIR
    assert root.nlink == 1
    assert root.size == BSIZE
    assert _root_entries(image) == [Dirent(ROOTINO, "."), Dirent(ROOTINO, "..")]


def test_file_round_trip_with_indirect_blocks():
    data = bytes(i % 251 for i in range((NDIRECT + 3) * BSIZE + 17))
    builder = ImageBuilder()
    inum = builder.add_file("_big", data)
    image = builder.finish()
    din = _inode(image, inum)
    assert din.type == InodeType.FILE
    assert din.size == len(data)
    assert din.addrs[NDIRECT] != 0
    assert _contents(image, inum) == data
    assert Dirent(inum, "big") in _root_entries(image)


def test_inodes_allocated_in_order():
    builder = ImageBuilder()
    first = builder.add_file("a", b"x")
    second = builder.add_file("b", b"")
    assert first == ROOTINO + 1
    assert second == first + 1
    image = builder.finish()
    assert _contents(image, second) == b""
    assert [e.name for e in _root_entries(image)] == [".", "..", "a", "b"]


def test_name_truncated_to_dirsiz():
    image = build_image([("n" * 20, b"data")])
    names = [e.name for e in _root_entries(image)]
    assert names[-1] == "n" * DIRSIZ


def test_bitmap_marks_used_blocks():
    builder = ImageBuilder()
    builder.add_file("f", b"hello" * 500)
    image = builder.finish()
    bitmap = _block(image, builder.sb.bmapstart)

    def used(b):
        return bool(bitmap[b // 8] & (1 << (b % 8)))

    assert all(used(b) for b in range(builder.freeblock))
    assert not used(builder.freeblock)
    assert builder.freeblock > builder.nmeta


def test_finish_is_stable():
    builder = ImageBuilder()
    builder.add_file("f", b"abc")
    assert builder.finish() == builder.finish()
    with pytest.raises(RuntimeError):
        builder.add_file("g", b"")


def test_slash_in_name_rejected():
    with pytest.raises(ValueError):
        build_image([("dir/file", b"")])


def test_file_too_large_rejected():
    builder = ImageBuilder()
    inum = builder.ialloc(InodeType.FILE)
    with pytest.raises(ValueError):
        builder.iappend(inum, bytes(MAXFILE * BSIZE + 1))


def test_out_of_inodes():
    builder = ImageBuilder(ninodes=4)
    builder.ialloc(InodeType.FILE)
    builder.ialloc(InodeType.FILE)
    with pytest.raises(ValueError):
        builder.ialloc(InodeType.FILE)


def test_main_writes_image(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    (tmp_path / "_cat").write_bytes(b"program bytes")
    assert main(["fs.img", "_cat"]) == 0
    image = (tmp_path / "fs.img").read_bytes()
    assert len(image) == FSSIZE * BSIZE
    entry = _root_entries(image)[-1]
    assert entry.name == "cat"
    assert _contents(image, entry.inum) == b"program bytes"


def test_main_usage_error(capsys):
    assert main([]) == 1
    assert "Usage" in capsys.readouterr().err


def test_main_missing_input(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    assert main(["fs.img", "nosuchfile"]) == 1