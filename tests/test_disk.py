import pytest

from sixfs.disk import DiskError, MemoryDisk
from sixfs.layout import BSIZE, ROOTDEV


def test_new_disk_reads_zeros():
    disk = MemoryDisk(bytes(BSIZE * 3))
    assert disk.nblocks == 3
    assert disk.read(2) == bytes(BSIZE)
    assert disk.dev == ROOTDEV


def test_write_then_read():
    disk = MemoryDisk(bytes(BSIZE * 4))
    payload = bytes(range(256)) * (BSIZE // 256)
    disk.write(1, payload)
    assert disk.read(1) == payload
    assert disk.read(0) == bytes(BSIZE)


def test_partial_trailing_block_ignored():
    disk = MemoryDisk(bytes(BSIZE * 2 + 10))
    assert disk.nblocks == 2
    with pytest.raises(DiskError):
        disk.read(2)


@pytest.mark.parametrize("blockno", [-1, 4, 100])
def test_out_of_range_rejected(blockno):
    disk = MemoryDisk(bytes(BSIZE * 4))
    with pytest.raises(DiskError):
        disk.read(blockno)
    with pytest.raises(DiskError):
        disk.write(blockno, bytes(BSIZE))


def test_wrong_size_write_rejected():
    disk = MemoryDisk(bytes(BSIZE * 2))
    with pytest.raises(DiskError):
        disk.write(0, b"short")
    assert disk.read(0) == bytes(BSIZE)


def test_save_and_load_round_trip(tmp_path):
    disk = MemoryDisk(bytes(BSIZE * 2), dev=5)
    disk.write(1, b"\xab" * BSIZE)
    path = tmp_path / "img"
    disk.save(path)
    loaded = MemoryDisk.from_file(path, dev=5)
    assert bytes(loaded) == bytes(disk)
    assert loaded.read(1) == b"\xab" * BSIZE
    assert loaded.dev == 5