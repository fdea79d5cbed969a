import io

import pytest

from sixfs.disk import MemoryDisk
from sixfs.fs import FileSystem, FsError
from sixfs.layout import BSIZE, DIRSIZ, ROOTINO, InodeType
from sixfs.mkfs import build_image
from sixfs.tools import cat, echo, fmtname, ls, main

README = b"hello\n"
BIG = bytes(range(256)) * 10


@pytest.fixture
def image():
    return build_image([("README", README), ("_cat", BIG)])


@pytest.fixture
def fs(image):
    return FileSystem.mount(MemoryDisk(image))


def _parse(text):
    rows = {}
    for line in text.splitlines():
        name, itype, ino, size = line.rsplit(" ", 3)
        rows[name.strip()] = (int(itype), int(ino), int(size))
    return rows


def test_cat_copies_everything():
    out = io.BytesIO()
    cat(io.BytesIO(BIG), out)
    assert out.getvalue() == BIG


def test_cat_empty_input():
    out = io.BytesIO()
    cat(io.BytesIO(b""), out)
    assert out.getvalue() == b""


def test_echo():
    assert echo(["a", "b", "c"]) == "a b c\n"
    assert echo([]) == ""


def test_fmtname_pads_short_names():
    name = fmtname("dir/x")
    assert name.rstrip() == "x"
    assert len(name) == DIRSIZ


def test_fmtname_keeps_long_names():
    long_name = "n" * (DIRSIZ + 2)
    assert fmtname("/a/" + long_name) == long_name


def test_ls_root(fs):
    out = io.StringIO()
    ls(fs, "/", out)
    rows = _parse(out.getvalue())
    assert set(rows) == {".", "..", "README", "cat"}
    assert rows["."] == (int(InodeType.DIR), ROOTINO, BSIZE)
    assert rows["README"][0] == int(InodeType.FILE)
    assert rows["README"][2] == len(README)
    assert rows["cat"][2] == len(BIG)


def test_ls_file(fs):
    out = io.StringIO()
    ls(fs, "/README", out)
    text = out.getvalue()
    assert text.startswith(fmtname("README") + " ")
    assert _parse(text)["README"][2] == len(README)


def test_ls_missing_path(fs):
    with pytest.raises(FsError):
        ls(fs, "/nothing", io.StringIO())


def test_ls_releases_inodes(fs):
    first = io.StringIO()
    ls(fs, ".", first)
    for _ in range(60):
        out = io.StringIO()
        ls(fs, ".", out)
    assert out.getvalue() == first.getvalue()


def test_main_echo(capsys):
    assert main(["echo", "hi", "there"]) == 0
    assert capsys.readouterr().out == "hi there\n"


def test_main_cat_missing(capsys, tmp_path):
    missing = tmp_path / "missing"
    assert main(["cat", str(missing)]) == 1
    assert capsys.readouterr().out == f"cat: cannot open {missing}\n"


def test_main_ls(capsys, tmp_path, image):
    path = tmp_path / "fs.img"
    path.write_bytes(image)
    assert main(["ls", str(path)]) == 0
    rows = _parse(capsys.readouterr().out)
    assert set(rows) == {".", "..", "README", "cat"}


def test_main_unknown_tool():
    assert main(["frobnicate"]) == 2
    assert main([]) == 2