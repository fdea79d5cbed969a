import io

import pytest

from sixfs.grep import grep, main, match


@pytest.mark.parametrize(
    "re, text, expected",
    [
        ("^ab", "abc", True),
        ("^ab", "cab", False),
        ("b.d", "abcd", True),
        ("a*b", "b", True),
        ("ba*c", "baaac", True),
        ("ba*c", "bxc", False),
        ("c$", "abc", True),
        ("c$", "cab", False),
        ("", "anything", True),
        ("x", "", False),
        ("^$", "", True),
        ("^.*$", "whatever", True),
    ],
)
def test_match(re, text, expected):
    assert match(re, text) is expected


def test_match_long_text():
    assert match("z$", "a" * 5000 + "z") is True
    assert match("^a*$", "a" * 5000) is True


def test_grep_selects_lines():
    out = io.BytesIO()
    grep("an", io.BytesIO(b"apple\nbanana\ncherry\n"), out)
    assert out.getvalue() == b"banana\n"


def test_grep_drops_unterminated_last_line():
    out = io.BytesIO()
    grep("o", io.BytesIO(b"one\ntwo"), out)
    assert out.getvalue() == b"one\n"


def test_grep_all_lines_with_empty_pattern():
    data = b"".join(b"line %d\n" % i for i in range(300))
    out = io.BytesIO()
    grep("", io.BytesIO(data), out)
    assert out.getvalue() == data


def test_main_usage(capsys):
    assert main([]) == 1
    assert "usage: grep" in capsys.readouterr().err


def test_main_file(tmp_path, capsys):
    path = tmp_path / "input.txt"
    path.write_bytes(b"alpha\nbeta\ngamma\n")
    assert main(["^g", str(path)]) == 0
    assert capsys.readouterr().out == "gamma\n"


def test_main_missing_file(tmp_path, capsys):
    missing = tmp_path / "missing.txt"
    assert main(["x", str(missing)]) == 1
    assert f"grep: cannot open {missing}" in capsys.readouterr().out