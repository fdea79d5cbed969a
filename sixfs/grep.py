"""A small grep supporting the ^ . * $ operators."""

from __future__ import annotations

import sys
from collections.abc import Sequence
from typing import BinaryIO

_BUFSIZE = 1024


def _matchhere(re: str, text: str) -> bool:
    i = j = 0
    while True:
        if i == len(re):
            return True
        if i + 1 < len(re) and re[i + 1] == "*":
            return _matchstar(re[i], re[i + 2 :], text[j:])
        if re[i] == "$" and i + 1 == len(re):
            return j == len(text)
        if j < len(text) and (re[i] == "." or re[i] == text[j]):
            i += 1
            j += 1
            continue
        return False


def _matchstar(c: str, re: str, text: str) -> bool:
    j = 0
    while True:
        if _matchhere(re, text[j:]):
            return True
        if j < len(text) and (text[j] == c or c == "."):
            j += 1
            continue
        return False


def match(re: str, text: str) -> bool:
    """Return True if the pattern matches anywhere in text."""
    if re.startswith("^"):
        return _matchhere(re[1:], text)
    return any(_matchhere(re, text[j:]) for j in range(len(text) + 1))


def grep(pattern: str | bytes, stream: BinaryIO, out: BinaryIO) -> None:
    """Copy the newline-terminated lines of stream that match to out.

    Input is read in chunks of at most 1023 bytes; a chunk holding no
    newline is discarded, as is a final line without a newline.
    """
    if isinstance(pattern, str):
        pattern = pattern.encode("utf-8", "surrogateescape")
    pat = bytes(pattern).decode("latin-1")
    buf = b""
    while True:
        chunk = stream.read(_BUFSIZE - len(buf) - 1)
        if not chunk:
            break
        buf += chunk
        *lines, rest = buf.split(b"\n")
        for line in lines:
            if match(pat, line.decode("latin-1")):
                out.write(line + b"\n")
        buf = rest if lines else b""


def main(argv: Sequence[str] | None = None) -> int:
    args = list(sys.argv[1:] if argv is None else argv)
    if not args:
        print("usage: grep pattern [file ...]", file=sys.stderr)
        return 1
    pattern, *paths = args
    out = sys.stdout.buffer
    try:
        if not paths:
            grep(pattern, sys.stdin.buffer, out)
            return 0
        for path in paths:
            try:
                fh = open(path, "rb")
            except OSError:
                out.write(f"grep: cannot open {path}\n".encode())
                return 1
            with fh:
                grep(pattern, fh, out)
        return 0
    finally:
        out.flush()


if __name__ == "__main__":
    sys.exit(main())