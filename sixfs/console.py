"""Line-edited console input and echoed output."""

from __future__ import annotations

import errno
from collections.abc import Callable, Iterable
from typing import Any

from .pipe import WouldBlock
from .printf import format_kernel

BACKSPACE = 0x100
INPUT_BUF = 128


def control(x: str) -> int:
    """Return the code of Control-x."""
    return ord(x) - ord("@")


_CTRL_D = control("D")
_CTRL_H = control("H")
_CTRL_P = control("P")
_CTRL_U = control("U")
_NEWLINE = ord("\n")


class Console:
    """Console with an input line editor; echoed output collects in ``output``.

    Input becomes readable a line at a time: on newline, on Control-D, or
    when the input buffer fills.
    """

    def __init__(self, procdump: Callable[[], Any] | None = None) -> None:
        self.output = bytearray()
        self._procdump = procdump
        self._buf = bytearray(INPUT_BUF)
        self._r = 0
        self._w = 0
        self._e = 0

    def putc(self, c: int) -> None:
        """Emit one character; BACKSPACE erases the previous one."""
        if c == BACKSPACE:
            self.output += b"\b \b"
        else:
            self.output.append(c & 0xFF)

    def interrupt(self, chars: Iterable[int | str]) -> None:
        """Feed typed characters through the line editor."""
        doprocdump = False
        for c in chars:
            if isinstance(c, str):
                c = ord(c)
            if c == _CTRL_P:
                doprocdump = True
            elif c == _CTRL_U:
                while self._e != self._w and self._buf[(self._e - 1) % INPUT_BUF] != _NEWLINE:
                    self._e -= 1
                    self.putc(BACKSPACE)
            elif c in (_CTRL_H, 0x7F):
                if self._e != self._w:
                    self._e -= 1
                    self.putc(BACKSPACE)
            elif c != 0 and self._e - self._r < INPUT_BUF:
                c = _NEWLINE if c == ord("\r") else c & 0xFF
                self._buf[self._e % INPUT_BUF] = c
                self._e += 1
                self.putc(c)
                if c in (_NEWLINE, _CTRL_D) or self._e == self._r + INPUT_BUF:
                    self._w = self._e
        if doprocdump and self._procdump is not None:
            self._procdump()

    def read(self, n: int) -> bytes:
        """Read up to n bytes of committed input, stopping after a newline.

        Control-D ends the read; on its own it reads as b"" (end of file).
        Raises WouldBlock when no committed input is waiting.
        """
        if n <= 0:
            return b""
        if self._r == self._w:
            raise WouldBlock(errno.EAGAIN, "no console input")
        out = bytearray()
        while len(out) < n and self._r != self._w:
            c = self._buf[self._r % INPUT_BUF]
            self._r += 1
            if c == _CTRL_D:
                if out:
                    self._r -= 1
                break
            out.append(c)
            if c == _NEWLINE:
                break
        return bytes(out)

    def write(self, data: bytes) -> int:
        """Echo data to the console and return its length."""
        for b in bytes(data):
            self.putc(b)
        return len(data)

    def printf(self, fmt: str, *args: Any) -> None:
        """Print a kernel-style formatted message."""
        for ch in format_kernel(fmt, *args):
            self.putc(ord(ch))