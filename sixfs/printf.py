"""Minimal printf-style formatting for %d, %x, %p, %s (and %c for users)."""

from __future__ import annotations

from collections.abc import Iterator
from typing import Any

_MASK = 0xFFFFFFFF


def _printint(value: int, base: int, signed: bool, digits: str) -> str:
    x = int(value) & _MASK
    negative = signed and bool(x & 0x80000000)
    if negative:
        x = (1 << 32) - x
    out = []
    while True:
        out.append(digits[x % base])
        x //= base
        if x == 0:
            break
    if negative:
        out.append("-")
    return "".join(reversed(out))


def _next(args: Iterator[Any]) -> Any:
    try:
        return next(args)
    except StopIteration:
        raise TypeError("not enough arguments for format string") from None


def _as_text(value: Any) -> str:
    if value is None:
        return "(null)"
    if isinstance(value, (bytes, bytearray)):
        return bytes(value).decode("latin-1")
    return str(value)


def _format(fmt: str, args: tuple[Any, ...], digits: str, with_char: bool) -> str:
    it = iter(args)
    out: list[str] = []
    chars = iter(fmt)
    for c in chars:
        if c != "%":
            out.append(c)
            continue
        c = next(chars, "")
        if not c:
            break
        if c == "d":
            out.append(_printint(_next(it), 10, True, digits))
        elif c in "xp":
            out.append(_printint(_next(it), 16, False, digits))
        elif c == "s":
            out.append(_as_text(_next(it)))
        elif c == "c" and with_char:
            value = _next(it)
            out.append(value[:1] if isinstance(value, str) else chr(int(value) & 0xFF))
        elif c == "%":
            out.append("%")
        else:
            out.append("%" + c)
    return "".join(out)


def format_user(fmt: str, *args: Any) -> str:
    """Format like the user-level printf: upper-case hex, supports %c."""
    return _format(fmt, args, "0123456789ABCDEF", True)


def format_kernel(fmt: str, *args: Any) -> str:
    """Format like the kernel's cprintf: lower-case hex, no %c."""
    if fmt is None:
        raise ValueError("null fmt")
    return _format(fmt, args, "0123456789abcdef", False)