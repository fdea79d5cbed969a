"""Allocator of fixed-size physical pages."""

from __future__ import annotations

PGSIZE = 4096


class AllocatorError(Exception):
    """A page that cannot be handed to the allocator."""


class PageAllocator:
    """Keeps a free list of page addresses in the range [low, high).

    Freed pages are handed out again most recently freed first.
    """

    def __init__(self, low: int, high: int, page_size: int = PGSIZE) -> None:
        self.low = low
        self.high = high
        self.page_size = page_size
        self._freelist: list[int] = []

    def __len__(self) -> int:
        return len(self._freelist)

    def free_range(self, start: int, end: int) -> None:
        """Free every whole page between start (rounded up) and end."""
        size = self.page_size
        p = -(-start // size) * size
        while p + size <= end:
            self.free(p)
            p += size

    def free(self, addr: int) -> None:
        """Return one page to the allocator."""
        if addr % self.page_size or addr < self.low or addr >= self.high:
            raise AllocatorError(f"kfree: bad page address {addr:#x}")
        self._freelist.append(addr)

    def alloc(self) -> int | None:
        """Take a free page; return None when none is left."""
        return self._freelist.pop() if self._freelist else None