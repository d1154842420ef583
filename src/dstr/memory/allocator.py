"""Allocators supplying every buffer, slot array and header in dstr.

An allocator hands out zero-filled ``bytearray`` blocks for string buffers
and ``list`` slot arrays for vectors, and charges fixed header sizes for the
objects themselves. ``HeapAllocator`` only accounts for what it hands out;
``LimitedAllocator`` additionally refuses requests past a byte budget, which
is how failure paths are driven.
"""

from __future__ import annotations

from typing import Any, List, Optional, Protocol

from dstr.errors import AllocationError
from dstr.runtime.settings import get_settings

# Header sizes mirror the C structs on a 64-bit target.
STRING_HEADER_SIZE = 32
LINK_SIZE = 24
LIST_HEADER_SIZE = 24
VECTOR_HEADER_SIZE = 32
SLOT_SIZE = 8


class Allocator(Protocol):
    """Interface every allocator implements."""

    def charge(self, nbytes: int) -> None: ...

    def refund(self, nbytes: int) -> None: ...

    def allocate(self, size: int) -> bytearray: ...

    def grow(self, block: Optional[bytearray], size: int) -> bytearray: ...

    def release(self, block: Optional[bytearray]) -> None: ...

    def allocate_slots(self, count: int) -> List[Any]: ...

    def grow_slots(self, slots: Optional[List[Any]], count: int) -> List[Any]: ...

    def release_slots(self, slots: Optional[List[Any]]) -> None: ...


def wipe(block: bytearray) -> None:
    """Overwrite every byte of ``block`` with zero in place."""

    with memoryview(block) as view:
        view[:] = bytes(len(view))


class HeapAllocator:
    """Default allocator backed by the Python heap, with usage accounting."""

    def __init__(self) -> None:
        self.in_use = 0
        self.peak = 0

    def _admit(self, nbytes: int) -> None:
        """Hook for subclasses that refuse requests; called before any charge."""

    def charge(self, nbytes: int) -> None:
        if nbytes < 0:
            raise ValueError("cannot charge a negative size")
        self._admit(nbytes)
        self.in_use += nbytes
        self.peak = max(self.peak, self.in_use)

    def refund(self, nbytes: int) -> None:
        self.in_use -= nbytes

    def allocate(self, size: int) -> bytearray:
        self.charge(size)
        return bytearray(size)

    def grow(self, block: Optional[bytearray], size: int) -> bytearray:
        """Return a block of ``size`` bytes holding the prefix of ``block``.

        The old block is left untouched when the request is refused.
        """

        old_size = len(block) if block is not None else 0
        if size > old_size:
            self.charge(size - old_size)
        else:
            self.refund(old_size - size)
        resized = bytearray(size)
        if block is not None:
            keep = min(old_size, size)
            resized[:keep] = block[:keep]
            if get_settings().secure_wipe:
                wipe(block)
        return resized

    def release(self, block: Optional[bytearray]) -> None:
        if block is None:
            return
        if get_settings().secure_wipe:
            wipe(block)
        self.refund(len(block))

    def allocate_slots(self, count: int) -> List[Any]:
        self.charge(count * SLOT_SIZE)
        return [None] * count

    def grow_slots(self, slots: Optional[List[Any]], count: int) -> List[Any]:
        old_count = len(slots) if slots is not None else 0
        if count > old_count:
            self.charge((count - old_count) * SLOT_SIZE)
        else:
            self.refund((old_count - count) * SLOT_SIZE)
        resized: List[Any] = [None] * count
        if slots is not None:
            keep = min(old_count, count)
            resized[:keep] = slots[:keep]
        return resized

    def release_slots(self, slots: Optional[List[Any]]) -> None:
        if slots is None:
            return
        self.refund(len(slots) * SLOT_SIZE)


class LimitedAllocator(HeapAllocator):
    """Heap allocator that fails once ``limit`` bytes would be in use."""

    def __init__(self, limit: int) -> None:
        super().__init__()
        self.limit = limit
        self.failures = 0

    def _admit(self, nbytes: int) -> None:
        if self.in_use + nbytes > self.limit:
            self.failures += 1
            raise AllocationError(
                f"request of {nbytes} bytes exceeds limit of {self.limit}",
                requested=nbytes,
            )


_DEFAULT_ALLOCATOR = HeapAllocator()


def default_allocator() -> HeapAllocator:
    return _DEFAULT_ALLOCATOR


def resolve_allocator(allocator: Optional[Allocator] = None) -> Allocator:
    """Pick the explicit allocator, else the configured one, else the default."""

    if allocator is not None:
        return allocator
    configured = get_settings().allocator
    return configured if configured is not None else _DEFAULT_ALLOCATOR


__all__ = [
    "Allocator",
    "HeapAllocator",
    "LimitedAllocator",
    "STRING_HEADER_SIZE",
    "LINK_SIZE",
    "LIST_HEADER_SIZE",
    "VECTOR_HEADER_SIZE",
    "SLOT_SIZE",
    "default_allocator",
    "resolve_allocator",
    "wipe",
]
