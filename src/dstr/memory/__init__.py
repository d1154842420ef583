"""Memory sources for dstr containers."""

from .allocator import (
    Allocator,
    HeapAllocator,
    LimitedAllocator,
    default_allocator,
    resolve_allocator,
    wipe,
)

__all__ = [
    "Allocator",
    "HeapAllocator",
    "LimitedAllocator",
    "default_allocator",
    "resolve_allocator",
    "wipe",
]
