from __future__ import annotations

from typing import Iterator

import pytest

from dstr import HeapAllocator, settings


@pytest.fixture(autouse=True)
def allocator() -> Iterator[HeapAllocator]:
    """Route every allocation in a test through a fresh accounting allocator."""

    heap = HeapAllocator()
    with settings.override(allocator=heap):
        yield heap
