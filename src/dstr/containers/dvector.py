"""Growable vector of shared DString handles."""

from __future__ import annotations

from enum import Enum
from typing import Any, Iterator, List, Optional, Union, overload

from dstr.errors import AllocationError
from dstr.memory.allocator import VECTOR_HEADER_SIZE, Allocator, resolve_allocator
from dstr.runtime.settings import get_settings

from ._guard import check_position, ensure_live, reports_failure
from .dstring import DString


class End(Enum):
    """Position one past the back of a vector."""

    END = "END"

    def __repr__(self) -> str:
        return "END"


END = End.END
Position = Union[int, End]


class DVector:
    """Contiguous slots of DString handles, one reference per live slot.

    Slots ``[0, size)`` are live. The slot array grows to
    ``(size + 1) * vector_growth`` when full and never shrinks.
    """

    def __init__(
        self, *, capacity: int = 0, allocator: Optional[Allocator] = None
    ) -> None:
        if capacity < 0:
            raise ValueError("capacity cannot be negative")
        self._allocator = resolve_allocator(allocator)
        self._allocator.charge(VECTOR_HEADER_SIZE)
        self._slots: Optional[List[Optional[DString]]] = None
        self._size = 0
        self._refcount = 1
        if capacity:
            try:
                self._slots = self._allocator.allocate_slots(capacity)
            except AllocationError:
                self._allocator.refund(VECTOR_HEADER_SIZE)
                raise

    @classmethod
    @reports_failure(None)
    def new(cls, *, allocator: Optional[Allocator] = None) -> Optional["DVector"]:
        return cls(allocator=allocator)

    @classmethod
    @reports_failure(None)
    def with_capacity(
        cls, capacity: int, *, allocator: Optional[Allocator] = None
    ) -> Optional["DVector"]:
        return cls(capacity=capacity, allocator=allocator)

    # -- ownership ----------------------------------------------------

    def acquire(self) -> "DVector":
        ensure_live(self)
        self._refcount += 1
        return self

    def release(self) -> None:
        ensure_live(self)
        self._refcount -= 1
        if self._refcount:
            return
        slots = self._slots
        if slots is not None:
            for index in range(self._size):
                slots[index].release()  # type: ignore[union-attr]
            self._allocator.release_slots(slots)
        self._slots = None
        self._size = 0
        self._allocator.refund(VECTOR_HEADER_SIZE)

    @property
    def refcount(self) -> int:
        return self._refcount

    @property
    def allocator(self) -> Allocator:
        return self._allocator

    def __enter__(self) -> "DVector":
        return self

    def __exit__(self, exc_type, exc, tb) -> bool:
        self.release()
        return False

    # -- size ---------------------------------------------------------

    @property
    def capacity(self) -> int:
        ensure_live(self)
        return len(self._slots) if self._slots is not None else 0

    def size(self) -> int:
        ensure_live(self)
        return self._size

    __len__ = size

    def is_empty(self) -> bool:
        ensure_live(self)
        return self._size == 0

    # -- insertion ----------------------------------------------------

    @reports_failure(False)
    def insert(self, position: Position, string: DString) -> bool:
        """Place ``string`` at ``position`` (``0..size`` or ``END``)."""

        ensure_live(string)
        size = self._size
        if position is END:
            index = size
        else:
            check_position(position, size, allow_end=True)
            index = position
        required = size + 1
        if required > self.capacity:
            self._slots = self._allocator.grow_slots(
                self._slots, required * get_settings().vector_growth
            )
        slots = self._slots
        assert slots is not None
        if index < size:
            slots[index + 1 : size + 1] = slots[index:size]
        slots[index] = string.acquire()
        self._size = required
        return True

    def insert_steal(self, position: Position, string: DString) -> bool:
        if self.insert(position, string):
            string.release()
            return True
        return False

    def push_front(self, string: DString) -> bool:
        return self.insert(0, string)

    def push_front_steal(self, string: DString) -> bool:
        return self.insert_steal(0, string)

    def push_back(self, string: DString) -> bool:
        return self.insert(END, string)

    def push_back_steal(self, string: DString) -> bool:
        return self.insert_steal(END, string)

    # -- removal ------------------------------------------------------

    @reports_failure(False)
    def remove(self, position: Position) -> bool:
        """Release the string at ``position`` and close the gap."""

        size = self._size
        if position is END:
            check_position(size - 1, size, allow_end=False)
            index = size - 1
        else:
            check_position(position, size, allow_end=False)
            index = position
        slots = self._slots
        assert slots is not None
        removed = slots[index]
        slots[index : size - 1] = slots[index + 1 : size]
        slots[size - 1] = None
        self._size = size - 1
        removed.release()  # type: ignore[union-attr]
        return True

    def pop_front(self) -> bool:
        return self.remove(0)

    def pop_back(self) -> bool:
        return self.remove(END)

    # -- access -------------------------------------------------------

    @reports_failure(None)
    def at(self, position: Position) -> Optional[DString]:
        """Borrow the string at ``position``; ``END`` names the back."""

        size = self._size
        index = size - 1 if position is END else position
        check_position(index, size, allow_end=False)
        return self._slots[index]  # type: ignore[index]

    def front(self) -> Optional[DString]:
        return self.at(0)

    def back(self) -> Optional[DString]:
        return self.at(END)

    def _live(self) -> List[DString]:
        ensure_live(self)
        if self._slots is None:
            return []
        return self._slots[: self._size]  # type: ignore[return-value]

    @overload
    def __getitem__(self, index: int) -> DString: ...

    @overload
    def __getitem__(self, index: slice) -> List[DString]: ...

    def __getitem__(self, index: Any) -> Any:
        return self._live()[index]

    def __iter__(self) -> Iterator[DString]:
        return iter(self._live())

    def __repr__(self) -> str:
        if self._refcount <= 0:
            return "DVector(<released>)"
        items = ", ".join(repr(string.to_bytes()) for string in self)
        return (
            f"DVector([{items}], refcount={self._refcount}, capacity={self.capacity})"
        )


__all__ = ["DVector", "END", "End", "Position"]
