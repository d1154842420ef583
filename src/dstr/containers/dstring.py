"""Reference-counted, mutable byte string."""

from __future__ import annotations

import sys
from typing import IO, TYPE_CHECKING, Any, Callable, List, Optional, Union

from dstr.errors import AllocationError, BoundsError
from dstr.memory.allocator import STRING_HEADER_SIZE, Allocator, resolve_allocator
from dstr.runtime.settings import get_settings
from dstr.runtime.telemetry import span

from ._guard import check_position, ensure_live, reports_failure

if TYPE_CHECKING:
    from .dlist import DList
    from .dvector import DVector

BytesLike = Union[bytes, bytearray, memoryview]
Source = Union["DString", BytesLike]


def _payload(src: Source, n: Optional[int] = None) -> bytes:
    if isinstance(src, DString):
        ensure_live(src)
        data = src.to_bytes()
    elif isinstance(src, (bytes, bytearray, memoryview)):
        data = bytes(src)
    else:
        raise TypeError(f"expected DString or bytes-like, got {type(src).__name__}")
    if n is not None:
        if n < 0:
            raise ValueError("n cannot be negative")
        data = data[:n]
    return data


def _format_arg(value: Any) -> Any:
    if isinstance(value, DString):
        return value.to_bytes()
    if isinstance(value, str):
        return value.encode("utf-8")
    return value


class DString:
    """Mutable byte string shared by reference count.

    The buffer always holds ``length + 1`` or more bytes with a zero byte
    right after the content. Every mutation happens in place, so all holders
    of a handle observe it. ``acquire`` adds a holder, ``release`` drops one
    and frees the buffer with the last.

    Direct construction yields an empty string and raises
    ``AllocationError`` when the header cannot be allocated; the named
    constructors (``new``, ``from_bytes``, ``with_capacity``) return ``None``
    instead.
    """

    def __init__(
        self, *, allocator: Optional[Allocator] = None, growth: Optional[int] = None
    ) -> None:
        if growth is not None and growth < 1:
            raise ValueError("growth rate must be at least 1")
        self._allocator = resolve_allocator(allocator)
        self._allocator.charge(STRING_HEADER_SIZE)
        self._buffer: Optional[bytearray] = None
        self._length = 0
        self._refcount = 1
        self._growth = growth or get_settings().string_growth

    # -- construction -------------------------------------------------

    @classmethod
    @reports_failure(None)
    def new(cls, *, allocator: Optional[Allocator] = None) -> Optional["DString"]:
        return cls(allocator=allocator)

    @classmethod
    @reports_failure(None)
    def from_bytes(
        cls,
        data: Source,
        n: Optional[int] = None,
        *,
        allocator: Optional[Allocator] = None,
    ) -> Optional["DString"]:
        """Copy ``data`` (at most ``n`` bytes of it) into a new string."""

        payload = _payload(data, n)
        return cls._create(allocator, len(payload) + 1, payload)

    @classmethod
    @reports_failure(None)
    def with_capacity(
        cls, capacity: int, *, allocator: Optional[Allocator] = None
    ) -> Optional["DString"]:
        if capacity < 0:
            raise ValueError("capacity cannot be negative")
        return cls._create(allocator, capacity)

    @classmethod
    def _create(
        cls, allocator: Optional[Allocator], capacity: int, payload: bytes = b""
    ) -> "DString":
        string = cls(allocator=allocator)
        if capacity:
            try:
                string._buffer = string._allocator.allocate(capacity)
            except AllocationError:
                string.release()
                raise
            string._buffer[: len(payload)] = payload
            string._length = len(payload)
        return string

    @reports_failure(None)
    def copy(self) -> Optional["DString"]:
        """Return an independent string with the same content and one reference."""

        duplicate = DString._create(self._allocator, self._length + 1, self.to_bytes())
        duplicate._growth = self._growth
        return duplicate

    # -- ownership ----------------------------------------------------

    def acquire(self) -> "DString":
        ensure_live(self)
        self._refcount += 1
        return self

    def release(self) -> None:
        ensure_live(self)
        self._refcount -= 1
        if self._refcount == 0:
            self._allocator.release(self._buffer)
            self._buffer = None
            self._length = 0
            self._allocator.refund(STRING_HEADER_SIZE)

    @property
    def refcount(self) -> int:
        return self._refcount

    def __enter__(self) -> "DString":
        return self

    def __exit__(self, exc_type, exc, tb) -> bool:
        self.release()
        return False

    # -- accessors ----------------------------------------------------

    @property
    def allocator(self) -> Allocator:
        return self._allocator

    @property
    def length(self) -> int:
        ensure_live(self)
        return self._length

    @property
    def capacity(self) -> int:
        ensure_live(self)
        return len(self._buffer) if self._buffer is not None else 0

    @property
    def growth(self) -> int:
        return self._growth

    @growth.setter
    def growth(self, rate: int) -> None:
        if rate < 1:
            raise ValueError("growth rate must be at least 1")
        self._growth = rate

    def __len__(self) -> int:
        ensure_live(self)
        return self._length

    def is_empty(self) -> bool:
        ensure_live(self)
        return self._length == 0

    def view(self, *, terminated: bool = False) -> memoryview:
        """Borrow the content as a read-only memoryview.

        With ``terminated`` the zero sentinel is included. The view tracks
        the current buffer only until the next reallocation.
        """

        ensure_live(self)
        extra = 1 if terminated else 0
        if self._buffer is None:
            return memoryview(b"\0"[:extra])
        return memoryview(self._buffer)[: self._length + extra].toreadonly()

    def to_bytes(self) -> bytes:
        ensure_live(self)
        if self._buffer is None:
            return b""
        return bytes(self._buffer[: self._length])

    __bytes__ = to_bytes

    @reports_failure(None)
    def at(self, index: int) -> Optional[int]:
        check_position(index, self._length, allow_end=False)
        return self._buffer[index]  # type: ignore[index]

    def write(self, stream: Optional[IO[bytes]] = None) -> int:
        """Write the content to a binary stream, stdout by default."""

        target = stream if stream is not None else sys.stdout.buffer
        return target.write(self.to_bytes())

    def __eq__(self, other: object) -> bool:
        if isinstance(other, DString):
            return self.to_bytes() == other.to_bytes()
        if isinstance(other, (bytes, bytearray, memoryview)):
            return self.to_bytes() == bytes(other)
        return NotImplemented

    __hash__ = None  # type: ignore[assignment]

    def __repr__(self) -> str:
        if self._refcount <= 0:
            return "DString(<released>)"
        return (
            f"DString({self.to_bytes()!r}, refcount={self._refcount}, "
            f"capacity={self.capacity})"
        )

    # -- growth -------------------------------------------------------

    def _ensure(self, needed: int) -> None:
        """Make room for ``needed`` bytes, sentinel included."""

        capacity = self.capacity
        if needed <= capacity:
            return
        self._buffer = self._allocator.grow(
            self._buffer, (capacity + needed) * self._growth
        )

    def _splice(self, position: int, payload: bytes) -> None:
        size = len(payload)
        end = self._length + size
        self._ensure(end + 1)
        buffer = self._buffer
        assert buffer is not None
        buffer[position + size : end + 1] = buffer[position : self._length + 1]
        buffer[position : position + size] = payload
        self._length = end

    # -- mutation -----------------------------------------------------

    @reports_failure(False)
    def append(self, src: Source, n: Optional[int] = None) -> bool:
        self._splice(self._length, _payload(src, n))
        return True

    @reports_failure(False)
    def prepend(self, src: Source, n: Optional[int] = None) -> bool:
        self._splice(0, _payload(src, n))
        return True

    @reports_failure(False)
    def insert(self, position: int, src: Source, n: Optional[int] = None) -> bool:
        check_position(position, self._length, allow_end=True)
        self._splice(position, _payload(src, n))
        return True

    def append_steal(self, src: "DString") -> bool:
        """Append ``src`` and release one of its references on success."""

        if self.append(src):
            src.release()
            return True
        return False

    def prepend_steal(self, src: "DString") -> bool:
        if self.prepend(src):
            src.release()
            return True
        return False

    def insert_steal(self, position: int, src: "DString") -> bool:
        if self.insert(position, src):
            src.release()
            return True
        return False

    @reports_failure(False)
    def swap(self, other: "DString") -> bool:
        """Exchange content, length and capacity with ``other``.

        Strings from different allocators trade the buffers' accounting as
        well, so each allocator ends up charged for the buffer it now backs.
        Fails, leaving both strings untouched, when the allocator taking on
        the larger buffer refuses the difference.
        """

        ensure_live(other)
        if self._allocator is not other._allocator:
            mine, theirs = self.capacity, other.capacity
            if theirs >= mine:
                self._allocator.charge(theirs - mine)
                other._allocator.refund(theirs - mine)
            else:
                other._allocator.charge(mine - theirs)
                self._allocator.refund(mine - theirs)
        self._buffer, other._buffer = other._buffer, self._buffer
        self._length, other._length = other._length, self._length
        return True

    @reports_failure(False)
    def erase(self, first: int, last: int) -> bool:
        """Remove the bytes in ``[first, last)``."""

        if get_settings().bounds_checking and not 0 <= first <= last <= self._length:
            raise BoundsError(
                f"range [{first}, {last}) outside string of length {self._length}",
                position=(first, last),
                size=self._length,
            )
        removed = last - first
        if removed == 0:
            return True
        buffer = self._buffer
        assert buffer is not None
        length = self._length
        buffer[first : length - removed + 1] = buffer[last : length + 1]
        buffer[length - removed + 1 : length + 1] = bytes(removed)
        self._length = length - removed
        return True

    @reports_failure(False)
    def resize(self, size: int, fill: int = 0) -> bool:
        """Truncate to ``size`` bytes or pad up to it with ``fill``."""

        if size < 0:
            raise ValueError("size cannot be negative")
        if not 0 <= fill <= 255:
            raise ValueError("fill must be a byte value")
        length = self._length
        if size > length:
            self._ensure(size + 1)
            buffer = self._buffer
            assert buffer is not None
            buffer[length:size] = bytes([fill]) * (size - length)
            buffer[size] = 0
        elif size < length:
            buffer = self._buffer
            assert buffer is not None
            buffer[size : length + 1] = bytes(length + 1 - size)
        self._length = size
        return True

    @reports_failure(False)
    def reserve(self, capacity: int) -> bool:
        """Ensure the buffer holds at least ``capacity`` bytes."""

        if capacity > self.capacity:
            self._buffer = self._allocator.grow(self._buffer, capacity)
        return True

    def clear(self) -> None:
        """Zero the buffer and empty the string, keeping the allocation."""

        ensure_live(self)
        if self._buffer is not None:
            self._buffer[:] = bytes(len(self._buffer))
        self._length = 0

    @reports_failure(False)
    def compact(self) -> bool:
        """Shrink the buffer to ``length + 1`` bytes.

        Returns ``False`` when there was nothing to give back.
        """

        if self._buffer is None or self.capacity <= self._length + 1:
            return False
        self._buffer = self._allocator.grow(self._buffer, self._length + 1)
        return True

    @reports_failure(False)
    def append_format(self, fmt: Union[str, bytes], *args: Any) -> bool:
        """printf-style append: ``s.append_format("%d:", 12)``."""

        template = fmt.encode("ascii") if isinstance(fmt, str) else bytes(fmt)
        rendered = template % tuple(_format_arg(arg) for arg in args)
        self._splice(self._length, rendered)
        return True

    def _transform(
        self, start: int, stop: int, change: Callable[[bytes], bytes]
    ) -> None:
        ensure_live(self)
        if self._buffer is None or start >= stop:
            return
        self._buffer[start:stop] = change(bytes(self._buffer[start:stop]))

    def to_upper(self) -> None:
        self._transform(0, self._length, bytes.upper)

    def to_lower(self) -> None:
        self._transform(0, self._length, bytes.lower)

    def capitalize(self) -> None:
        """Upper-case the first byte only."""

        self._transform(0, min(1, self._length), bytes.upper)

    # -- queries ------------------------------------------------------

    def contains(self, needle: Source) -> int:
        """Count occurrences of ``needle``, resuming one byte after each hit.

        Overlapping matches therefore count separately: ``b"aaa"`` contains
        ``b"aa"`` twice. An empty needle never matches.
        """

        ensure_live(self)
        pattern = _payload(needle)
        if not pattern:
            return 0
        haystack = self.to_bytes()
        count = 0
        hit = haystack.find(pattern)
        while hit != -1:
            count += 1
            hit = haystack.find(pattern, hit + 1)
        return count

    def starts_with(self, prefix: Source) -> bool:
        return self.to_bytes().startswith(_payload(prefix))

    def ends_with(self, suffix: Source) -> bool:
        return self.to_bytes().endswith(_payload(suffix))

    def matches(self, other: Source) -> bool:
        return self.to_bytes() == _payload(other)

    def _runs(self, separator: Source) -> List[bytes]:
        sep = _payload(separator)
        if not sep:
            raise ValueError("separator cannot be empty")
        return self.to_bytes().split(sep)

    def split_to_list(self, separator: Source) -> Optional["DList"]:
        """Split on ``separator`` into a new list of new strings."""

        from .dlist import DList

        ensure_live(self)
        runs = self._runs(separator)
        with span(
            "dstring::split_to_list", component="dstring", metadata={"runs": len(runs)}
        ):
            target = DList.new(allocator=self._allocator)
            if target is None:
                return None
            return _fill(target, runs, target.add_steal, self._allocator)

    def split_to_vector(self, separator: Source) -> Optional["DVector"]:
        """Split on ``separator`` into a new vector sized for the result."""

        from .dvector import DVector

        ensure_live(self)
        runs = self._runs(separator)
        with span(
            "dstring::split_to_vector",
            component="dstring",
            metadata={"runs": len(runs)},
        ):
            target = DVector.with_capacity(len(runs), allocator=self._allocator)
            if target is None:
                return None
            return _fill(target, runs, target.push_back_steal, self._allocator)


def _fill(
    target: Any,
    runs: List[bytes],
    add: Callable[[DString], bool],
    allocator: Allocator,
) -> Any:
    for run in runs:
        piece = DString.from_bytes(run, allocator=allocator)
        if piece is None:
            target.release()
            return None
        if not add(piece):
            piece.release()
            target.release()
            return None
    return target


__all__ = ["DString", "Source", "BytesLike"]
