"""Doubly-linked list of shared DString handles."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Callable, Iterator, Optional

from dstr.errors import BoundsError
from dstr.memory.allocator import (
    LINK_SIZE,
    LIST_HEADER_SIZE,
    Allocator,
    resolve_allocator,
)
from dstr.runtime.settings import get_settings
from dstr.runtime.telemetry import span

from ._guard import ensure_live, reports_failure
from .dstring import DString, Source


@dataclass(eq=False, slots=True)
class Link:
    """Node holding one reference on ``value``."""

    value: DString
    prev: Optional["Link"] = field(default=None, repr=False)
    next: Optional["Link"] = field(default=None, repr=False)
    owner: Optional["DList"] = field(default=None, repr=False)


class DList:
    """Reference-counted list; each link owns one reference on its string.

    The list keeps no element count, ``size()`` walks the links. Callers
    that want to drop elements while walking should use ``links()`` or
    ``traverse_delete``, both of which step past the current link before
    handing it out.
    """

    def __init__(self, *, allocator: Optional[Allocator] = None) -> None:
        self._allocator = resolve_allocator(allocator)
        self._allocator.charge(LIST_HEADER_SIZE)
        self.head: Optional[Link] = None
        self.tail: Optional[Link] = None
        self._refcount = 1

    @classmethod
    @reports_failure(None)
    def new(cls, *, allocator: Optional[Allocator] = None) -> Optional["DList"]:
        return cls(allocator=allocator)

    @classmethod
    def decode(
        cls, data: Source, *, allocator: Optional[Allocator] = None
    ) -> Optional["DList"]:
        from .codec import decode_list

        return decode_list(data, allocator=allocator)

    # -- ownership ----------------------------------------------------

    def acquire(self) -> "DList":
        ensure_live(self)
        self._refcount += 1
        return self

    def release(self) -> None:
        ensure_live(self)
        self._refcount -= 1
        if self._refcount:
            return
        link = self.head
        while link is not None:
            following = link.next
            self._discard(link)
            link = following
        self.head = self.tail = None
        self._allocator.refund(LIST_HEADER_SIZE)

    @property
    def refcount(self) -> int:
        return self._refcount

    @property
    def allocator(self) -> Allocator:
        return self._allocator

    def __enter__(self) -> "DList":
        return self

    def __exit__(self, exc_type, exc, tb) -> bool:
        self.release()
        return False

    # -- structure ----------------------------------------------------

    @reports_failure(False)
    def add(self, string: DString) -> bool:
        """Attach ``string`` at the tail, taking one reference on it."""

        ensure_live(string)
        self._allocator.charge(LINK_SIZE)
        link = Link(value=string.acquire(), prev=self.tail, owner=self)
        if self.tail is not None:
            self.tail.next = link
        else:
            self.head = link
        self.tail = link
        return True

    def add_steal(self, string: DString) -> bool:
        """``add`` and then release the caller's reference on success."""

        if self.add(string):
            string.release()
            return True
        return False

    @reports_failure(False)
    def remove(self, link: Link) -> bool:
        """Unlink ``link`` and release its string."""

        if get_settings().bounds_checking and link.owner is not self:
            raise BoundsError("link does not belong to this list", position=link)
        if link.prev is not None:
            link.prev.next = link.next
        else:
            self.head = link.next
        if link.next is not None:
            link.next.prev = link.prev
        else:
            self.tail = link.prev
        self._discard(link)
        return True

    def _discard(self, link: Link) -> None:
        link.owner = None
        link.prev = link.next = None
        link.value.release()
        self._allocator.refund(LINK_SIZE)

    def size(self) -> int:
        count = 0
        for _ in self.links():
            count += 1
        return count

    __len__ = size

    def is_empty(self) -> bool:
        ensure_live(self)
        return self.head is None

    # -- traversal ----------------------------------------------------

    def links(self) -> Iterator[Link]:
        ensure_live(self)
        return _walk(self.head, forward=True)

    def reversed_links(self) -> Iterator[Link]:
        ensure_live(self)
        return _walk(self.tail, forward=False)

    def __iter__(self) -> Iterator[DString]:
        return (link.value for link in self.links())

    def __reversed__(self) -> Iterator[DString]:
        return (link.value for link in self.reversed_links())

    def traverse(
        self, callback: Callable[[DString, Any], None], user_data: Any = None
    ) -> None:
        for string in self:
            callback(string, user_data)

    def traverse_reverse(
        self, callback: Callable[[DString, Any], None], user_data: Any = None
    ) -> None:
        for string in reversed(self):
            callback(string, user_data)

    def traverse_delete(self, predicate: Callable[[DString], bool]) -> int:
        """Remove every element for which ``predicate`` is true.

        Returns the number of removed links.
        """

        removed = 0
        for link in self.links():
            if predicate(link.value):
                self.remove(link)
                removed += 1
        return removed

    # -- derived values -----------------------------------------------

    def join(self, separator: Optional[Source] = None) -> Optional[DString]:
        """Concatenate the elements, ``separator`` between neighbours."""

        ensure_live(self)
        with span("dlist::join", component="dlist"):
            joined = DString.new(allocator=self._allocator)
            if joined is None:
                return None
            for link in self.links():
                if not joined.append(link.value):
                    joined.release()
                    return None
                if separator and link.next is not None and not joined.append(separator):
                    joined.release()
                    return None
            return joined

    def search_contains(self, needle: Source) -> Optional["DList"]:
        """New list of the elements containing ``needle``.

        The elements are shared, not copied: the result holds its own
        references and the elements stay in this list.
        """

        ensure_live(self)
        with span("dlist::search_contains", component="dlist") as handle:
            found = DList.new(allocator=self._allocator)
            if found is None:
                return None
            for string in self:
                if string.contains(needle) and not found.add(string):
                    found.release()
                    return None
            handle.add_metadata("matches", found.size())
            return found

    def encode(self) -> Optional[DString]:
        from .codec import encode_list

        return encode_list(self)

    def __repr__(self) -> str:
        if self._refcount <= 0:
            return "DList(<released>)"
        items = ", ".join(repr(string.to_bytes()) for string in self)
        return f"DList([{items}], refcount={self._refcount})"


def _walk(link: Optional[Link], *, forward: bool) -> Iterator[Link]:
    """Yield links from ``link`` onwards, stepping past each before yielding it."""

    while link is not None:
        following = link.next if forward else link.prev
        yield link
        link = following


__all__ = ["DList", "Link"]
