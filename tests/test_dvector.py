from __future__ import annotations

from typing import List, Optional

import pytest

from dstr import (
    END,
    DString,
    DVector,
    HeapAllocator,
    LimitedAllocator,
    ReleasedHandleError,
    settings,
)
from dstr.memory.allocator import STRING_HEADER_SIZE, VECTOR_HEADER_SIZE


def make_vector(*items: bytes) -> DVector:
    vector = DVector.new()
    assert vector is not None
    for item in items:
        assert vector.push_back_steal(DString.from_bytes(item))
    return vector


def contents(vector: Optional[DVector]) -> List[bytes]:
    assert vector is not None
    return [string.to_bytes() for string in vector]


def test_new_and_release(allocator: HeapAllocator) -> None:
    vector = DVector.new()

    assert vector is not None
    assert vector.is_empty()
    assert (vector.size(), vector.capacity) == (0, 0)

    vector.release()
    assert allocator.in_use == 0


def test_with_capacity_preallocates_slots() -> None:
    vector = DVector.with_capacity(6)

    assert vector is not None
    assert vector.capacity == 6
    assert vector.size() == 0


def test_insert_in_the_middle() -> None:
    vector = make_vector(b"lol1", b"lol2", b"lol3", b"lol4", b"lol5")

    assert vector.insert_steal(3, DString.from_bytes(b"liksom"))
    assert vector.insert_steal(3, DString.from_bytes(b"hei"))
    assert vector.insert_steal(3, DString.from_bytes(b"hei"))

    assert [vector.at(i).to_bytes() for i in range(8)] == [
        b"lol1",
        b"lol2",
        b"lol3",
        b"hei",
        b"hei",
        b"liksom",
        b"lol4",
        b"lol5",
    ]


def test_remove_closes_the_gap() -> None:
    vector = make_vector(b"lol1", b"lol2", b"lol3", b"hei", b"liksom", b"lol4")

    assert vector.remove(1)

    assert contents(vector) == [b"lol1", b"lol3", b"hei", b"liksom", b"lol4"]


def test_push_front_takes_references(allocator: HeapAllocator) -> None:
    first = DString.from_bytes(b"some data")
    second = DString.from_bytes(b"some more data")
    vector = make_vector()

    vector.push_front(first)
    vector.push_front(second)

    assert contents(vector) == [b"some more data", b"some data"]
    assert first.refcount == 2

    vector.release()
    assert first.refcount == 1
    first.release()
    second.release()
    assert allocator.in_use == 0


def test_push_front_steal() -> None:
    vector = make_vector()

    for item in (b"some data", b"some more data", b"random data"):
        assert vector.push_front_steal(DString.from_bytes(item))

    assert contents(vector) == [b"random data", b"some more data", b"some data"]
    assert all(string.refcount == 1 for string in vector)


def test_push_back() -> None:
    first = DString.from_bytes(b"some data")
    vector = make_vector()

    assert vector.push_back(first)
    assert vector.push_back(DString.from_bytes(b"other"))

    assert contents(vector) == [b"some data", b"other"]
    assert first.refcount == 2


def test_insert_at_zero_equals_push_front() -> None:
    inserted = make_vector(b"b", b"c")
    pushed = make_vector(b"b", b"c")

    inserted.insert_steal(0, DString.from_bytes(b"a"))
    pushed.push_front_steal(DString.from_bytes(b"a"))

    assert contents(inserted) == contents(pushed)


def test_insert_at_end_equals_push_back() -> None:
    inserted = make_vector(b"a", b"b")
    pushed = make_vector(b"a", b"b")

    inserted.insert_steal(END, DString.from_bytes(b"c"))
    pushed.push_back_steal(DString.from_bytes(b"c"))

    assert contents(inserted) == contents(pushed) == [b"a", b"b", b"c"]


def test_insert_at_size_appends() -> None:
    vector = make_vector(b"a")

    assert vector.insert_steal(1, DString.from_bytes(b"b"))

    assert contents(vector) == [b"a", b"b"]


@pytest.mark.parametrize("position", [-1, 3])
def test_insert_out_of_range_fails(position: int) -> None:
    string = DString.from_bytes(b"x")
    vector = make_vector(b"a", b"b")

    assert not vector.insert(position, string)
    assert not vector.insert_steal(position, string)

    assert string.refcount == 1
    assert contents(vector) == [b"a", b"b"]


def test_pop_front_and_back() -> None:
    vector = make_vector(b"a", b"b", b"c")

    assert vector.pop_front()
    assert vector.pop_back()

    assert contents(vector) == [b"b"]


def test_remove_from_empty_vector_fails() -> None:
    vector = make_vector()

    assert not vector.pop_back()
    assert not vector.pop_front()
    assert not vector.remove(0)
    assert not vector.remove(END)


def test_remove_out_of_range_fails() -> None:
    vector = make_vector(b"a")

    assert not vector.remove(1)
    assert vector.size() == 1


def test_remove_releases_reference() -> None:
    shared = DString.from_bytes(b"shared")
    vector = make_vector(b"a")
    vector.push_back(shared)

    assert vector.pop_back()

    assert shared.refcount == 1


def test_front_back_and_at() -> None:
    vector = make_vector(b"a", b"b", b"c")

    assert vector.front() == b"a"
    assert vector.back() == b"c"
    assert vector.at(1) == b"b"
    assert vector.at(END) == b"c"
    assert vector.at(3) is None
    assert vector.at(-1) is None


def test_accessors_on_empty_vector() -> None:
    vector = make_vector()

    assert vector.front() is None
    assert vector.back() is None
    assert vector.at(0) is None


def test_sequence_protocol() -> None:
    vector = make_vector(b"a", b"b", b"c")

    assert len(vector) == 3
    assert vector[0] == b"a"
    assert vector[-1] == b"c"
    assert [string.to_bytes() for string in vector[1:]] == [b"b", b"c"]
    with pytest.raises(IndexError):
        vector[3]


def test_growth_policy() -> None:
    vector = make_vector(b"a")
    assert vector.capacity == 3

    vector.push_back_steal(DString.from_bytes(b"b"))
    vector.push_back_steal(DString.from_bytes(b"c"))
    assert vector.capacity == 3

    vector.push_back_steal(DString.from_bytes(b"d"))
    assert vector.capacity == 12


def test_growth_follows_settings() -> None:
    with settings.override(vector_growth=5):
        vector = make_vector(b"a")

    assert vector.capacity == 5


def test_capacity_never_shrinks() -> None:
    vector = make_vector(b"a", b"b", b"c", b"d")
    capacity = vector.capacity

    while vector.pop_back():
        pass

    assert vector.is_empty()
    assert vector.capacity == capacity


def test_split_to_vector() -> None:
    source = DString.from_bytes(b"word1,word2,word3,word4,word5,word6")

    vector = source.split_to_vector(b",")

    assert vector is not None
    assert vector.size() == 6
    assert vector.capacity == 6
    assert contents(vector) == [f"word{i}".encode() for i in range(1, 7)]


def test_split_to_vector_without_separator() -> None:
    vector = DString.from_bytes(b"word").split_to_vector(b";")

    assert contents(vector) == [b"word"]


def test_release_frees_elements(allocator: HeapAllocator) -> None:
    vector = make_vector(b"a", b"b", b"c", b"d")

    vector.acquire()
    vector.release()
    assert vector.size() == 4

    vector.release()
    assert allocator.in_use == 0


def test_released_vector_rejects_use() -> None:
    vector = make_vector(b"a", b"b")
    vector.release()

    for use in (vector.size, vector.is_empty, lambda: vector.capacity):
        with pytest.raises(ReleasedHandleError):
            use()
    with pytest.raises(ReleasedHandleError):
        len(vector)
    with pytest.raises(ReleasedHandleError):
        iter(vector)
    with pytest.raises(ReleasedHandleError):
        vector[0]
    with pytest.raises(ReleasedHandleError):
        vector.push_back(DString.from_bytes(b"c"))
    assert repr(vector) == "DVector(<released>)"


def test_insert_failure_takes_no_reference() -> None:
    limited = LimitedAllocator(limit=VECTOR_HEADER_SIZE + STRING_HEADER_SIZE + 4)
    vector = DVector.new(allocator=limited)
    string = DString.from_bytes(b"x", allocator=limited)
    assert vector is not None and string is not None

    assert not vector.push_back(string)
    assert not vector.push_back_steal(string)

    assert string.refcount == 1
    assert vector.is_empty()
    assert vector.capacity == 0


def test_with_capacity_failure_returns_none() -> None:
    limited = LimitedAllocator(limit=VECTOR_HEADER_SIZE + 8)

    assert DVector.with_capacity(4, allocator=limited) is None
    assert limited.in_use == 0
