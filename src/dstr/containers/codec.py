"""Length-prefixed list codec.

Wire form::

    list   = "l" *item "e"
    item   = length ":" <length bytes>
    length = 1*DIGIT        ; ASCII decimal, no sign, no zero padding

``["ab", "", "x"]`` encodes as ``l2:ab0:1:xe``. Only flat lists of byte
strings are supported; there are no integers, dictionaries or nesting.
"""

from __future__ import annotations

from typing import List, Optional

from dstr.errors import CodecError
from dstr.memory.allocator import Allocator
from dstr.runtime.telemetry import record_event, span

from .dlist import DList
from .dstring import DString, Source

LIST_START = b"l"
LIST_END = b"e"
LENGTH_END = b":"


def encode_list(items: DList) -> Optional[DString]:
    """Encode ``items`` into a new string, ``None`` on allocation failure."""

    with span("codec::encode", component="codec") as handle:
        encoded = DString.from_bytes(LIST_START, allocator=items.allocator)
        if encoded is None:
            return None
        for string in items:
            if not encoded.append_format(b"%d:", len(string)) or not encoded.append(
                string
            ):
                encoded.release()
                return None
        if not encoded.append(LIST_END):
            encoded.release()
            return None
        handle.add_metadata("bytes", len(encoded))
        return encoded


def parse_items(payload: bytes) -> List[bytes]:
    """Split an encoded list into its items, raising ``CodecError`` if malformed."""

    if payload[:1] != LIST_START:
        raise CodecError("missing leading 'l'", offset=0)
    items: List[bytes] = []
    offset = 1
    end = len(payload)
    while True:
        if offset >= end:
            raise CodecError("list is not terminated", offset=offset)
        if payload[offset : offset + 1] == LIST_END:
            offset += 1
            break
        colon = payload.find(LENGTH_END, offset)
        if colon == -1:
            raise CodecError("length is not followed by ':'", offset=offset)
        digits = payload[offset:colon]
        if not digits.isdigit():
            raise CodecError(f"malformed length {digits!r}", offset=offset)
        if len(digits) > 1 and digits.startswith(b"0"):
            raise CodecError(f"zero-padded length {digits!r}", offset=offset)
        if len(digits) > len(str(end)):
            raise CodecError("length exceeds the input size", offset=offset)
        start = colon + 1
        stop = start + int(digits)
        if stop > end:
            raise CodecError("item runs past the end of input", offset=start)
        items.append(payload[start:stop])
        offset = stop
    if offset != end:
        raise CodecError("trailing bytes after list end", offset=offset)
    return items


def decode_list(
    data: Source, *, allocator: Optional[Allocator] = None
) -> Optional[DList]:
    """Decode ``data`` into a new list; ``None`` if malformed or out of memory."""

    payload = data.to_bytes() if isinstance(data, DString) else bytes(data)
    if allocator is None and isinstance(data, DString):
        allocator = data.allocator
    try:
        items = parse_items(payload)
    except CodecError as exc:
        record_event(
            "codec.decode_failed",
            data={"reason": str(exc), "offset": exc.offset},
        )
        return None

    with span("codec::decode", component="codec", metadata={"items": len(items)}):
        decoded = DList.new(allocator=allocator)
        if decoded is None:
            return None
        for item in items:
            string = DString.from_bytes(item, allocator=decoded.allocator)
            if string is None:
                decoded.release()
                return None
            if not decoded.add_steal(string):
                string.release()
                decoded.release()
                return None
        return decoded


__all__ = ["encode_list", "decode_list", "parse_items"]
