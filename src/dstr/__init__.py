"""Reference-counted dynamic strings with list and vector containers."""

from __future__ import annotations

from typing import Optional

from .containers import (
    END,
    DList,
    DString,
    DVector,
    End,
    Link,
    decode_list,
    encode_list,
)
from .errors import (
    AllocationError,
    BoundsError,
    CodecError,
    DStrError,
    ReleasedHandleError,
)
from .memory import HeapAllocator, LimitedAllocator
from .runtime import settings, telemetry

__version__ = "1.0.0"


def version() -> Optional[DString]:
    """Return the library version as a new DString."""

    return DString.from_bytes(__version__.encode("ascii"))


__all__ = [
    "DString",
    "DList",
    "Link",
    "DVector",
    "END",
    "End",
    "encode_list",
    "decode_list",
    "DStrError",
    "AllocationError",
    "BoundsError",
    "CodecError",
    "ReleasedHandleError",
    "HeapAllocator",
    "LimitedAllocator",
    "settings",
    "telemetry",
    "version",
]
