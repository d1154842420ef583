"""Exception types raised inside dstr operations.

Public container operations report allocation and bounds failures by return
value; these exceptions carry the details up to that boundary, where they
are recorded through telemetry and converted.
"""

from __future__ import annotations


class DStrError(RuntimeError):
    """Base class for dstr failures."""


class AllocationError(DStrError):
    """Raised by an allocator that cannot satisfy a request."""

    def __init__(self, message: str, *, requested: int = 0) -> None:
        super().__init__(message)
        self.requested = requested


class BoundsError(DStrError):
    """Raised when a position falls outside a container."""

    def __init__(self, message: str, *, position: object = None, size: int = 0) -> None:
        super().__init__(message)
        self.position = position
        self.size = size


class CodecError(DStrError):
    """Raised while decoding malformed length-prefixed data."""

    def __init__(self, message: str, *, offset: int = 0) -> None:
        super().__init__(message)
        self.offset = offset


class ReleasedHandleError(DStrError):
    """Raised when a handle is used after its last reference was released."""


__all__ = [
    "DStrError",
    "AllocationError",
    "BoundsError",
    "CodecError",
    "ReleasedHandleError",
]
