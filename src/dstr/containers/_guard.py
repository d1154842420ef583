"""Shared failure handling for container operations."""

from __future__ import annotations

from functools import wraps
from typing import Any, Callable, TypeVar

from dstr.errors import AllocationError, BoundsError, ReleasedHandleError
from dstr.runtime.settings import get_settings
from dstr.runtime.telemetry import record_event

F = TypeVar("F", bound=Callable[..., Any])


def ensure_live(container: Any) -> None:
    if container._refcount <= 0:
        raise ReleasedHandleError(
            f"{type(container).__name__} used after its last reference was released"
        )


def check_position(position: int, size: int, *, allow_end: bool) -> None:
    """Raise ``BoundsError`` for an out-of-range position when checking is on.

    ``allow_end`` admits ``position == size`` (insertion points).
    """

    if not get_settings().bounds_checking:
        return
    limit = size if allow_end else size - 1
    if not 0 <= position <= limit:
        raise BoundsError(
            f"position {position} outside [0, {limit}]", position=position, size=size
        )


def reports_failure(failure: Any) -> Callable[[F], F]:
    """Turn allocation and bounds errors raised by ``method`` into ``failure``.

    Works for instance methods and classmethod constructors alike; instances
    are checked for liveness first.
    """

    def decorate(method: F) -> F:
        @wraps(method)
        def wrapper(owner: Any, *args: Any, **kwargs: Any) -> Any:
            if isinstance(owner, type):
                kind = owner.__name__.lower()
            else:
                kind = type(owner).__name__.lower()
                ensure_live(owner)
            try:
                return method(owner, *args, **kwargs)
            except AllocationError as exc:
                record_event(
                    f"{kind}.alloc_failed",
                    data={"operation": method.__name__, "requested": exc.requested},
                )
                return failure
            except BoundsError as exc:
                record_event(
                    f"{kind}.out_of_range",
                    data={
                        "operation": method.__name__,
                        "position": exc.position,
                        "size": exc.size,
                    },
                )
                return failure

        return wrapper  # type: ignore[return-value]

    return decorate


__all__ = ["check_position", "ensure_live", "reports_failure"]
