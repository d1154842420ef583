"""Runtime configuration knobs for dstr containers.

The C library this package descends from fixed these at compile time; here
they are a frozen ``Settings`` snapshot resolved from ``DSTR_*`` environment
variables and replaceable through ``configure``/``override``. Containers read
the snapshot when they are created or when an operation runs, so changing the
settings never rewrites existing objects.
"""

from __future__ import annotations

import os
from contextlib import contextmanager
from dataclasses import dataclass, replace
from typing import TYPE_CHECKING, Any, Iterator, Optional

if TYPE_CHECKING:
    from dstr.memory.allocator import Allocator

ENV_PREFIX = "DSTR_"

DEFAULT_STRING_GROWTH = 2
DEFAULT_VECTOR_GROWTH = 3


def _env_flag(name: str, default: bool) -> bool:
    raw = os.getenv(f"{ENV_PREFIX}{name}")
    if raw is None:
        return default
    return raw.lower() in {"1", "true", "yes", "on"}


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(f"{ENV_PREFIX}{name}")
    if raw is None or not raw.strip():
        return default
    try:
        return int(raw)
    except ValueError as exc:
        raise ValueError(f"{ENV_PREFIX}{name} must be an integer, got {raw!r}") from exc


@dataclass(frozen=True, slots=True)
class Settings:
    """Library-wide switches.

    ``allocator`` of ``None`` selects the process-wide heap allocator.
    """

    bounds_checking: bool = True
    secure_wipe: bool = False
    string_growth: int = DEFAULT_STRING_GROWTH
    vector_growth: int = DEFAULT_VECTOR_GROWTH
    allocator: Optional["Allocator"] = None

    def __post_init__(self) -> None:
        if self.string_growth < 1:
            raise ValueError("string_growth must be at least 1")
        if self.vector_growth < 1:
            raise ValueError("vector_growth must be at least 1")

    @classmethod
    def from_env(cls) -> "Settings":
        return cls(
            bounds_checking=_env_flag("BOUNDS_CHECKING", True),
            secure_wipe=_env_flag("SECURE_WIPE", False),
            string_growth=_env_int("STRING_GROWTH", DEFAULT_STRING_GROWTH),
            vector_growth=_env_int("VECTOR_GROWTH", DEFAULT_VECTOR_GROWTH),
        )


_ACTIVE: Optional[Settings] = None


def get_settings() -> Settings:
    global _ACTIVE
    if _ACTIVE is None:
        _ACTIVE = Settings.from_env()
    return _ACTIVE


def configure(**changes: Any) -> Settings:
    """Replace individual fields of the active settings and return the result."""

    global _ACTIVE
    _ACTIVE = replace(get_settings(), **changes)
    return _ACTIVE


def reset() -> Settings:
    """Drop overrides and re-read the environment."""

    global _ACTIVE
    _ACTIVE = Settings.from_env()
    return _ACTIVE


@contextmanager
def override(**changes: Any) -> Iterator[Settings]:
    """Apply ``changes`` for the duration of a ``with`` block."""

    global _ACTIVE
    previous = get_settings()
    _ACTIVE = replace(previous, **changes)
    try:
        yield _ACTIVE
    finally:
        _ACTIVE = previous


__all__ = [
    "Settings",
    "DEFAULT_STRING_GROWTH",
    "DEFAULT_VECTOR_GROWTH",
    "configure",
    "get_settings",
    "override",
    "reset",
]
