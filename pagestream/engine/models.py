"""Data models for the pagination engine: state, input events and effects.

These are pure data structures without asyncio or I/O.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Generic, TypeVar, Union

C = TypeVar("C")
P = TypeVar("P")
E = TypeVar("E")


class _Unset:
    """Cursor state before the first envelope of a query has arrived."""

    _instance: _Unset | None = None

    def __new__(cls) -> _Unset:
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __repr__(self) -> str:
        return "UNSET"

    def __bool__(self) -> bool:
        return False


UNSET = _Unset()


@dataclass(frozen=True)
class CursorSet(Generic[C]):
    """A continuation token taken from the most recent envelope."""

    value: C


CursorState = Union[_Unset, CursorSet[Any]]


@dataclass(frozen=True)
class PaginationState:
    """Snapshot of everything the paginator knows about the current query."""

    values: tuple[Any, ...] = ()
    cursor: CursorState = UNSET
    exhausted: bool = False
    generation: int = 0
    loading: bool = False
    pages: int = 0  # envelopes received in this generation
    published: tuple[Any, ...] | None = None  # last snapshot emitted on `values`

    @property
    def has_cursor(self) -> bool:
        return isinstance(self.cursor, CursorSet)


# ── events ────────────────────────────────────────────────────────────────


@dataclass(frozen=True)
class NewRequest(Generic[P]):
    params: P


@dataclass(frozen=True)
class NextPage:
    pass


@dataclass(frozen=True)
class PageLoaded(Generic[E]):
    """A fetch resolved; *generation* is the one it was dispatched under."""

    generation: int
    envelope: E


@dataclass(frozen=True)
class PageFailed:
    generation: int
    error: BaseException


Event = Union[NewRequest[Any], NextPage, PageLoaded[Any], PageFailed]


# ── effects ───────────────────────────────────────────────────────────────


@dataclass(frozen=True)
class EmitValues:
    values: tuple[Any, ...]


@dataclass(frozen=True)
class EmitLoading:
    loading: bool


@dataclass(frozen=True)
class EmitPageCount:
    count: int


@dataclass(frozen=True)
class FetchFirstPage(Generic[P]):
    generation: int
    params: P


@dataclass(frozen=True)
class FetchNextPage(Generic[C]):
    generation: int
    cursor: C


@dataclass(frozen=True)
class Supersede:
    """The in-flight fetch of *generation* no longer matters."""

    generation: int


Effect = Union[
    EmitValues,
    EmitLoading,
    EmitPageCount,
    FetchFirstPage[Any],
    FetchNextPage[Any],
    Supersede,
]
