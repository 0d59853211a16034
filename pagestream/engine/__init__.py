"""Pagination engine: a pure state machine with no asyncio."""

from pagestream.engine.models import (
    UNSET,
    CursorSet,
    NewRequest,
    NextPage,
    PageFailed,
    PageLoaded,
    PaginationState,
)
from pagestream.engine.transition import Policy, append_page, step

__all__ = [
    "CursorSet",
    "NewRequest",
    "NextPage",
    "PageFailed",
    "PageLoaded",
    "PaginationState",
    "Policy",
    "UNSET",
    "append_page",
    "step",
]
