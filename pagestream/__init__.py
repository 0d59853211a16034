"""pagestream: cursor pagination over async event streams."""

from pagestream.engine.models import UNSET, CursorSet, PaginationState
from pagestream.engine.transition import append_page
from pagestream.exceptions import (
    ConfigError,
    PageFetchError,
    PagestreamError,
    StreamClosedError,
)
from pagestream.paginator import Paginator, paginate
from pagestream.stream import Stream, Subscription, pipe

__all__ = [
    "ConfigError",
    "CursorSet",
    "PageFetchError",
    "PagestreamError",
    "PaginationState",
    "Paginator",
    "Stream",
    "StreamClosedError",
    "Subscription",
    "UNSET",
    "append_page",
    "paginate",
    "pipe",
]
