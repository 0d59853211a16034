"""Collaborators that supply fetch functions and projections to a Paginator."""

from pagestream.adapters.http_client import CursorPageClient
from pagestream.adapters.schemas import PageCursor, PageEnvelope, PageMeta

__all__ = [
    "CursorPageClient",
    "PageCursor",
    "PageEnvelope",
    "PageMeta",
]
