"""Envelope and cursor schemas for cursor-paginated JSON APIs."""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field, PrivateAttr


class PageMeta(BaseModel):
    """Pagination metadata of one page."""

    next_cursor: str | None = None
    has_more: bool | None = None  # None: server did not say
    total: int | None = None


class PageCursor(BaseModel):
    """Where to resume: the server's token plus the query of the first page."""

    model_config = ConfigDict(frozen=True)

    token: str
    query: dict[str, Any] = Field(default_factory=dict)

    @property
    def is_url(self) -> bool:
        return self.token.startswith(("http://", "https://"))


class PageEnvelope(BaseModel):
    """One page as returned by the API, before projection into values/cursor."""

    data: list[Any] = Field(default_factory=list)
    meta: PageMeta = Field(default_factory=PageMeta)

    # Set by the client, never read from the response body.
    _query: dict[str, Any] = PrivateAttr(default_factory=dict)

    @property
    def query(self) -> dict[str, Any]:
        """Query parameters of the request that started this pagination."""
        return dict(self._query)

    @property
    def next_cursor(self) -> str | None:
        """Cursor token for the following page; None when the server reports no more pages."""
        if self.meta.has_more is False:
            return None
        return self.meta.next_cursor
