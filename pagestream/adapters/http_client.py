"""Async HTTP page source for cursor- and Link-paginated JSON APIs.

Provides the two fetch functions and two projections a Paginator needs:

    async with CursorPageClient("https://api.example.com", "/items") as client:
        paginator = Paginator(
            new_requests, next_page,
            clear_on_new_request=True,
            values_of=client.values_of,
            cursor_of=client.cursor_of,
            fetch_by_params=client.fetch_first,
            fetch_by_cursor=client.fetch_next,
        )
"""

from __future__ import annotations

import asyncio
import re
import time
from collections.abc import Mapping
from typing import Any

import httpx
import structlog
from pydantic import ValidationError

from pagestream.adapters.schemas import PageCursor, PageEnvelope
from pagestream.core.config import Settings
from pagestream.exceptions import PageFetchError

log = structlog.get_logger("pagestream.http")

_NEXT_LINK_RE = re.compile(r'<([^>]+)>;\s*rel="next"')

_RETRY_BASE_DELAY = 1.0  # seconds


class CursorPageClient:
    """Thin async wrapper that turns HTTP responses into :class:`PageEnvelope`."""

    def __init__(
        self,
        base_url: str,
        path: str = "",
        *,
        settings: Settings | None = None,
        headers: Mapping[str, str] | None = None,
        cursor_param: str = "cursor",
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        settings = settings or Settings.from_env()
        self._path = path
        self._cursor_param = cursor_param
        self._page_size = settings.page_size
        self._max_retries = settings.max_retries
        self._client = httpx.AsyncClient(
            base_url=base_url,
            headers={"Accept": "application/json", **(headers or {})},
            timeout=settings.http_timeout,
            transport=transport,
        )

    # ── lifecycle ──────────────────────────────────────────────────────────

    async def close(self) -> None:
        await self._client.aclose()

    async def __aenter__(self) -> CursorPageClient:
        return self

    async def __aexit__(self, *exc: object) -> None:
        await self.close()

    # ── fetch functions ────────────────────────────────────────────────────

    async def fetch_first(self, params: Mapping[str, Any] | None = None) -> PageEnvelope:
        """Fetch the first page of a query described by *params*."""
        query = dict(params or {})
        query.setdefault("per_page", self._page_size)
        return await self._fetch_page(self._path, query, carry=query)

    async def fetch_next(self, cursor: PageCursor | None) -> PageEnvelope:
        """Fetch the page after *cursor*.

        The token is either an absolute URL (from a ``Link`` header), fetched
        as is, or an opaque value sent back as ``cursor_param`` together with
        the first page's query. A ``None`` cursor means the server announced
        no further pages; an empty envelope is returned without a request so
        the paginator sees the end.
        """
        if cursor is None:
            return PageEnvelope()
        if cursor.is_url:
            return await self._fetch_page(cursor.token, None, carry=cursor.query)
        params = {**cursor.query, self._cursor_param: cursor.token}
        params.setdefault("per_page", self._page_size)
        return await self._fetch_page(self._path, params, carry=cursor.query)

    # ── projections ────────────────────────────────────────────────────────

    @staticmethod
    def values_of(envelope: PageEnvelope) -> list[Any]:
        return list(envelope.data)

    @staticmethod
    def cursor_of(envelope: PageEnvelope) -> PageCursor | None:
        token = envelope.next_cursor
        if token is None:
            return None
        return PageCursor(token=token, query=envelope.query)

    # ── internal ───────────────────────────────────────────────────────────

    async def _fetch_page(
        self,
        url: str,
        params: dict[str, Any] | None,
        *,
        carry: Mapping[str, Any],
    ) -> PageEnvelope:
        response = await self._request_with_retry(url, params)
        try:
            body = response.json()
        except ValueError as exc:
            raise PageFetchError(url, "response is not JSON", response.status_code) from exc

        try:
            if isinstance(body, list):
                envelope = PageEnvelope(data=body)
            else:
                envelope = PageEnvelope.model_validate(body)
        except ValidationError as exc:
            raise PageFetchError(
                url, f"unexpected page shape: {exc.error_count()} error(s)", response.status_code
            ) from exc

        next_link = self._parse_next_link(response.headers.get("Link", ""))
        if next_link is not None:
            meta = envelope.meta.model_copy(update={"next_cursor": next_link, "has_more": True})
            envelope = envelope.model_copy(update={"meta": meta})
        envelope._query = dict(carry)

        log.debug(
            "http.page",
            url=url,
            items=len(envelope.data),
            has_next=envelope.next_cursor is not None,
        )
        return envelope

    async def _request_with_retry(
        self,
        url: str,
        params: dict[str, Any] | None = None,
    ) -> httpx.Response:
        """GET with exponential backoff on 5xx, rate limits and transport errors."""
        last_error = "no attempt made"
        last_status: int | None = None
        last_exc: Exception | None = None

        for attempt in range(self._max_retries):
            try:
                resp = await self._client.get(url, params=params)
            except httpx.TimeoutException as exc:
                log.warning(
                    "http.timeout",
                    url=url,
                    attempt=attempt + 1,
                    max_retries=self._max_retries,
                )
                last_error, last_status, last_exc = "timeout", None, exc
            except httpx.TransportError as exc:
                log.warning(
                    "http.transport_error",
                    url=url,
                    error=str(exc),
                    attempt=attempt + 1,
                    max_retries=self._max_retries,
                )
                last_error, last_status, last_exc = str(exc), None, exc
            else:
                if self._is_rate_limited(resp):
                    wait = self._get_rate_limit_wait(resp)
                    log.warning(
                        "http.rate_limit",
                        url=url,
                        wait_seconds=wait,
                        attempt=attempt + 1,
                        max_retries=self._max_retries,
                    )
                    last_error, last_status, last_exc = "rate limited", resp.status_code, None
                    if attempt < self._max_retries - 1:
                        await asyncio.sleep(wait)
                    continue

                if resp.status_code < 500:
                    if resp.is_error:
                        raise PageFetchError(url, f"HTTP {resp.status_code}", resp.status_code)
                    return resp

                log.warning(
                    "http.server_error",
                    url=url,
                    status=resp.status_code,
                    attempt=attempt + 1,
                    max_retries=self._max_retries,
                )
                last_error, last_status, last_exc = (
                    f"HTTP {resp.status_code}",
                    resp.status_code,
                    None,
                )

            if attempt < self._max_retries - 1:
                delay = _RETRY_BASE_DELAY * (2**attempt)
                await asyncio.sleep(delay)

        raise PageFetchError(
            url, f"{last_error} after {self._max_retries} attempt(s)", last_status
        ) from last_exc

    @staticmethod
    def _is_rate_limited(response: httpx.Response) -> bool:
        if response.status_code == 429:
            return True
        if response.status_code != 403:
            return False
        remaining = response.headers.get("X-RateLimit-Remaining")
        if remaining is not None:
            try:
                return int(remaining) == 0
            except (ValueError, TypeError):
                pass
        return "Retry-After" in response.headers

    @staticmethod
    def _get_rate_limit_wait(response: httpx.Response) -> int:
        """Seconds to wait, from Retry-After or X-RateLimit-Reset."""
        retry_after = response.headers.get("Retry-After")
        if retry_after is not None:
            try:
                return max(int(retry_after), 1)
            except (ValueError, TypeError):
                pass
        reset_ts = response.headers.get("X-RateLimit-Reset")
        if reset_ts is not None:
            try:
                return max(int(reset_ts) - int(time.time()), 1)
            except (ValueError, TypeError):
                pass
        return 60

    @staticmethod
    def _parse_next_link(link_header: str) -> str | None:
        """Extract the ``next`` URL from an RFC 5988 ``Link`` header."""
        match = _NEXT_LINK_RE.search(link_header)
        return match.group(1) if match else None
