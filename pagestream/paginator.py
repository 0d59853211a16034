"""Paginator: wires input streams, the transition function and async fetches."""

from __future__ import annotations

import asyncio
import inspect
from collections import deque
from collections.abc import Awaitable, Callable, Sequence
from functools import partial
from typing import Any, Generic, TypeVar

import structlog

from pagestream.engine.models import (
    Effect,
    EmitLoading,
    EmitPageCount,
    EmitValues,
    Event,
    FetchFirstPage,
    FetchNextPage,
    NewRequest,
    NextPage,
    PageFailed,
    PageLoaded,
    PaginationState,
    Supersede,
)
from pagestream.engine.transition import Policy, append_page, is_live, step
from pagestream.stream import Stream, Subscription

log = structlog.get_logger("pagestream.paginator")

P = TypeVar("P")
E = TypeVar("E")
V = TypeVar("V")
C = TypeVar("C")

FetchFn = Callable[[Any], "Awaitable[Any] | Any"]


class Paginator(Generic[P, E, V, C]):
    """Turns new-request and next-page streams into values/loading streams.

    All state changes go through one FIFO queue drained on the calling
    thread (the asyncio event loop). Fetches run as tasks and report back
    onto the same queue; results tagged with an old generation are dropped.
    """

    def __init__(
        self,
        new_requests: Stream[P],
        next_page_triggers: Stream[Any],
        *,
        clear_on_new_request: bool,
        values_of: Callable[[E], Sequence[V]],
        cursor_of: Callable[[E], C],
        fetch_by_params: Callable[[P], Awaitable[E] | E],
        fetch_by_cursor: Callable[[C], Awaitable[E] | E],
        concat: Callable[[Sequence[V], Sequence[V]], Sequence[V]] = append_page,
        cancel_superseded: bool = False,
    ) -> None:
        self._policy = Policy(
            clear_on_new_request=clear_on_new_request,
            values_of=values_of,
            cursor_of=cursor_of,
            concat=concat,
        )
        self._fetch_by_params = fetch_by_params
        self._fetch_by_cursor = fetch_by_cursor
        self._cancel_superseded = cancel_superseded

        self._state = PaginationState()
        self._queue: deque[Event] = deque()
        self._draining = False
        self._closed = False
        self._inflight: asyncio.Future[Any] | None = None
        self._tasks: set[asyncio.Future[Any]] = set()

        self.values: Stream[list[V]] = Stream("values")
        self.loading: Stream[bool] = Stream("loading")
        self.page_count: Stream[int] = Stream("page_count")

        self._subscriptions: list[Subscription] = [
            new_requests.observe(lambda params: self._submit(NewRequest(params))),
            next_page_triggers.observe(lambda _: self._submit(NextPage())),
        ]

    @property
    def state(self) -> PaginationState:
        return self._state

    @property
    def closed(self) -> bool:
        return self._closed

    def close(self) -> None:
        """Detach from the inputs, drop in-flight work and complete the outputs."""
        if self._closed:
            return
        self._closed = True
        for subscription in self._subscriptions:
            subscription.dispose()
        self._queue.clear()
        if self._cancel_superseded:
            for task in list(self._tasks):
                task.cancel()
        self._inflight = None
        log.debug("paginator.closed", generation=self._state.generation)
        self.values.complete()
        self.loading.complete()
        self.page_count.complete()

    # ── event loop ─────────────────────────────────────────────────────────

    def _submit(self, event: Event) -> None:
        if self._closed:
            return
        self._queue.append(event)
        if self._draining:
            # Re-entrant submission (observer callback or synchronous fetch);
            # the outer drain loop picks it up in order.
            return
        self._draining = True
        try:
            while self._queue and not self._closed:
                current = self._queue.popleft()
                self._state, effects = self._step(current)
                for effect in effects:
                    if self._closed:
                        # An observer closed the paginator mid-emission.
                        break
                    self._apply(effect)
        finally:
            self._draining = False

    def _step(self, event: Event) -> tuple[PaginationState, list[Effect]]:
        try:
            return step(self._state, event, self._policy)
        except Exception as exc:
            # Only PageLoaded runs caller code (values_of, cursor_of, concat).
            if not isinstance(event, PageLoaded):
                raise
            log.warning(
                "paginator.projection_failed",
                generation=event.generation,
                error=repr(exc),
            )
            return step(self._state, PageFailed(event.generation, exc), self._policy)

    def _apply(self, effect: Effect) -> None:
        if isinstance(effect, EmitValues):
            self.values.send(list(effect.values))
        elif isinstance(effect, EmitLoading):
            self.loading.send(effect.loading)
        elif isinstance(effect, EmitPageCount):
            self.page_count.send(effect.count)
        elif isinstance(effect, FetchFirstPage):
            log.debug("paginator.new_request", generation=effect.generation)
            self._dispatch(effect.generation, self._fetch_by_params, effect.params)
        elif isinstance(effect, FetchNextPage):
            log.debug("paginator.next_page", generation=effect.generation)
            self._dispatch(effect.generation, self._fetch_by_cursor, effect.cursor)
        elif isinstance(effect, Supersede):
            self._supersede(effect.generation)
        else:
            raise TypeError(f"unknown pagination effect: {effect!r}")

    # ── fetches ────────────────────────────────────────────────────────────

    def _dispatch(self, generation: int, fetch: FetchFn, argument: Any) -> None:
        try:
            result = fetch(argument)
        except Exception as exc:
            self._report_failure(generation, exc)
            return

        if not inspect.isawaitable(result):
            self._submit(PageLoaded(generation, result))
            return

        task = asyncio.ensure_future(result)
        self._inflight = task
        self._tasks.add(task)
        task.add_done_callback(partial(self._on_fetch_done, generation))

    def _on_fetch_done(self, generation: int, task: asyncio.Future[Any]) -> None:
        self._tasks.discard(task)
        if self._inflight is task:
            self._inflight = None
        if self._closed:
            if not task.cancelled():
                task.exception()  # mark retrieved
            return

        if task.cancelled():
            self._report_failure(generation, asyncio.CancelledError())
            return
        exc = task.exception()
        if exc is not None:
            self._report_failure(generation, exc)
            return

        if not is_live(self._state, generation):
            log.debug(
                "paginator.stale_result",
                generation=generation,
                current_generation=self._state.generation,
            )
        self._submit(PageLoaded(generation, task.result()))

    def _report_failure(self, generation: int, exc: BaseException) -> None:
        if is_live(self._state, generation):
            log.warning(
                "paginator.fetch_failed",
                generation=generation,
                error=repr(exc),
            )
        else:
            log.debug("paginator.stale_failure", generation=generation, error=repr(exc))
        self._submit(PageFailed(generation, exc))

    def _supersede(self, generation: int) -> None:
        task = self._inflight
        self._inflight = None
        log.debug(
            "paginator.superseded",
            generation=generation,
            cancel=self._cancel_superseded,
        )
        if self._cancel_superseded and task is not None and not task.done():
            task.cancel()


def paginate(
    new_requests: Stream[P],
    next_page_triggers: Stream[Any],
    clear_on_new_request: bool,
    values_of: Callable[[E], Sequence[V]],
    cursor_of: Callable[[E], C],
    fetch_by_params: Callable[[P], Awaitable[E] | E],
    fetch_by_cursor: Callable[[C], Awaitable[E] | E],
) -> tuple[Stream[list[V]], Stream[bool]]:
    """Build a :class:`Paginator` and return its ``(values, loading)`` streams.

    The paginator stays alive for as long as the input streams reference it.
    Use :class:`Paginator` directly for ``page_count``, ``state`` or ``close()``.
    """
    paginator: Paginator[P, E, V, C] = Paginator(
        new_requests,
        next_page_triggers,
        clear_on_new_request=clear_on_new_request,
        values_of=values_of,
        cursor_of=cursor_of,
        fetch_by_params=fetch_by_params,
        fetch_by_cursor=fetch_by_cursor,
    )
    return paginator.values, paginator.loading
