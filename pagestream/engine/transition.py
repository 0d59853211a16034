"""Pure state transition for cursor pagination.

``step(state, event, policy)`` returns the next state plus the effects the
runtime must perform, in order. Emissions that must be observed before a fetch
starts (clearing, ``loading=True``) always precede the fetch effect.
"""

from __future__ import annotations

from collections.abc import Callable, Sequence
from dataclasses import dataclass, replace
from typing import Any

from pagestream.engine.models import (
    UNSET,
    CursorSet,
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


def append_page(current: Sequence[Any], page: Sequence[Any]) -> list[Any]:
    """Default accumulation: the new page goes after everything loaded so far."""
    return [*current, *page]


@dataclass(frozen=True)
class Policy:
    """The caller-supplied knobs that shape every transition."""

    clear_on_new_request: bool
    values_of: Callable[[Any], Sequence[Any]]
    cursor_of: Callable[[Any], Any]
    concat: Callable[[Sequence[Any], Sequence[Any]], Sequence[Any]] = append_page


def step(
    state: PaginationState, event: Event, policy: Policy
) -> tuple[PaginationState, list[Effect]]:
    if isinstance(event, NewRequest):
        return _on_new_request(state, event, policy)
    if isinstance(event, NextPage):
        return _on_next_page(state)
    if isinstance(event, PageLoaded):
        return _on_page_loaded(state, event, policy)
    if isinstance(event, PageFailed):
        return _on_page_failed(state, event)
    raise TypeError(f"unknown pagination event: {event!r}")


def is_live(state: PaginationState, generation: int) -> bool:
    """True if a result dispatched under *generation* may still touch *state*."""
    return state.loading and generation == state.generation


def _on_new_request(
    state: PaginationState, event: NewRequest[Any], policy: Policy
) -> tuple[PaginationState, list[Effect]]:
    generation = state.generation + 1
    effects: list[Effect] = []

    if state.loading:
        # Close the superseded unit's loading span so `loading` keeps alternating.
        effects.append(Supersede(state.generation))
        effects.append(EmitLoading(False))

    values = state.values
    published = state.published
    if policy.clear_on_new_request:
        values = ()
        # `values` never repeats a snapshot; nothing to clear if nothing is shown.
        if state.published:
            published = ()
            effects.append(EmitValues(()))

    effects.append(EmitLoading(True))
    effects.append(FetchFirstPage(generation, event.params))

    new_state = replace(
        state,
        values=values,
        cursor=UNSET,
        exhausted=False,
        generation=generation,
        loading=True,
        pages=0,
        published=published,
    )
    return new_state, effects


def _on_next_page(state: PaginationState) -> tuple[PaginationState, list[Effect]]:
    cursor = state.cursor
    if not isinstance(cursor, CursorSet) or state.exhausted or state.loading:
        return state, []
    effects: list[Effect] = [
        EmitLoading(True),
        FetchNextPage(state.generation, cursor.value),
    ]
    return replace(state, loading=True), effects


def _on_page_loaded(
    state: PaginationState, event: PageLoaded[Any], policy: Policy
) -> tuple[PaginationState, list[Effect]]:
    if not is_live(state, event.generation):
        return state, []

    page = tuple(policy.values_of(event.envelope))
    # The first page of a request replaces whatever the previous request left.
    base = state.values if state.pages else ()
    values = tuple(policy.concat(base, page))
    pages = state.pages + 1

    effects: list[Effect] = []
    published = state.published
    if values != published:
        effects.append(EmitValues(values))
        published = values
    effects.append(EmitPageCount(pages))
    effects.append(EmitLoading(False))

    new_state = replace(
        state,
        values=values,
        cursor=CursorSet(policy.cursor_of(event.envelope)),
        exhausted=not page,
        loading=False,
        pages=pages,
        published=published,
    )
    return new_state, effects


def _on_page_failed(
    state: PaginationState, event: PageFailed
) -> tuple[PaginationState, list[Effect]]:
    if not is_live(state, event.generation):
        return state, []
    return replace(state, loading=False), [EmitLoading(False)]
