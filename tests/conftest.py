"""Shared pytest fixtures for pagestream tests."""

from __future__ import annotations

import asyncio
import logging
from typing import Any

import pytest
import structlog

from pagestream.stream import Stream


class Recorder:
    """Collects every value a stream emits, like a test observer."""

    def __init__(self, stream: Stream[Any]) -> None:
        self.values: list[Any] = []
        self.completed = False
        stream.observe(self.values.append, on_complete=self._on_complete)

    def _on_complete(self) -> None:
        self.completed = True


class ControlledFetch:
    """Fetch function returning futures that the test resolves by hand."""

    def __init__(self) -> None:
        self.calls: list[tuple[Any, asyncio.Future[Any]]] = []

    def __call__(self, argument: Any) -> asyncio.Future[Any]:
        future = asyncio.get_running_loop().create_future()
        self.calls.append((argument, future))
        return future

    @property
    def args(self) -> list[Any]:
        return [argument for argument, _ in self.calls]

    def resolve(self, index: int, envelope: Any) -> None:
        self.calls[index][1].set_result(envelope)

    def fail(self, index: int, exc: BaseException) -> None:
        self.calls[index][1].set_exception(exc)

    def future(self, index: int) -> asyncio.Future[Any]:
        return self.calls[index][1]


@pytest.fixture
def record():
    """Factory: ``record(stream)`` returns a Recorder attached to *stream*."""
    return Recorder


@pytest.fixture
def controlled_fetch():
    """Factory for ControlledFetch instances."""
    return ControlledFetch


@pytest.fixture
def inputs() -> tuple[Stream[Any], Stream[None]]:
    """Fresh (new_requests, next_page) input streams."""
    return Stream("new_requests"), Stream("next_page")


@pytest.fixture
def restore_logging():
    """Undo setup_logging() so later tests keep pytest's own handlers."""
    root = logging.getLogger()
    handlers, level = root.handlers[:], root.level
    yield
    root.handlers[:] = handlers
    root.setLevel(level)
    for name in ("pagestream", "httpx", "httpcore"):
        logging.getLogger(name).setLevel(logging.NOTSET)
    structlog.reset_defaults()
