"""Hot, synchronous event streams used as the paginator's inputs and outputs."""

from __future__ import annotations

from collections.abc import Callable
from typing import Generic, TypeVar

import structlog

from pagestream.exceptions import StreamClosedError

logger = structlog.get_logger(__name__)

T = TypeVar("T")


class Subscription:
    """Handle returned by :meth:`Stream.observe`; call :meth:`dispose` to detach."""

    def __init__(
        self,
        stream: Stream[T],
        callback: Callable[[T], None],
        on_complete: Callable[[], None] | None = None,
    ) -> None:
        self._stream = stream
        self._callback = callback
        self._on_complete = on_complete
        self.disposed = False

    def dispose(self) -> None:
        if self.disposed:
            return
        self.disposed = True
        self._stream._detach(self._callback, self._on_complete)


class Stream(Generic[T]):
    """A hot stream: observers only see values sent after they subscribe.

    Delivery is synchronous. ``send()`` returns once every observer has been
    called, in subscription order. A stream has no current value.
    """

    def __init__(self, name: str | None = None) -> None:
        self.name = name
        self._observers: list[Callable[[T], None]] = []
        self._completion_callbacks: list[Callable[[], None]] = []
        self._completed = False

    @property
    def completed(self) -> bool:
        return self._completed

    def observe(
        self,
        on_next: Callable[[T], None],
        on_complete: Callable[[], None] | None = None,
    ) -> Subscription:
        """Register *on_next* for every future value; *on_complete* once on completion."""
        self._observers.append(on_next)
        if on_complete is not None:
            if self._completed:
                on_complete()
            else:
                self._completion_callbacks.append(on_complete)
        return Subscription(self, on_next, on_complete)

    def send(self, value: T) -> None:
        if self._completed:
            raise StreamClosedError(self.name)
        # Copy so observers may subscribe or dispose while being notified.
        for callback in list(self._observers):
            try:
                callback(value)
            except Exception:
                logger.exception("stream.observer_error", stream=self.name)

    def complete(self) -> None:
        """Complete the stream. Further ``send()`` calls raise StreamClosedError."""
        if self._completed:
            return
        self._completed = True
        callbacks, self._completion_callbacks = self._completion_callbacks, []
        self._observers.clear()
        for callback in callbacks:
            try:
                callback()
            except Exception:
                logger.exception("stream.observer_error", stream=self.name)

    def __repr__(self) -> str:
        return f"Stream(name={self.name!r}, observers={len(self._observers)})"

    def _detach(
        self, callback: Callable[[T], None], on_complete: Callable[[], None] | None = None
    ) -> None:
        if callback in self._observers:
            self._observers.remove(callback)
        if on_complete is not None and on_complete in self._completion_callbacks:
            self._completion_callbacks.remove(on_complete)


def pipe(name: str | None = None) -> tuple[Stream[T], Callable[[T], None]]:
    """Return a new stream together with the function that feeds it."""
    stream: Stream[T] = Stream(name)
    return stream, stream.send
