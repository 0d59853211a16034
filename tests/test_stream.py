"""Tests for Stream, Subscription and pipe()."""

from __future__ import annotations

import pytest

from pagestream.exceptions import StreamClosedError
from pagestream.stream import Stream, pipe


class TestStream:
    def test_hot_stream_only_delivers_later_values(self):
        stream: Stream[int] = Stream("numbers")
        stream.send(1)

        seen: list[int] = []
        stream.observe(seen.append)
        stream.send(2)
        stream.send(3)

        assert seen == [2, 3]

    def test_observers_called_in_subscription_order(self):
        stream: Stream[str] = Stream()
        order: list[str] = []
        stream.observe(lambda v: order.append(f"a:{v}"))
        stream.observe(lambda v: order.append(f"b:{v}"))

        stream.send("x")

        assert order == ["a:x", "b:x"]

    def test_dispose_stops_delivery(self):
        stream: Stream[int] = Stream()
        seen: list[int] = []
        subscription = stream.observe(seen.append)

        stream.send(1)
        subscription.dispose()
        subscription.dispose()  # idempotent
        stream.send(2)

        assert seen == [1]
        assert subscription.disposed

    def test_observer_error_does_not_break_delivery(self):
        stream: Stream[int] = Stream()
        seen: list[int] = []

        def broken(_):
            raise RuntimeError("boom")

        stream.observe(broken)
        stream.observe(seen.append)
        stream.send(7)

        assert seen == [7]

    def test_observer_may_dispose_itself_during_send(self):
        stream: Stream[int] = Stream()
        seen: list[int] = []
        holder = {}

        def once(value):
            seen.append(value)
            holder["sub"].dispose()

        holder["sub"] = stream.observe(once)
        stream.send(1)
        stream.send(2)

        assert seen == [1]


class TestCompletion:
    def test_complete_notifies_and_blocks_send(self):
        stream: Stream[int] = Stream("done")
        completions: list[bool] = []
        stream.observe(lambda _: None, on_complete=lambda: completions.append(True))

        stream.complete()
        stream.complete()

        assert stream.completed
        assert completions == [True]
        with pytest.raises(StreamClosedError, match="'done'"):
            stream.send(1)

    def test_disposed_subscription_is_not_told_about_completion(self):
        stream: Stream[int] = Stream()
        completions: list[str] = []
        gone = stream.observe(lambda _: None, on_complete=lambda: completions.append("gone"))
        stream.observe(lambda _: None, on_complete=lambda: completions.append("kept"))

        gone.dispose()
        stream.complete()

        assert completions == ["kept"]

    def test_observe_after_completion_fires_immediately(self):
        stream: Stream[int] = Stream()
        stream.complete()

        completions: list[bool] = []
        stream.observe(lambda _: None, on_complete=lambda: completions.append(True))

        assert completions == [True]


def test_pipe_returns_stream_and_sender():
    stream, send = pipe("piped")
    seen: list[str] = []
    stream.observe(seen.append)

    send("hello")

    assert stream.name == "piped"
    assert seen == ["hello"]
