"""Tests for the pagestream CLI (HTTP mocked with httpx.MockTransport)."""

from __future__ import annotations

import json
import logging

import click
import httpx
import pytest
from click.testing import CliRunner

from pagestream.adapters.http_client import CursorPageClient
from pagestream.cli import _make_client, _parse_params, main
from pagestream.core.config import Settings

URL = "https://x.test/items"
ENV = {"PAGESTREAM_LOG_LEVEL": "WARNING"}


def _three_items(request: httpx.Request) -> httpx.Response:
    if request.url.params.get("cursor") == "c2":
        return httpx.Response(200, json={"data": [3], "meta": {"has_more": False}})
    return httpx.Response(
        200, json={"data": [1, 2], "meta": {"next_cursor": "c2", "has_more": True}}
    )


@pytest.fixture
def serve(monkeypatch, restore_logging):
    """Route the CLI's client to *handler*; returns the request log."""

    def install(handler) -> list[httpx.Request]:
        requests: list[httpx.Request] = []

        def recording(request: httpx.Request) -> httpx.Response:
            requests.append(request)
            return handler(request)

        def make_client(url: str, settings: Settings) -> CursorPageClient:
            return CursorPageClient(
                "https://api.example.test",
                "/items",
                settings=settings,
                transport=httpx.MockTransport(recording),
            )

        monkeypatch.setattr("pagestream.cli._make_client", make_client)
        return requests

    return install


@pytest.fixture
def fake_api(serve):
    return serve(_three_items)


def _invoke(*args: str, env: dict[str, str] | None = None):
    return CliRunner().invoke(main, list(args), env=env or ENV)


# ── helpers ──


class TestParseParams:
    def test_pairs(self):
        parsed = _parse_params(("q=rust", "sort=", "a=b=c"))
        assert parsed == {"q": "rust", "sort": "", "a": "b=c"}

    @pytest.mark.parametrize("raw", ["novalue", "=x"])
    def test_malformed(self, raw):
        with pytest.raises(click.BadParameter):
            _parse_params((raw,))


class TestMakeClient:
    def test_splits_base_and_path(self):
        client = _make_client("https://h.test/a/b?x=1", Settings())
        assert client._client.base_url.host == "h.test"
        assert client._path == "/a/b?x=1"

    def test_relative_url_rejected(self):
        with pytest.raises(click.BadParameter, match="absolute URL"):
            _make_client("items/page", Settings())


# ── fetch ──


class TestFetchCommand:
    def test_summary_until_exhausted(self, fake_api):
        result = _invoke("fetch", URL, "--pages", "5")

        assert result.exit_code == 0, result.output
        assert result.output.splitlines() == [
            "values: 2 item(s)",
            "values: 3 item(s)",
            "loaded 3 page(s), 3 item(s), exhausted",
        ]
        assert len(fake_api) == 2

    def test_single_page(self, fake_api):
        result = _invoke("fetch", URL, "--pages", "1")

        assert result.exit_code == 0, result.output
        assert result.output.splitlines()[-1] == "loaded 1 page(s), 2 item(s)"
        assert len(fake_api) == 1

    def test_json_output(self, fake_api):
        result = _invoke("fetch", URL, "--pages", "2", "--json")

        assert result.exit_code == 0, result.output
        assert json.loads(result.output) == [1, 2, 3]

    def test_params_sent_on_every_page(self, fake_api):
        result = _invoke("fetch", URL, "-p", "q=rust", "--pages", "2", "--keep")

        assert result.exit_code == 0, result.output
        assert [r.url.params["q"] for r in fake_api] == ["rust", "rust"]
        assert fake_api[1].url.params["cursor"] == "c2"

    def test_bad_param(self, fake_api):
        result = _invoke("fetch", URL, "-p", "oops")

        assert result.exit_code == 2
        assert "key=value" in result.output
        assert fake_api == []

    def test_invalid_env_config(self, fake_api):
        result = _invoke("fetch", URL, env={**ENV, "PAGESTREAM_MAX_RETRIES": "lots"})

        assert result.exit_code == 1
        assert "PAGESTREAM_MAX_RETRIES" in result.output

    def test_pages_must_be_positive(self, fake_api):
        result = _invoke("fetch", URL, "--pages", "0")
        assert result.exit_code == 2

    def test_log_level_option(self, fake_api):
        result = _invoke("--log-level", "error", "fetch", URL, "--pages", "1")

        assert result.exit_code == 0, result.output
        assert logging.getLogger("pagestream").level == logging.ERROR


class TestFetchFailures:
    def test_first_page_failure_exits_nonzero(self, serve):
        requests = serve(lambda request: httpx.Response(404))

        result = _invoke("fetch", URL, "--pages", "3")

        assert result.exit_code == 1
        assert f"could not fetch the first page of {URL}" in result.output
        assert "loaded" not in result.output
        assert len(requests) == 1

    def test_next_page_failure_keeps_loaded_values(self, serve):
        def handler(request):
            if request.url.params.get("cursor") == "c2":
                return httpx.Response(500)
            return _three_items(request)

        requests = serve(handler)
        env = {**ENV, "PAGESTREAM_MAX_RETRIES": "1"}

        result = _invoke("fetch", URL, "--pages", "3", env=env)

        assert result.exit_code == 0, result.output
        assert "values: 2 item(s)" in result.output
        assert "warning: page 2 could not be fetched" in result.output
        assert "loaded 1 page(s), 2 item(s)" in result.output
        assert len(requests) == 2
