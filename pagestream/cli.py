"""CLI entry point: pagestream.

Subcommands:
    pagestream fetch https://api.example.com/items -p q=rust --pages 3
    pagestream fetch https://api.github.com/repos/o/r/tags --pages 2 --json
"""

from __future__ import annotations

import asyncio
import json
from collections.abc import Callable
from typing import Any
from urllib.parse import urlsplit

import click
import structlog

from pagestream.adapters.http_client import CursorPageClient
from pagestream.core.config import LOG_LEVELS, Settings
from pagestream.core.logging import setup_logging
from pagestream.exceptions import ConfigError
from pagestream.paginator import Paginator
from pagestream.stream import Stream

log = structlog.get_logger("pagestream.cli")


def _parse_params(raw: tuple[str, ...]) -> dict[str, str]:
    params: dict[str, str] = {}
    for item in raw:
        key, sep, value = item.partition("=")
        if not sep or not key:
            raise click.BadParameter(f"expected key=value, got {item!r}", param_hint="--param")
        params[key] = value
    return params


def _make_client(url: str, settings: Settings) -> CursorPageClient:
    parts = urlsplit(url)
    if not parts.scheme or not parts.netloc:
        raise click.BadParameter(f"expected an absolute URL, got {url!r}", param_hint="URL")
    path = parts.path or "/"
    if parts.query:
        path = f"{path}?{parts.query}"
    return CursorPageClient(f"{parts.scheme}://{parts.netloc}", path, settings=settings)


async def _drive(
    client: CursorPageClient,
    params: dict[str, str],
    pages: int,
    clear: bool,
    on_values: Callable[[list[Any]], None],
) -> Paginator[Any, Any, Any, Any]:
    """Fire one new request, then next-page triggers until *pages* or exhaustion."""
    new_requests: Stream[dict[str, str]] = Stream("new_requests")
    next_page: Stream[None] = Stream("next_page")
    paginator: Paginator[Any, Any, Any, Any] = Paginator(
        new_requests,
        next_page,
        clear_on_new_request=clear,
        values_of=client.values_of,
        cursor_of=client.cursor_of,
        fetch_by_params=client.fetch_first,
        fetch_by_cursor=client.fetch_next,
    )

    idle = asyncio.Event()
    paginator.values.observe(on_values)
    paginator.loading.observe(lambda loading: idle.clear() if loading else idle.set())

    new_requests.send(params)
    await idle.wait()
    for _ in range(pages - 1):
        loaded = paginator.state.pages
        if loaded == 0:
            break  # first page failed
        next_page.send(None)
        if not paginator.state.loading:
            break  # guarded: no cursor or exhausted
        await idle.wait()
        if paginator.state.pages == loaded:
            click.echo(f"warning: page {loaded + 1} could not be fetched", err=True)
            break

    paginator.close()
    return paginator


@click.group()
@click.option(
    "--log-level",
    type=click.Choice(LOG_LEVELS, case_sensitive=False),
    default=None,
    help="Override PAGESTREAM_LOG_LEVEL.",
)
def main(log_level: str | None) -> None:
    """pagestream: drive a cursor paginator from the command line."""
    try:
        setup_logging(level=log_level)
    except ConfigError as exc:
        raise click.ClickException(str(exc)) from exc


@main.command()
@click.argument("url")
@click.option("--param", "-p", "raw_params", multiple=True, help="Query parameter, key=value.")
@click.option("--pages", default=3, show_default=True, type=click.IntRange(min=1))
@click.option(
    "--clear/--keep",
    default=None,
    help="Clear values on new request (default from PAGESTREAM_CLEAR_ON_NEW_REQUEST).",
)
@click.option("--json", "as_json", is_flag=True, help="Print the final values as JSON.")
def fetch(
    url: str, raw_params: tuple[str, ...], pages: int, clear: bool | None, as_json: bool
) -> None:
    """Fetch up to PAGES pages of URL through a Paginator."""
    try:
        settings = Settings.from_env()
    except ConfigError as exc:
        raise click.ClickException(str(exc)) from exc
    params = _parse_params(raw_params)
    clear_on_new_request = settings.clear_on_new_request if clear is None else clear

    client = _make_client(url, settings)

    def on_values(values: list[Any]) -> None:
        if not as_json:
            click.echo(f"values: {len(values)} item(s)")

    async def _run() -> Paginator[Any, Any, Any, Any]:
        async with client:
            return await _drive(client, params, pages, clear_on_new_request, on_values)

    paginator = asyncio.run(_run())
    state = paginator.state
    if state.pages == 0:
        raise click.ClickException(f"could not fetch the first page of {url}")
    final = list(state.values)

    if as_json:
        click.echo(json.dumps(final, indent=2, default=str))
    else:
        click.echo(
            f"loaded {state.pages} page(s), {len(final)} item(s)"
            + (", exhausted" if state.exhausted else "")
        )
    log.info("cli.fetch_done", url=url, pages=state.pages, items=len(final))


if __name__ == "__main__":
    main()
