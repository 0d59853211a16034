"""Structured logging for pagestream: structlog rendered through stdlib logging.

All records go to stderr, so ``pagestream fetch --json`` keeps stdout
machine-readable. Third-party records (httpx, asyncio) pass through the same
formatter as pagestream's own structlog events.
"""

from __future__ import annotations

import logging
import sys

import structlog

from pagestream.core.config import Settings

# Chatty at INFO (one line per request); only their warnings are shown.
_QUIET_LOGGERS = ("httpx", "httpcore")


def _shared_processors(log_format: str) -> list[structlog.types.Processor]:
    processors: list[structlog.types.Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.UnicodeDecoder(),
    ]
    if log_format == "json":
        # ConsoleRenderer pretty-prints exc_info itself; JSON needs it as data.
        processors.append(structlog.processors.dict_tracebacks)
    return processors


def _renderer(log_format: str) -> structlog.types.Processor:
    if log_format == "json":
        return structlog.processors.JSONRenderer()
    return structlog.dev.ConsoleRenderer(colors=sys.stderr.isatty())


def setup_logging(settings: Settings | None = None, *, level: str | None = None) -> None:
    """Configure structlog and the stdlib root logger.

    *settings* defaults to ``Settings.from_env()`` (``PAGESTREAM_LOG_LEVEL``,
    ``PAGESTREAM_LOG_FORMAT``). *level* overrides the configured level, e.g.
    from the CLI's ``--log-level``. Calling it again replaces the previous
    handler instead of adding a second one.
    """
    settings = settings or Settings.from_env()
    level = (level or settings.log_level).upper()
    processors = _shared_processors(settings.log_format)

    structlog.configure(
        processors=processors + [structlog.stdlib.ProcessorFormatter.wrap_for_formatter],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(
        structlog.stdlib.ProcessorFormatter(
            foreign_pre_chain=processors,
            processors=[
                structlog.stdlib.ProcessorFormatter.remove_processors_meta,
                _renderer(settings.log_format),
            ],
        )
    )

    root = logging.getLogger()
    root.handlers[:] = [handler]
    root.setLevel(level)
    logging.getLogger("pagestream").setLevel(level)
    for name in _QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)
