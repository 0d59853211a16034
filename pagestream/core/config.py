"""Environment-driven settings."""

from __future__ import annotations

import os
from collections.abc import Mapping
from dataclasses import dataclass

from pagestream.exceptions import ConfigError

_TRUE = {"1", "true", "yes", "on"}
_FALSE = {"0", "false", "no", "off"}
LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


@dataclass(frozen=True)
class Settings:
    """Runtime settings, read from ``PAGESTREAM_*`` environment variables."""

    log_level: str = "INFO"
    log_format: str = "console"  # "console" | "json"
    clear_on_new_request: bool = True
    http_timeout: float = 30.0
    max_retries: int = 3
    page_size: int = 100

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> Settings:
        env = os.environ if environ is None else environ
        log_format = env.get("PAGESTREAM_LOG_FORMAT", cls.log_format).lower()
        if log_format not in ("console", "json"):
            raise ConfigError("PAGESTREAM_LOG_FORMAT", log_format, "console or json")
        log_level = env.get("PAGESTREAM_LOG_LEVEL", cls.log_level).upper()
        if log_level not in LOG_LEVELS:
            raise ConfigError("PAGESTREAM_LOG_LEVEL", log_level, " | ".join(LOG_LEVELS))
        settings = cls(
            log_level=log_level,
            log_format=log_format,
            clear_on_new_request=_env_bool(
                env, "PAGESTREAM_CLEAR_ON_NEW_REQUEST", cls.clear_on_new_request
            ),
            http_timeout=_env_float(env, "PAGESTREAM_HTTP_TIMEOUT", cls.http_timeout),
            max_retries=_env_int(env, "PAGESTREAM_MAX_RETRIES", cls.max_retries),
            page_size=_env_int(env, "PAGESTREAM_PAGE_SIZE", cls.page_size),
        )
        if settings.max_retries < 1:
            raise ConfigError("PAGESTREAM_MAX_RETRIES", str(settings.max_retries), "an integer >= 1")
        return settings


def _env_float(env: Mapping[str, str], key: str, default: float) -> float:
    raw = env.get(key)
    if raw is None:
        return default
    try:
        return float(raw)
    except ValueError:
        raise ConfigError(key, raw, "a number") from None


def _env_int(env: Mapping[str, str], key: str, default: int) -> int:
    raw = env.get(key)
    if raw is None:
        return default
    try:
        return int(raw)
    except ValueError:
        raise ConfigError(key, raw, "an integer") from None


def _env_bool(env: Mapping[str, str], key: str, default: bool) -> bool:
    raw = env.get(key)
    if raw is None:
        return default
    value = raw.strip().lower()
    if value in _TRUE:
        return True
    if value in _FALSE:
        return False
    raise ConfigError(key, raw, "true or false")
