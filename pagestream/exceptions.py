"""Custom exceptions for pagestream."""


class PagestreamError(Exception):
    """Base exception for all pagestream errors."""


class StreamClosedError(PagestreamError):
    """Raised when a value is sent into a stream that has already completed."""

    def __init__(self, name: str | None = None):
        self.name = name
        label = f"'{name}'" if name else "stream"
        super().__init__(f"cannot send into completed {label}")


class ConfigError(PagestreamError):
    """Raised when an environment setting cannot be parsed."""

    def __init__(self, key: str, value: str, expected: str):
        self.key = key
        self.value = value
        super().__init__(f"invalid value for {key}: {value!r} (expected {expected})")


class PageFetchError(PagestreamError):
    """Raised by the HTTP page client when a page cannot be fetched."""

    def __init__(self, url: str, reason: str, status: int | None = None):
        self.url = url
        self.reason = reason
        self.status = status
        super().__init__(f"failed to fetch page {url}: {reason}")
