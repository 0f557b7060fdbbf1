"""Exception hierarchy for catalyst_ingest.

Callers catch a specific failure mode instead of bare ``Exception``:

  - ``FetchError``  – the retry budget is exhausted or a feed returned a
    non-success status.  The only error a circuit breaker counts.
  - ``ParseError``  – a payload could not be interpreted.  Raised inside
    parsers and always caught at the adapter boundary.
  - ``ConfigError`` – invalid source catalog or configuration value.
"""
from __future__ import annotations


class CatalystIngestError(Exception):
    """Base error for all catalyst_ingest subsystems."""
    pass


class FetchError(CatalystIngestError):
    """Terminal fetch failure after retries, or a non-ok feed response."""

    def __init__(
        self,
        message: str,
        *,
        url: str = "",
        status_code: int | None = None,
        attempts: int = 0,
    ):
        self.url = url
        self.status_code = status_code
        self.attempts = attempts
        super().__init__(message)


class ParseError(CatalystIngestError):
    """Malformed feed, missing markup or unexpected payload shape."""

    def __init__(self, message: str, *, source_id: str = ""):
        self.source_id = source_id
        super().__init__(message)


class ConfigError(CatalystIngestError):
    """Invalid configuration value."""
    pass
