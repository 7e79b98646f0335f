"""Transport exception types.

None of these ever abort the pipeline: fetch errors become "no ticks this
cycle", malformed frames are dropped, connection errors feed the backoff loop.
"""


class TransportError(Exception):
    """Base class for ticker-source failures."""


class TickerFetchError(TransportError):
    """A pull request failed or returned an unusable payload."""

    def __init__(self, message: str, *, symbol: str | None = None, status_code: int | None = None) -> None:
        super().__init__(message)
        self.symbol = symbol
        self.status_code = status_code


class MalformedMessageError(TransportError):
    """A stream frame could not be decoded."""


class KeepaliveTimeout(TransportError):
    """No pong arrived within the keepalive timeout."""
