"""Maps transport exceptions to short status strings for the status indicator."""
import asyncio
from dataclasses import dataclass

import httpx

from spike_alerts.providers.core.exceptions import (KeepaliveTimeout,
                                                    MalformedMessageError,
                                                    TickerFetchError)


@dataclass(frozen=True)
class TransportErrorMapper:
    """Turns any transport failure into a one-line, secret-free description."""

    api_name: str = "Ticker API"

    def describe(self, exc: BaseException, symbol: str | None = None) -> str:
        """Describe ``exc`` for logs and the status endpoint.

        Args:
            exc: The exception raised while fetching or streaming.
            symbol: Optional symbol the failure relates to.

        Returns:
            A short human-readable message.
        """
        suffix = f" for '{symbol}'" if symbol else ""
        if isinstance(exc, KeepaliveTimeout):
            return f"{self.api_name} keepalive timed out"
        if isinstance(exc, MalformedMessageError):
            return f"Malformed {self.api_name} message"
        if isinstance(exc, TickerFetchError):
            if exc.status_code is not None:
                return f"{self.api_name} error ({exc.status_code}){suffix}"
            return f"{self.api_name} returned an invalid payload{suffix}"
        if isinstance(exc, httpx.HTTPStatusError):
            return f"{self.api_name} error ({exc.response.status_code}){suffix}"
        if isinstance(exc, (asyncio.TimeoutError, TimeoutError, httpx.TimeoutException)):
            return f"Request to {self.api_name} timed out{suffix}"
        if isinstance(exc, (httpx.TransportError, OSError)):
            return f"{self.api_name} unreachable{suffix}"
        if isinstance(exc, ValueError):
            return f"{self.api_name} returned an invalid payload{suffix}"
        return f"Unexpected {self.api_name} error{suffix}"
