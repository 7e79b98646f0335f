"""Abstract base class for pull-based ticker sources."""
import asyncio
import logging
from abc import ABC, abstractmethod

from spike_alerts.providers.core.error_mapper import TransportErrorMapper
from spike_alerts.schemas import Tick

logger = logging.getLogger(__name__)


class TickerSourceABC(ABC):
    """Base interface for the pull endpoint of a price-ticker source.

    Implementations stamp every returned tick with the ``ts`` the caller
    passes, so one poll cycle shares one timestamp.
    """

    error_mapper = TransportErrorMapper()

    @abstractmethod
    async def fetch_ticker(self, symbol: str, ts: int) -> Tick:
        """Fetch the last price of one symbol.

        Raises:
            TickerFetchError: On HTTP failure or a payload without a usable price.
        """

    @abstractmethod
    async def fetch_all_tickers(self, ts: int) -> list[Tick]:
        """Fetch the full snapshot; entries without a symbol or finite price are dropped."""

    async def fetch_tickers(self, symbols: list[str], ts: int) -> list[Tick]:
        """Fetch symbols concurrently; one failing symbol does not void the others.

        Raises:
            Exception: The first failure, when every symbol failed.
        """
        results = await asyncio.gather(
            *(self.fetch_ticker(symbol, ts) for symbol in symbols),
            return_exceptions=True,
        )
        ticks: list[Tick] = []
        failures: list[Exception] = []
        for symbol, result in zip(symbols, results):
            if isinstance(result, Exception):
                logger.warning(
                    "Skipping %s this cycle: %s", symbol, self.error_mapper.describe(result, symbol)
                )
                failures.append(result)
                continue
            if isinstance(result, BaseException):
                raise result
            ticks.append(result)
        if failures and not ticks:
            raise failures[0]
        return ticks

    async def close(self) -> None:
        """Clean up resources (connections, clients).

        Override in subclasses if cleanup is needed.
        """

    async def __aenter__(self) -> "TickerSourceABC":
        """Async context manager entry."""
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:  # noqa: ANN001
        """Async context manager exit - calls close()."""
        await self.close()
