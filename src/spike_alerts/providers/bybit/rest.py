"""Bybit REST ticker source (pull endpoint)."""
import logging

import httpx
from pydantic import ValidationError

from spike_alerts.providers.bybit.models import BybitTickersResponse
from spike_alerts.providers.core import TickerFetchError, TickerSourceABC
from spike_alerts.schemas import Tick

logger = logging.getLogger(__name__)


class BybitRestClient(TickerSourceABC):
    """Fetches last prices from Bybit's public market tickers endpoint.

    Uses httpx for REST calls. A single-symbol fetch raises on any failure; the
    bulk snapshot drops entries without a symbol or a finite price.
    """

    BASE_URL = "https://api.bybit.com"
    TICKERS_PATH = "/v5/market/tickers"

    def __init__(
        self,
        base_url: str = BASE_URL,
        *,
        category: str = "spot",
        timeout: float = 10.0,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        """Initialize the REST client.

        Args:
            base_url: API root, e.g. ``https://api.bybit.com``.
            category: Market category (``spot``, ``linear``...).
            timeout: Per-request timeout in seconds.
            client: Optional preconfigured client (tests pass one with a mock transport).
        """
        self._category = category
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(
            base_url=base_url,
            timeout=timeout,
            headers={"Accept": "application/json"},
        )

    async def _get_tickers(self, symbol: str | None = None) -> BybitTickersResponse:
        params = {"category": self._category}
        if symbol:
            params["symbol"] = symbol
        response = await self._client.get(self.TICKERS_PATH, params=params)
        try:
            response.raise_for_status()
        except httpx.HTTPStatusError as exc:
            raise TickerFetchError(
                f"Bybit API error ({response.status_code})",
                symbol=symbol,
                status_code=response.status_code,
            ) from exc
        try:
            payload = BybitTickersResponse.model_validate(response.json())
        except (ValueError, ValidationError) as exc:
            raise TickerFetchError("Invalid ticker response", symbol=symbol) from exc
        if payload.ret_code != 0:
            raise TickerFetchError(
                f"Bybit API error: {payload.ret_msg or payload.ret_code}", symbol=symbol
            )
        return payload

    async def fetch_ticker(self, symbol: str, ts: int) -> Tick:
        payload = await self._get_tickers(symbol)
        tickers = payload.tickers()
        if not tickers or tickers[0].last_price is None:
            raise TickerFetchError("Invalid price response", symbol=symbol)
        return Tick(symbol=symbol, price=tickers[0].last_price, ts=ts)

    async def fetch_all_tickers(self, ts: int) -> list[Tick]:
        payload = await self._get_tickers()
        ticks = [
            Tick(symbol=t.symbol, price=t.last_price, ts=ts)
            for t in payload.tickers()
            if t.usable
        ]
        logger.debug("Fetched %d tickers from snapshot", len(ticks))
        return ticks

    async def close(self) -> None:
        """Close the HTTP client if this instance created it."""
        if self._owns_client:
            await self._client.aclose()
