"""Ticker sources and transport.

- BybitRestClient: pull endpoint (single ticker or full snapshot) via httpx
- StreamConnection: push-subscribe channel via websockets, with reconnect,
  backoff and keepalive
- PriceTransport: one uniform stream of ticks regardless of origin

Example:
    async with BybitRestClient() as source:
        transport = PriceTransport(settings, source, stream_url=config.stream_url)
        await transport.start()
        async for batch in transport.batches():
            ...
"""
from spike_alerts.providers.bybit import BybitRestClient, StreamConnection
from spike_alerts.providers.core import TickerSourceABC
from spike_alerts.providers.transport import PriceTransport

__all__ = [
    "BybitRestClient",
    "PriceTransport",
    "StreamConnection",
    "TickerSourceABC",
]
