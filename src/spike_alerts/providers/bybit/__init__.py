"""Bybit v5 public market data: REST tickers and the public spot stream."""
from spike_alerts.providers.bybit.parser import FrameKind, StreamFrame, parse_stream_message
from spike_alerts.providers.bybit.rest import BybitRestClient
from spike_alerts.providers.bybit.stream import StreamConnection

__all__ = [
    "BybitRestClient",
    "FrameKind",
    "StreamConnection",
    "StreamFrame",
    "parse_stream_message",
]
