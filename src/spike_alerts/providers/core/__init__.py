"""Core transport abstractions."""
from spike_alerts.providers.core.backoff import ReconnectBackoff
from spike_alerts.providers.core.error_mapper import TransportErrorMapper
from spike_alerts.providers.core.exceptions import (KeepaliveTimeout,
                                                    MalformedMessageError,
                                                    TickerFetchError,
                                                    TransportError)
from spike_alerts.providers.core.stream_helpers import poll_ticks
from spike_alerts.providers.core.ticker_source_abc import TickerSourceABC

__all__ = [
    "KeepaliveTimeout",
    "MalformedMessageError",
    "ReconnectBackoff",
    "TickerFetchError",
    "TickerSourceABC",
    "TransportError",
    "TransportErrorMapper",
    "poll_ticks",
]
