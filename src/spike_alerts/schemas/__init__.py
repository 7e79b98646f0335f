"""Pydantic schemas for runtime, persistence and API use.

Field names are snake_case in Python and camelCase on the wire and in
persisted documents.
"""
from enum import Enum

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    """Base model serialised with camelCase aliases."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class Direction(str, Enum):
    """Sign of a windowed price change."""

    UP = "up"
    DOWN = "down"
    FLAT = "flat"


class TransportMode(str, Enum):
    STREAMING = "streaming"
    POLLING = "polling"


class ConnectionStatus(str, Enum):
    """Lifecycle of the push connection."""

    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    CONNECTED = "connected"
    RECONNECTING = "reconnecting"


class RunResult(str, Enum):
    """Outcome of a single background invocation."""

    SUCCESS = "success"
    FAILED = "failed"


class PricePoint(CamelModel):
    """A single retained observation in a symbol's window."""

    model_config = ConfigDict(frozen=True)

    ts: int  # epoch ms
    price: float


class Tick(CamelModel):
    """One (symbol, price, timestamp) observation from the ticker source."""

    model_config = ConfigDict(frozen=True)

    symbol: str
    price: float
    ts: int  # epoch ms, stamped on receipt


class Quote(CamelModel):
    """Latest computed view of a symbol. Derived, never persisted."""

    symbol: str
    price: float
    change_pct: float
    direction: Direction
    last_updated: int


class AlertEvent(CamelModel):
    """A recorded spike alert."""

    model_config = ConfigDict(frozen=True)

    id: str
    symbol: str
    change_pct: float
    price: float
    ts: int

    @classmethod
    def create(cls, symbol: str, change_pct: float, price: float, ts: int) -> "AlertEvent":
        """Build an alert whose id is derived from symbol and timestamp."""
        return cls(
            id=f"{symbol}-{ts}",
            symbol=symbol,
            change_pct=change_pct,
            price=price,
            ts=ts,
        )


class EngineStatus(CamelModel):
    """Status indicator for the foreground loop."""

    mode: TransportMode
    connection_status: ConnectionStatus | None = None
    health: str  # Live | Syncing | Degraded
    last_error: str | None = None
    last_updated: int | None = None
    ticks_processed: int = 0
    alerts_emitted: int = 0
    symbols: list[str] = []
    track_all_symbols: bool = False


__all__ = [
    "AlertEvent",
    "CamelModel",
    "ConnectionStatus",
    "Direction",
    "EngineStatus",
    "PricePoint",
    "Quote",
    "RunResult",
    "Tick",
    "TransportMode",
]
