"""Decoding of Bybit public-stream frames."""
import json
import logging
import math
from dataclasses import dataclass
from enum import Enum
from typing import Any

from spike_alerts.providers.core import MalformedMessageError
from spike_alerts.schemas import Tick

logger = logging.getLogger(__name__)

TICKER_TOPIC_PREFIX = "tickers."


class FrameKind(str, Enum):
    TICKER = "ticker"
    PING = "ping"  # server-initiated, must be answered with a pong
    PONG = "pong"  # reply to our keepalive
    ACK = "ack"  # subscribe/unsubscribe acknowledgement
    IGNORED = "ignored"


@dataclass(frozen=True)
class StreamFrame:
    kind: FrameKind
    ticks: tuple[Tick, ...] = ()


def ticker_topic(symbol: str) -> str:
    return f"{TICKER_TOPIC_PREFIX}{symbol}"


def _price(value: Any) -> float | None:
    try:
        price = float(value)
    except (TypeError, ValueError):
        return None
    return price if math.isfinite(price) else None


def parse_stream_message(raw: str | bytes, ts: int) -> StreamFrame:
    """Decode one frame into zero or more ticks.

    Args:
        raw: Text or binary frame as received.
        ts: Receipt time (epoch ms) stamped on every tick.

    Raises:
        MalformedMessageError: Not JSON, not an object, or a data frame with no
            usable ticker entry.
    """
    try:
        payload = json.loads(raw)
    except (TypeError, ValueError) as exc:
        raise MalformedMessageError(f"Invalid JSON frame: {exc}") from exc
    if not isinstance(payload, dict):
        raise MalformedMessageError("Frame is not a JSON object")

    op = payload.get("op")
    # Bybit acknowledges {"op": "ping"} with {"op": "ping", "ret_msg": "pong"}
    if op == "pong" or payload.get("ret_msg") == "pong":
        return StreamFrame(FrameKind.PONG)
    if op == "ping":
        return StreamFrame(FrameKind.PING)
    if op in ("subscribe", "unsubscribe") or "success" in payload:
        if payload.get("success") is False:
            logger.warning("Stream request rejected: %s", payload.get("ret_msg"))
        return StreamFrame(FrameKind.ACK)

    data = payload.get("data")
    if data is None:
        return StreamFrame(FrameKind.IGNORED)
    entries = data if isinstance(data, list) else [data]

    topic = payload.get("topic")
    topic_symbol = None
    if isinstance(topic, str) and topic.startswith(TICKER_TOPIC_PREFIX):
        topic_symbol = topic[len(TICKER_TOPIC_PREFIX):] or None

    ticks: list[Tick] = []
    for entry in entries:
        if not isinstance(entry, dict):
            continue
        symbol = entry.get("symbol") or topic_symbol
        price = _price(entry.get("lastPrice"))
        if not isinstance(symbol, str) or not symbol or price is None:
            continue
        ticks.append(Tick(symbol=symbol, price=price, ts=ts))
    if not ticks:
        raise MalformedMessageError("Data frame without a usable ticker")
    return StreamFrame(FrameKind.TICKER, tuple(ticks))
