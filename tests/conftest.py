"""Shared fixtures and in-process fakes for the spike alerts tests."""
import asyncio
import json
from datetime import datetime
from typing import Any

import pytest

from spike_alerts.config import AppConfig
from spike_alerts.db import MemoryKeyValueStore, StateStore
from spike_alerts.providers.core import TickerFetchError, TickerSourceABC
from spike_alerts.schemas import Tick
from spike_alerts.services import EngineContext
from spike_alerts.settings import Settings, normalize_settings
from spike_alerts.utils import MS_PER_MINUTE

T0 = 1_700_000_000_000  # 2023-11-14T22:13:20Z
MIN = MS_PER_MINUTE

# Local wall-clock instants for quiet-hours checks
NOON = datetime(2024, 1, 1, 12, 0)
NIGHT = datetime(2024, 1, 1, 23, 30)

_CLOSE = object()


def make_settings(**overrides: Any) -> Settings:
    """Normalised settings from camelCase or snake_case overrides."""
    return normalize_settings(overrides)


def tick(symbol: str, price: float, ts: int) -> Tick:
    return Tick(symbol=symbol, price=price, ts=ts)


class FakeTickerSource(TickerSourceABC):
    """Pull endpoint backed by a dict of prices."""

    def __init__(self, prices: dict[str, float] | None = None) -> None:
        self.prices: dict[str, float] = dict(prices or {})
        self.failing: set[str] = set()
        self.fail_all: Exception | None = None
        self.calls = 0
        self.closed = False

    async def fetch_ticker(self, symbol: str, ts: int) -> Tick:
        self.calls += 1
        if self.fail_all is not None:
            raise self.fail_all
        if symbol in self.failing or symbol not in self.prices:
            raise TickerFetchError("Invalid price response", symbol=symbol)
        return Tick(symbol=symbol, price=self.prices[symbol], ts=ts)

    async def fetch_all_tickers(self, ts: int) -> list[Tick]:
        self.calls += 1
        if self.fail_all is not None:
            raise self.fail_all
        return [Tick(symbol=s, price=p, ts=ts) for s, p in self.prices.items()]

    async def close(self) -> None:
        self.closed = True


class FakeSocket:
    """Stand-in for a websockets client connection."""

    def __init__(self) -> None:
        self.incoming: asyncio.Queue[Any] = asyncio.Queue()
        self.sent: list[dict[str, Any]] = []
        self.closed = False

    def feed(self, message: dict[str, Any] | str) -> None:
        self.incoming.put_nowait(message if isinstance(message, str) else json.dumps(message))

    def server_close(self) -> None:
        self.incoming.put_nowait(_CLOSE)

    async def send(self, data: str) -> None:
        self.sent.append(json.loads(data))

    async def close(self) -> None:
        self.closed = True

    def __aiter__(self) -> "FakeSocket":
        return self

    async def __anext__(self) -> str:
        message = await self.incoming.get()
        if message is _CLOSE:
            raise StopAsyncIteration
        return message

    def sent_ops(self, op: str) -> list[dict[str, Any]]:
        return [m for m in self.sent if m.get("op") == op]


class FakeConnector:
    """Hands out prepared sockets in order; raises once they are used up."""

    def __init__(self, *sockets: FakeSocket, failures: int = 0) -> None:
        self.sockets = list(sockets)
        self.failures = failures
        self.urls: list[str] = []
        self.connected = asyncio.Event()

    async def __call__(self, url: str) -> FakeSocket:
        self.urls.append(url)
        if self.failures:
            self.failures -= 1
            raise OSError("connection refused")
        if not self.sockets:
            raise OSError("no more sockets")
        self.connected.set()
        return self.sockets.pop(0)


class RecordingDispatcher:
    """Captures delivered notifications; optionally fails every delivery."""

    def __init__(self, *, fail: bool = False) -> None:
        self.fail = fail
        self.delivered: list[tuple[str, str, bool]] = []

    async def deliver(self, title: str, body: str, sound_enabled: bool) -> None:
        if self.fail:
            raise RuntimeError("push channel down")
        self.delivered.append((title, body, sound_enabled))


class FailingKeyValueStore(MemoryKeyValueStore):
    """Reads work; writes raise."""

    async def set(self, key: str, value: bytes) -> None:
        raise OSError("disk full")


async def until(predicate, timeout: float = 2.0) -> None:
    """Poll ``predicate`` until it holds or fail the test."""
    async def _wait() -> None:
        while not predicate():
            await asyncio.sleep(0.005)

    await asyncio.wait_for(_wait(), timeout=timeout)


@pytest.fixture
def kv() -> MemoryKeyValueStore:
    return MemoryKeyValueStore()


@pytest.fixture
def store(kv: MemoryKeyValueStore) -> StateStore:
    return StateStore(kv)


@pytest.fixture
def source() -> FakeTickerSource:
    return FakeTickerSource({"BTCUSDT": 100.0, "ETHUSDT": 2000.0, "SOLUSDT": 50.0})


@pytest.fixture
def dispatcher() -> RecordingDispatcher:
    return RecordingDispatcher()


@pytest.fixture
def clock() -> list[int]:
    """Mutable test clock; ``clock[0]`` is the current epoch ms."""
    return [T0]


@pytest.fixture
def context(
    kv: MemoryKeyValueStore,
    source: FakeTickerSource,
    dispatcher: RecordingDispatcher,
    clock: list[int],
) -> EngineContext:
    return EngineContext(
        config=AppConfig(stream_url="wss://stream.test/v5/public/spot"),
        kv=kv,
        source=source,
        dispatcher=dispatcher,
        clock=lambda: clock[0],
    )
