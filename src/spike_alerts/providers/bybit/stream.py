"""Bybit public-stream connection with reconnect, backoff and keepalive.

State machine::

    DISCONNECTED -> CONNECTING -> CONNECTED -> RECONNECTING -> CONNECTED ...
    any state -- stop() --> DISCONNECTED

The whole lifecycle runs in one task. The reconnect wait, the reader and the
keepalive are all awaited inside it, so cancelling that task (``stop()``)
cancels any pending reconnect and keepalive and closes the socket.
"""
import asyncio
import json
import logging
from collections.abc import Awaitable, Callable
from typing import Any

import websockets

from spike_alerts.providers.bybit.parser import (FrameKind, parse_stream_message,
                                                 ticker_topic)
from spike_alerts.providers.core import (KeepaliveTimeout, MalformedMessageError,
                                         ReconnectBackoff, TransportError,
                                         TransportErrorMapper)
from spike_alerts.schemas import ConnectionStatus, Tick
from spike_alerts.utils import now_ms

logger = logging.getLogger(__name__)

PING_INTERVAL = 20.0
PONG_TIMEOUT = 10.0

Connector = Callable[[str], Awaitable[Any]]
TickSink = Callable[[list[Tick]], None]

_CONNECTION_ERRORS: tuple[type[BaseException], ...] = (
    OSError,
    asyncio.TimeoutError,
    websockets.WebSocketException,
    TransportError,
)


def _default_connect(url: str) -> Awaitable[Any]:
    # Keepalive is done at the application level with {"op": "ping"}
    return websockets.connect(url, ping_interval=None, open_timeout=10, close_timeout=5)


class StreamConnection:
    """One push connection for a fixed symbol set.

    Every successful open re-subscribes all symbols; a symbol-set change is a
    new connection (stop this one, start another), never an incremental
    resubscribe.
    """

    def __init__(
        self,
        url: str,
        symbols: list[str],
        sink: TickSink,
        *,
        connect: Connector | None = None,
        backoff: ReconnectBackoff | None = None,
        ping_interval: float = PING_INTERVAL,
        pong_timeout: float = PONG_TIMEOUT,
        clock: Callable[[], int] = now_ms,
        error_mapper: TransportErrorMapper | None = None,
    ) -> None:
        self._url = url
        self._symbols = list(symbols)
        self._sink = sink
        self._connect = connect or _default_connect
        self._backoff = backoff or ReconnectBackoff()
        self._ping_interval = ping_interval
        self._pong_timeout = pong_timeout
        self._clock = clock
        self._error_mapper = error_mapper or TransportErrorMapper("Ticker stream")

        self._status = ConnectionStatus.DISCONNECTED
        self._manual_disconnect = True
        self._task: asyncio.Task[None] | None = None
        self._pong = asyncio.Event()
        self.last_error: str | None = None

    # ── Observable state ───────────────────────────────────

    @property
    def status(self) -> ConnectionStatus:
        return self._status

    @property
    def symbols(self) -> list[str]:
        return list(self._symbols)

    @property
    def backoff(self) -> ReconnectBackoff:
        return self._backoff

    @property
    def is_running(self) -> bool:
        return self._task is not None and not self._task.done()

    def _set_status(self, status: ConnectionStatus) -> None:
        if status is not self._status:
            logger.debug("Stream status %s -> %s", self._status.value, status.value)
            self._status = status

    # ── Lifecycle ──────────────────────────────────────────

    def start(self) -> None:
        """Start connecting in the background (idempotent)."""
        if self.is_running:
            return
        self._manual_disconnect = False
        self._task = asyncio.create_task(self._run(), name="ticker-stream")

    async def stop(self) -> None:
        """Manual disconnect: cancel reconnect/keepalive timers and close the socket."""
        self._manual_disconnect = True
        task, self._task = self._task, None
        if task is not None:
            task.cancel()
            await asyncio.gather(task, return_exceptions=True)
        self._set_status(ConnectionStatus.DISCONNECTED)

    async def _run(self) -> None:
        while not self._manual_disconnect:
            self._set_status(
                ConnectionStatus.RECONNECTING if self._backoff.attempt else ConnectionStatus.CONNECTING
            )
            try:
                await self._connect_and_serve()
            except _CONNECTION_ERRORS as exc:
                self.last_error = self._error_mapper.describe(exc)
                logger.warning("Stream connection lost: %s", self.last_error)
            except Exception as exc:  # pylint: disable=broad-except
                self.last_error = self._error_mapper.describe(exc)
                logger.exception("Unexpected stream failure: %s", exc)

            if self._manual_disconnect:
                break
            delay = self._backoff.schedule()
            self._set_status(ConnectionStatus.RECONNECTING)
            logger.info("Reconnecting in %.1fs (attempt %d)", delay, self._backoff.attempt)
            await asyncio.sleep(delay)

    async def _connect_and_serve(self) -> None:
        ws = await self._connect(self._url)
        try:
            self._backoff.reset()
            self.last_error = None
            self._set_status(ConnectionStatus.CONNECTED)
            logger.info("Stream connected (%d symbols)", len(self._symbols))
            await self._subscribe(ws)
            await self._serve(ws)
        finally:
            try:
                await ws.close()
            except Exception as exc:  # pylint: disable=broad-except
                logger.debug("Error closing stream socket: %s", exc)

    async def _subscribe(self, ws: Any) -> None:
        # Subscriptions never survive a reconnect; send one request per symbol
        for symbol in self._symbols:
            await ws.send(json.dumps({"op": "subscribe", "args": [ticker_topic(symbol)]}))

    async def _serve(self, ws: Any) -> None:
        """Run reader and keepalive until either ends; its error (if any) propagates."""
        self._pong.clear()
        tasks = {
            asyncio.create_task(self._read(ws), name="ticker-stream-reader"),
            asyncio.create_task(self._keepalive(ws), name="ticker-stream-keepalive"),
        }
        try:
            done, _ = await asyncio.wait(tasks, return_when=asyncio.FIRST_COMPLETED)
        finally:
            for task in tasks:
                task.cancel()
            await asyncio.gather(*tasks, return_exceptions=True)
        for task in done:
            task.result()

    async def _read(self, ws: Any) -> None:
        async for raw in ws:
            try:
                frame = parse_stream_message(raw, self._clock())
            except MalformedMessageError as exc:
                logger.warning("Dropping stream message: %s", exc)
                continue
            if frame.kind is FrameKind.PONG:
                self._pong.set()
            elif frame.kind is FrameKind.PING:
                await ws.send(json.dumps({"op": "pong"}))
            elif frame.kind is FrameKind.TICKER:
                self._sink(list(frame.ticks))
        logger.info("Stream closed by server")

    async def _keepalive(self, ws: Any) -> None:
        while True:
            await asyncio.sleep(self._ping_interval)
            self._pong.clear()
            await ws.send(json.dumps({"op": "ping"}))
            try:
                await asyncio.wait_for(self._pong.wait(), timeout=self._pong_timeout)
            except asyncio.TimeoutError:
                raise KeepaliveTimeout(
                    f"No pong within {self._pong_timeout:.0f}s; resetting connection"
                ) from None
