"""Uniform tick delivery over a push stream or periodic polling.

Consumers read ``batches()`` and never see which source produced a tick.
Streaming and full-universe tracking are mutually exclusive, so a transport
tracking all symbols always polls.
"""
import asyncio
import logging
from collections.abc import AsyncIterator, Callable

import httpx

from spike_alerts.providers.bybit.stream import (PING_INTERVAL, PONG_TIMEOUT,
                                                 Connector, StreamConnection)
from spike_alerts.providers.core import (ReconnectBackoff, TickerSourceABC,
                                         TransportError, poll_ticks)
from spike_alerts.schemas import ConnectionStatus, Tick, TransportMode
from spike_alerts.settings import Settings
from spike_alerts.utils import now_ms

logger = logging.getLogger(__name__)

# Fetch failures we expect from the pull endpoint; anything else is a bug
_FETCH_ERRORS: tuple[type[BaseException], ...] = (
    TransportError,
    httpx.HTTPError,
    OSError,
    asyncio.TimeoutError,
    ValueError,
)


class PriceTransport:
    """Owns one stream connection or one polling timer for a settings snapshot.

    In streaming mode the poller keeps running as a fallback and skips every
    cycle while the stream is connected.
    """

    def __init__(
        self,
        settings: Settings,
        source: TickerSourceABC,
        *,
        stream_url: str = "",
        connect: Connector | None = None,
        backoff: ReconnectBackoff | None = None,
        ping_interval: float = PING_INTERVAL,
        pong_timeout: float = PONG_TIMEOUT,
        polling_only: bool = False,
        clock: Callable[[], int] = now_ms,
    ) -> None:
        self._settings = settings
        self._source = source
        self._clock = clock
        self._queue: asyncio.Queue[list[Tick] | None] = asyncio.Queue()
        self._stop_event = asyncio.Event()
        self._poll_task: asyncio.Task[None] | None = None
        self.last_poll_error: str | None = None

        self._stream: StreamConnection | None = None
        if settings.streaming_enabled and not polling_only:
            self._stream = StreamConnection(
                stream_url,
                settings.symbols,
                self._emit,
                connect=connect,
                backoff=backoff,
                ping_interval=ping_interval,
                pong_timeout=pong_timeout,
                clock=clock,
            )

    # ── Observable state ───────────────────────────────────

    @property
    def mode(self) -> TransportMode:
        return TransportMode.STREAMING if self._stream is not None else TransportMode.POLLING

    @property
    def connection_status(self) -> ConnectionStatus | None:
        return self._stream.status if self._stream is not None else None

    @property
    def stream(self) -> StreamConnection | None:
        return self._stream

    @property
    def last_error(self) -> str | None:
        if self._stream is not None and self._stream.last_error:
            return self._stream.last_error
        return self.last_poll_error

    def _stream_is_live(self) -> bool:
        return self._stream is not None and self._stream.status is ConnectionStatus.CONNECTED

    # ── Lifecycle ──────────────────────────────────────────

    async def start(self) -> None:
        self._stop_event.clear()
        if self._stream is not None:
            self._stream.start()
        if self._poll_task is None or self._poll_task.done():
            self._poll_task = asyncio.create_task(self._poll_loop(), name="ticker-poller")
        logger.info(
            "Transport started (mode=%s, symbols=%s)",
            self.mode.value,
            "all" if self._settings.track_all_symbols else len(self._settings.symbols),
        )

    async def stop(self) -> None:
        """Tear down the stream and the poller, then end ``batches()``."""
        self._stop_event.set()
        if self._stream is not None:
            await self._stream.stop()
        task, self._poll_task = self._poll_task, None
        if task is not None:
            task.cancel()
            await asyncio.gather(task, return_exceptions=True)
        self._queue.put_nowait(None)
        logger.info("Transport stopped")

    async def batches(self) -> AsyncIterator[list[Tick]]:
        """Yield tick batches until ``stop()``."""
        while True:
            batch = await self._queue.get()
            if batch is None:
                return
            yield batch

    def _emit(self, ticks: list[Tick]) -> None:
        if ticks:
            self._queue.put_nowait(ticks)

    async def _poll_loop(self) -> None:
        async for ticks in poll_ticks(
            self.fetch_once,
            self._settings.poll_interval_sec,
            stop_event=self._stop_event,
            should_skip=self._stream_is_live,
        ):
            self._emit(ticks)

    # ── Single-shot pull ───────────────────────────────────

    async def fetch_once(self) -> list[Tick]:
        """Pull one cycle of ticks; failures are logged and yield no ticks."""
        ts = self._clock()
        try:
            if self._settings.track_all_symbols:
                ticks = await self._source.fetch_all_tickers(ts)
            else:
                ticks = await self._source.fetch_tickers(self._settings.symbols, ts)
        except _FETCH_ERRORS as exc:
            self.last_poll_error = self._source.error_mapper.describe(exc)
            logger.warning("Ticker poll failed: %s", self.last_poll_error)
            return []
        self.last_poll_error = None
        return ticks
