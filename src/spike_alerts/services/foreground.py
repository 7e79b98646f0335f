"""Long-lived foreground loop hosted by the API server.

Consumes transport batches, runs the shared pipeline, keeps Quote views for
presentation and pushes notifications. Detection never runs concurrently with
itself: batches, periodic pruning, settings reloads and in-process background
runs all take the same lock.
"""
import asyncio
import logging
from collections.abc import Mapping
from datetime import datetime
from typing import Any

from spike_alerts.engine.pipeline import PipelineResult, reconcile
from spike_alerts.providers import PriceTransport
from spike_alerts.schemas import EngineStatus, Quote, RunResult, Tick
from spike_alerts.services.background import run_once
from spike_alerts.services.context import EngineContext
from spike_alerts.services.notifications import dispatch_alerts
from spike_alerts.settings import Settings, normalize_settings

logger = logging.getLogger(__name__)

PRUNE_INTERVAL_SEC = 30.0
SUBSCRIBER_QUEUE_SIZE = 256


class ForegroundRunner:
    """Drives one transport and the pipeline for the lifetime of the process."""

    def __init__(self, context: EngineContext, *, prune_interval: float = PRUNE_INTERVAL_SEC) -> None:
        self._context = context
        self._prune_interval = prune_interval
        self._settings = Settings()
        self._transport: PriceTransport | None = None
        self._consumer: asyncio.Task[None] | None = None
        self._pruner: asyncio.Task[None] | None = None
        self._lock = asyncio.Lock()
        self._quotes: dict[str, Quote] = {}
        self._subscribers: set[asyncio.Queue[Quote]] = set()
        self._notify_tasks: set[asyncio.Task[int]] = set()

        self.ticks_processed = 0
        self.alerts_emitted = 0
        self.last_updated: int | None = None
        self.last_error: str | None = None

    @property
    def settings(self) -> Settings:
        return self._settings

    @property
    def transport(self) -> PriceTransport | None:
        return self._transport

    @property
    def quotes(self) -> dict[str, Quote]:
        return dict(self._quotes)

    @property
    def is_running(self) -> bool:
        return self._consumer is not None and not self._consumer.done()

    # ── Lifecycle ──────────────────────────────────────────

    async def start(self) -> None:
        """Load settings from the store and start consuming ticks."""
        await self._start_with(await self._context.store.load_settings())

    async def stop(self) -> None:
        await self._teardown()
        for task in list(self._notify_tasks):
            task.cancel()
        await asyncio.gather(*self._notify_tasks, return_exceptions=True)

    async def apply_settings(self, raw: Settings | Mapping[str, Any]) -> Settings:
        """Normalise, persist and switch to new settings with a full teardown and restart."""
        if isinstance(raw, Settings):
            raw = raw.model_dump(by_alias=True)
        settings = normalize_settings(raw)
        await self._teardown()
        async with self._lock:
            saved = await self._context.store.save_settings(settings)
        if not saved:
            self.last_error = "Settings could not be saved"
        await self._start_with(settings)
        return settings

    async def reload(self) -> Settings:
        """Re-read settings written by another process and restart with them."""
        await self._teardown()
        settings = await self._context.store.load_settings()
        await self._start_with(settings)
        return settings

    async def _start_with(self, settings: Settings) -> None:
        self._settings = settings
        async with self._lock:
            await self._context.store.restrict_to_symbols(settings, self._context.clock())
        if not settings.track_all_symbols:
            self._quotes = {s: q for s, q in self._quotes.items() if s in settings.symbols}

        transport = self._context.make_transport(settings)
        self._transport = transport
        await transport.start()
        self._consumer = asyncio.create_task(self._consume(transport), name="foreground-consumer")
        self._pruner = asyncio.create_task(self._prune_loop(), name="foreground-pruner")

    async def _teardown(self) -> None:
        transport, self._transport = self._transport, None
        if transport is not None:
            # stop() ends batches(); the consumer drains what is queued and exits
            await transport.stop()
        consumer, self._consumer = self._consumer, None
        if consumer is not None:
            await asyncio.gather(consumer, return_exceptions=True)
        pruner, self._pruner = self._pruner, None
        if pruner is not None:
            pruner.cancel()
            await asyncio.gather(pruner, return_exceptions=True)

    # ── Processing ─────────────────────────────────────────

    async def _consume(self, transport: PriceTransport) -> None:
        async for batch in transport.batches():
            try:
                await self.process_batch(batch)
            except Exception as exc:  # pylint: disable=broad-except
                self.last_error = str(exc)
                logger.exception("Failed to process %d ticks: %s", len(batch), exc)

    async def process_batch(self, ticks: list[Tick], *, when: datetime | None = None) -> PipelineResult:
        """Run one cycle of the shared pipeline and publish its results."""
        async with self._lock:
            result = await reconcile(
                self._context.store, self._settings, ticks, self._context.clock()
            )
        self.ticks_processed += len(ticks)
        if result.quotes:
            self.last_updated = max(q.last_updated for q in result.quotes.values())
        self.last_error = None if result.persisted else "State could not be saved"
        self._quotes.update(result.quotes)
        for quote in result.quotes.values():
            self._publish(quote)

        if result.new_alerts:
            self.alerts_emitted += len(result.new_alerts)
            task = asyncio.create_task(
                dispatch_alerts(self._context.dispatcher, self._settings, result.new_alerts, when)
            )
            self._notify_tasks.add(task)
            task.add_done_callback(self._notify_tasks.discard)
        return result

    async def _prune_loop(self) -> None:
        """Age out history and alerts even for symbols that stopped ticking."""
        while True:
            await asyncio.sleep(self._prune_interval)
            async with self._lock:
                now = self._context.clock()
                await self._context.store.prune_history(self._settings, now)
                await self._context.store.prune_alerts(self._settings, now)

    async def run_background_once(self, *, when: datetime | None = None) -> RunResult:
        """Invoke the background entry point without overlapping the foreground cycle."""
        async with self._lock:
            return await run_once(self._context, when=when)

    async def clear_alerts(self) -> bool:
        """Remove stored alerts and reset cooldowns between pipeline cycles."""
        async with self._lock:
            return await self._context.store.clear_alerts()

    async def wait_for_notifications(self) -> None:
        """Wait for in-flight notification deliveries (used on shutdown and in tests)."""
        await asyncio.gather(*self._notify_tasks, return_exceptions=True)

    # ── Quote subscribers ──────────────────────────────────

    def subscribe(self) -> asyncio.Queue[Quote]:
        queue: asyncio.Queue[Quote] = asyncio.Queue(maxsize=SUBSCRIBER_QUEUE_SIZE)
        self._subscribers.add(queue)
        return queue

    def unsubscribe(self, queue: asyncio.Queue[Quote]) -> None:
        self._subscribers.discard(queue)

    def _publish(self, quote: Quote) -> None:
        for queue in self._subscribers:
            try:
                queue.put_nowait(quote)
            except asyncio.QueueFull:
                logger.debug("Dropping quote for slow subscriber")

    # ── Status ─────────────────────────────────────────────

    def status(self) -> EngineStatus:
        transport = self._transport
        last_error = self.last_error or (transport.last_error if transport else None)
        if last_error:
            health = "Degraded"
        elif self.last_updated is None:
            health = "Syncing"
        else:
            health = "Live"
        return EngineStatus(
            mode=self._settings.transport_mode,
            connection_status=transport.connection_status if transport else None,
            health=health,
            last_error=last_error,
            last_updated=self.last_updated,
            ticks_processed=self.ticks_processed,
            alerts_emitted=self.alerts_emitted,
            symbols=list(self._quotes) if self._settings.track_all_symbols else self._settings.symbols,
            track_all_symbols=self._settings.track_all_symbols,
        )
