"""Explicit per-execution context passed to the pipeline entry points.

One context is built per foreground process lifetime or per background
invocation; nothing here is a module-level singleton.
"""
import inspect
import logging
from collections.abc import Callable
from dataclasses import dataclass, field

from spike_alerts.config import AppConfig
from spike_alerts.db import KeyValueStore, SqlKeyValueStore, StateStore
from spike_alerts.db.sessions import create_db_engine
from spike_alerts.providers import BybitRestClient, PriceTransport, TickerSourceABC
from spike_alerts.providers.bybit.stream import Connector
from spike_alerts.services.notifications import (LoggingDispatcher,
                                                 NotificationDispatcher,
                                                 WebhookDispatcher)
from spike_alerts.settings import Settings
from spike_alerts.utils import now_ms

logger = logging.getLogger(__name__)


@dataclass
class EngineContext:
    """Store, ticker source, dispatcher and clock for one execution context."""

    config: AppConfig
    kv: KeyValueStore
    source: TickerSourceABC
    dispatcher: NotificationDispatcher
    clock: Callable[[], int] = now_ms
    connect: Connector | None = None
    store: StateStore = field(init=False)

    def __post_init__(self) -> None:
        self.store = StateStore(self.kv)

    def make_transport(self, settings: Settings, *, polling_only: bool = False) -> PriceTransport:
        """Build a transport for a settings snapshot."""
        return PriceTransport(
            settings,
            self.source,
            stream_url=self.config.stream_url,
            connect=self.connect,
            polling_only=polling_only,
            clock=self.clock,
        )

    async def aclose(self) -> None:
        """Release HTTP clients and database connections."""
        for resource in (self.source, self.dispatcher, self.kv):
            close = getattr(resource, "close", None) or getattr(resource, "dispose", None)
            if close is None:
                continue
            try:
                result = close()
                if inspect.isawaitable(result):
                    await result
            except Exception as exc:  # pylint: disable=broad-except
                logger.warning("Error closing %s: %s", type(resource).__name__, exc)


def create_context(config: AppConfig | None = None) -> EngineContext:
    """Create a context wired to the configured database, ticker API and webhook."""
    config = config or AppConfig()
    engine = create_db_engine(config.database_url, echo=config.sql_echo)
    dispatcher: NotificationDispatcher = (
        WebhookDispatcher(config.webhook_url, timeout=config.http_timeout)
        if config.webhook_url
        else LoggingDispatcher()
    )
    return EngineContext(
        config=config,
        kv=SqlKeyValueStore(engine),
        source=BybitRestClient(
            config.rest_url, category=config.category, timeout=config.http_timeout
        ),
        dispatcher=dispatcher,
    )
