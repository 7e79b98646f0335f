"""Single-shot background invocation (cron, systemd timer, OS task scheduler).

Each call starts with no memory of previous calls: settings and state are
loaded fresh, ticks are pulled (never streamed), the shared pipeline runs,
results are persisted, notifications go out, and the call returns.
"""
import logging
from datetime import datetime

from spike_alerts.engine.pipeline import reconcile
from spike_alerts.schemas import RunResult
from spike_alerts.services.context import EngineContext
from spike_alerts.services.notifications import dispatch_alerts
from spike_alerts.settings import Settings

logger = logging.getLogger(__name__)

MIN_BACKGROUND_INTERVAL_SEC = 300


def minimum_interval_seconds(settings: Settings) -> int:
    """Interval to register with the OS scheduler."""
    return max(MIN_BACKGROUND_INTERVAL_SEC, settings.poll_interval_sec)


async def run_once(context: EngineContext, *, when: datetime | None = None) -> RunResult:
    """Run one background cycle; idempotent apart from the prices it observes.

    Returns FAILED only if something unexpected escapes the pipeline; transport,
    storage and notification errors degrade the run but still count as success.
    """
    try:
        settings = await context.store.load_settings()
        if not settings.background_enabled:
            logger.debug("Background execution disabled; nothing to do")
            return RunResult.SUCCESS

        transport = context.make_transport(settings, polling_only=True)
        ticks = await transport.fetch_once()
        now = context.clock()
        result = await reconcile(context.store, settings, ticks, now)
        if not result.persisted:
            logger.warning("Background run results were not fully persisted")

        delivered = await dispatch_alerts(context.dispatcher, settings, result.new_alerts, when)
        logger.info(
            "Background run: %d ticks, %d new alerts, %d notified",
            len(ticks),
            len(result.new_alerts),
            delivered,
        )
        return RunResult.SUCCESS
    except Exception as exc:  # pylint: disable=broad-except
        logger.exception("Background run failed: %s", exc)
        return RunResult.FAILED
