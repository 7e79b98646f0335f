"""Outward alert notifications.

Dispatch happens after alerts are recorded. Quiet hours and the
notifications toggle only decide whether anything is pushed; a failed
delivery is logged and never retried.
"""
import logging
from collections.abc import Sequence
from datetime import datetime
from typing import Protocol

import httpx

from spike_alerts.engine.gate import should_notify
from spike_alerts.schemas import AlertEvent
from spike_alerts.settings import Settings
from spike_alerts.utils import format_price

logger = logging.getLogger(__name__)


class NotificationDispatcher(Protocol):
    """Delivers one notification; raises on failure."""

    async def deliver(self, title: str, body: str, sound_enabled: bool) -> None: ...


class LoggingDispatcher:
    """Default dispatcher when no push channel is configured."""

    async def deliver(self, title: str, body: str, sound_enabled: bool) -> None:
        logger.info("Notification: %s | %s%s", title, body, "" if sound_enabled else " (silent)")


class WebhookDispatcher:
    """POSTs ``{"title", "body", "sound"}`` JSON to a webhook URL."""

    def __init__(
        self,
        url: str,
        *,
        timeout: float = 10.0,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self._url = url
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(timeout=timeout)

    async def deliver(self, title: str, body: str, sound_enabled: bool) -> None:
        response = await self._client.post(
            self._url, json={"title": title, "body": body, "sound": sound_enabled}
        )
        response.raise_for_status()

    async def close(self) -> None:
        if self._owns_client:
            await self._client.aclose()


def format_alert_notification(alert: AlertEvent) -> tuple[str, str]:
    """Build the (title, body) pair, e.g. ``("BTCUSDT Spike", "+8.00% to $108.000")``."""
    direction = "Spike" if alert.change_pct >= 0 else "Drop"
    sign = "+" if alert.change_pct >= 0 else ""
    return (
        f"{alert.symbol} {direction}",
        f"{sign}{alert.change_pct:.2f}% to ${format_price(alert.price)}",
    )


async def dispatch_alerts(
    dispatcher: NotificationDispatcher,
    settings: Settings,
    alerts: Sequence[AlertEvent],
    when: datetime | None = None,
) -> int:
    """Deliver one notification per alert unless suppressed; returns the delivered count."""
    if not alerts:
        return 0
    when = when or datetime.now()
    if not should_notify(settings, when):
        logger.info("Suppressed %d notification(s) (disabled or quiet hours)", len(alerts))
        return 0

    delivered = 0
    for alert in alerts:
        title, body = format_alert_notification(alert)
        try:
            await dispatcher.deliver(title, body, settings.notification_sound)
        except Exception as exc:  # pylint: disable=broad-except
            logger.warning("Notification for %s failed: %s", alert.id, exc)
            continue
        delivered += 1
    return delivered
