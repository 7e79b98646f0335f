"""Threshold, cooldown and quiet-hours rules that turn changes into alerts.

Cooldown has no stored state beyond ``last_alert_at``: a symbol is cooling
while ``now - last_alert_at < cooldown`` and idle otherwise. Quiet hours never
stop an alert from being recorded; they only gate notification dispatch.
"""
import logging
from collections.abc import Mapping
from datetime import datetime

from spike_alerts.schemas import AlertEvent
from spike_alerts.settings import QuietHours, Settings

logger = logging.getLogger(__name__)


class AlertGate:
    """Decides whether a detected change becomes a new AlertEvent.

    Cooldown is keyed by symbol only, so a spike and a following drop share
    one cooldown clock.
    """

    def __init__(self, settings: Settings, last_alert_at: Mapping[str, int] | None = None) -> None:
        self._settings = settings
        self._last_alert_at: dict[str, int] = dict(last_alert_at or {})

    @property
    def last_alert_at(self) -> dict[str, int]:
        return dict(self._last_alert_at)

    def is_cooling(self, symbol: str, now_ms: int) -> bool:
        last = self._last_alert_at.get(symbol)
        if last is None:
            return False
        return now_ms - last < self._settings.rule_for(symbol).cooldown_ms

    def evaluate(self, symbol: str, change_pct: float, price: float, now_ms: int) -> AlertEvent | None:
        """Emit an alert when the threshold is crossed outside cooldown.

        Crossings during cooldown are dropped, not queued.
        """
        rule = self._settings.rule_for(symbol)
        if abs(change_pct) < rule.threshold_pct:
            return None
        if self.is_cooling(symbol, now_ms):
            logger.debug("Suppressed %s %.2f%% (cooling down)", symbol, change_pct)
            return None
        self._last_alert_at[symbol] = now_ms
        return AlertEvent.create(symbol, change_pct, price, now_ms)


def is_within_quiet_hours(quiet: QuietHours, when: datetime) -> bool:
    """Return True if ``when`` (local time) falls inside the quiet range."""
    if not quiet.enabled:
        return False
    start, end = quiet.start_minute_of_day, quiet.end_minute_of_day
    if start == end:
        return False
    minute = when.hour * 60 + when.minute
    if start < end:
        return start <= minute < end
    # range wraps midnight
    return minute >= start or minute < end


def should_notify(settings: Settings, when: datetime) -> bool:
    """Notifications go out only when enabled and outside quiet hours."""
    return settings.notifications_enabled and not is_within_quiet_hours(settings.quiet_hours, when)
