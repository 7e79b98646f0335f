"""Typed access to the persisted documents shared by every execution context.

Reads never fail: a missing or unparsable document yields its default value.
Writes never raise: a failure is logged and reported as ``False`` so the
current cycle's in-memory result is kept and the next successful write
supersedes it.
"""
import json
import logging
from typing import Any, TypeVar

from pydantic import TypeAdapter, ValidationError

from spike_alerts.db.kv_store import KeyValueStore
from spike_alerts.engine.window import History, prune_history_map
from spike_alerts.schemas import AlertEvent, PricePoint
from spike_alerts.settings import Settings, normalize_settings
from spike_alerts.utils import MS_PER_DAY

logger = logging.getLogger(__name__)

SETTINGS_KEY = "spike-alerts/settings"
HISTORY_KEY = "spike-alerts/history"
ALERTS_KEY = "spike-alerts/alerts"
LAST_ALERT_AT_KEY = "spike-alerts/last-alert-at"

T = TypeVar("T")

_HISTORY_ADAPTER = TypeAdapter(dict[str, list[PricePoint]])
_ALERTS_ADAPTER = TypeAdapter(list[AlertEvent])
_LAST_ALERT_ADAPTER = TypeAdapter(dict[str, int])


def prune_alerts(
    alerts: list[AlertEvent], now_ms: int, retention_days: int, max_alerts: int
) -> list[AlertEvent]:
    """Apply retention first, then keep the ``max_alerts`` most recent (newest first)."""
    cutoff = now_ms - retention_days * MS_PER_DAY
    retained = [a for a in alerts if a.ts >= cutoff]
    retained.sort(key=lambda a: a.ts, reverse=True)
    return retained[:max_alerts]


class StateStore:
    """Whole-document load/save for settings, history, alerts and last-alert times."""

    def __init__(self, kv: KeyValueStore) -> None:
        self._kv = kv

    # ── Generic read / write ───────────────────────────────

    async def _read(self, key: str) -> bytes | None:
        try:
            return await self._kv.get(key)
        except Exception as exc:  # pylint: disable=broad-except
            logger.warning("Failed to read %s: %s", key, exc)
            return None

    async def _load(self, key: str, adapter: TypeAdapter[T], default: T) -> T:
        raw = await self._read(key)
        if not raw:
            return default
        try:
            return adapter.validate_json(raw)
        except (ValidationError, ValueError) as exc:
            logger.warning("Discarding unparsable %s document: %s", key, exc)
            return default

    async def _write(self, key: str, value: bytes) -> bool:
        try:
            await self._kv.set(key, value)
        except Exception as exc:  # pylint: disable=broad-except
            logger.warning("Failed to persist %s: %s", key, exc)
            return False
        return True

    # ── Settings ───────────────────────────────────────────

    async def load_settings(self) -> Settings:
        raw = await self._read(SETTINGS_KEY)
        parsed: Any = None
        if raw:
            try:
                parsed = json.loads(raw)
            except ValueError as exc:
                logger.warning("Discarding unparsable settings document: %s", exc)
        return normalize_settings(parsed)

    async def save_settings(self, settings: Settings) -> bool:
        return await self._write(SETTINGS_KEY, settings.model_dump_json(by_alias=True).encode())

    # ── Price history ──────────────────────────────────────

    async def load_history(self) -> History:
        return await self._load(HISTORY_KEY, _HISTORY_ADAPTER, {})

    async def save_history(self, history: History) -> bool:
        return await self._write(HISTORY_KEY, _HISTORY_ADAPTER.dump_json(history, by_alias=True))

    async def prune_history(self, settings: Settings, now_ms: int) -> History:
        """Prune the persisted copy to tracked symbols and their windows."""
        history = prune_history_map(await self.load_history(), settings, now_ms)
        await self.save_history(history)
        return history

    # ── Alerts ─────────────────────────────────────────────

    async def load_alerts(self) -> list[AlertEvent]:
        return await self._load(ALERTS_KEY, _ALERTS_ADAPTER, [])

    async def save_alerts(self, alerts: list[AlertEvent]) -> bool:
        return await self._write(ALERTS_KEY, _ALERTS_ADAPTER.dump_json(alerts, by_alias=True))

    async def append_alerts(
        self, new_alerts: list[AlertEvent], settings: Settings, now_ms: int
    ) -> list[AlertEvent]:
        """Prepend new alerts to the latest persisted list, prune, and save."""
        merged = prune_alerts(
            [*reversed(new_alerts), *await self.load_alerts()],
            now_ms,
            settings.retention_days,
            settings.max_alerts,
        )
        await self.save_alerts(merged)
        return merged

    async def prune_alerts(self, settings: Settings, now_ms: int) -> list[AlertEvent]:
        alerts = prune_alerts(
            await self.load_alerts(), now_ms, settings.retention_days, settings.max_alerts
        )
        await self.save_alerts(alerts)
        return alerts

    # ── Last alert times ───────────────────────────────────

    async def load_last_alert_at(self) -> dict[str, int]:
        return await self._load(LAST_ALERT_AT_KEY, _LAST_ALERT_ADAPTER, {})

    async def save_last_alert_at(self, last_alert_at: dict[str, int]) -> bool:
        return await self._write(LAST_ALERT_AT_KEY, _LAST_ALERT_ADAPTER.dump_json(last_alert_at))

    async def restrict_to_symbols(self, settings: Settings, now_ms: int) -> None:
        """Drop state for symbols no longer tracked after a settings change."""
        history = await self.prune_history(settings, now_ms)
        tracked = set(settings.tracked_symbols(list(history)))
        last_alert_at = await self.load_last_alert_at()
        await self.save_last_alert_at({s: ts for s, ts in last_alert_at.items() if s in tracked})

    async def clear_alerts(self) -> bool:
        """Remove stored alerts and reset cooldown clocks."""
        cleared = await self.save_alerts([])
        return await self.save_last_alert_at({}) and cleared
