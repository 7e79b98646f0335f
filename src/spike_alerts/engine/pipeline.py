"""The single reconciling pipeline shared by the foreground loop and background runs.

Both execution contexts call :func:`reconcile`; they differ only in how ticks
are obtained and how long they live, never in decision logic.
"""
from __future__ import annotations

import logging
from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from spike_alerts.engine.detector import compute_change
from spike_alerts.engine.gate import AlertGate
from spike_alerts.engine.window import History, WindowStore, prune_history_map
from spike_alerts.schemas import AlertEvent, PricePoint, Quote, Tick
from spike_alerts.settings import Settings

if TYPE_CHECKING:
    from spike_alerts.db.state_store import StateStore

logger = logging.getLogger(__name__)


@dataclass
class TickOutcome:
    """In-memory result of applying a batch of ticks."""

    history: History
    last_alert_at: dict[str, int]
    quotes: dict[str, Quote] = field(default_factory=dict)
    new_alerts: list[AlertEvent] = field(default_factory=list)


@dataclass
class PipelineResult:
    """What one reconcile cycle produced and whether it was durably saved."""

    quotes: dict[str, Quote]
    new_alerts: list[AlertEvent]
    history: History
    alerts: list[AlertEvent]
    persisted: bool


def apply_ticks(
    settings: Settings,
    history: History,
    last_alert_at: Mapping[str, int],
    ticks: Sequence[Tick],
) -> TickOutcome:
    """Append, prune, detect and gate each tick in order. Pure; no I/O.

    Each tick's own timestamp is the "now" for its window and cooldown, so a
    replayed batch always yields the same result.
    """
    window = WindowStore(settings, history)
    gate = AlertGate(settings, last_alert_at)
    quotes: dict[str, Quote] = {}
    new_alerts: list[AlertEvent] = []

    for tick in ticks:
        points = window.append(tick.symbol, PricePoint(ts=tick.ts, price=tick.price))
        change = compute_change(points, tick.price)
        quotes[tick.symbol] = Quote(
            symbol=tick.symbol,
            price=tick.price,
            change_pct=change.change_pct,
            direction=change.direction,
            last_updated=tick.ts,
        )
        alert = gate.evaluate(tick.symbol, change.change_pct, tick.price, tick.ts)
        if alert is not None:
            logger.info(
                "Alert %s %+.2f%% at %s", alert.symbol, alert.change_pct, alert.price
            )
            new_alerts.append(alert)

    return TickOutcome(
        history=window.snapshot(),
        last_alert_at=gate.last_alert_at,
        quotes=quotes,
        new_alerts=new_alerts,
    )


async def reconcile(
    store: StateStore,
    settings: Settings,
    ticks: Sequence[Tick],
    now_ms: int,
) -> PipelineResult:
    """Load the latest persisted state, apply ticks, and persist whole snapshots.

    State is always reloaded from the store so a write is never based on a copy
    older than the current cycle.
    """
    if not settings.track_all_symbols:
        configured = set(settings.symbols)
        ticks = [t for t in ticks if t.symbol in configured]

    history = await store.load_history()
    last_alert_at = await store.load_last_alert_at()

    outcome = apply_ticks(settings, history, last_alert_at, ticks)
    pruned = prune_history_map(outcome.history, settings, now_ms)
    new_alerts = outcome.new_alerts

    persisted = await store.save_history(pruned)
    if new_alerts:
        alerts = await store.append_alerts(new_alerts, settings, now_ms)
    else:
        alerts = await store.load_alerts()
    persisted = await store.save_last_alert_at(outcome.last_alert_at) and persisted

    logger.debug(
        "Reconciled %d ticks: %d quotes, %d new alerts", len(ticks), len(outcome.quotes), len(new_alerts)
    )
    return PipelineResult(
        quotes=outcome.quotes,
        new_alerts=new_alerts,
        history=pruned,
        alerts=alerts,
        persisted=persisted,
    )
