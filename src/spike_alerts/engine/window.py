"""Per-symbol price windows bounded by the symbol's effective time window."""
from bisect import insort
from collections.abc import Iterable

from spike_alerts.schemas import PricePoint
from spike_alerts.settings import Settings

History = dict[str, list[PricePoint]]


def insert_point(points: list[PricePoint], point: PricePoint) -> list[PricePoint]:
    """Return a new list with ``point`` inserted in ascending timestamp order.

    Equal timestamps keep arrival order, so a duplicate lands after its twin.
    """
    updated = list(points)
    if not updated or updated[-1].ts <= point.ts:
        updated.append(point)
    else:
        insort(updated, point, key=lambda p: p.ts)
    return updated


def prune_points(points: Iterable[PricePoint], now_ms: int, window_minutes: int) -> list[PricePoint]:
    """Drop every point older than ``now - window``."""
    cutoff = now_ms - window_minutes * 60_000
    return [p for p in points if p.ts >= cutoff]


class WindowStore:
    """Ordered price points per symbol, pruned with override-aware windows."""

    def __init__(self, settings: Settings, history: History | None = None) -> None:
        self._settings = settings
        self._history: History = {s: list(pts) for s, pts in (history or {}).items()}

    def append(self, symbol: str, point: PricePoint, now_ms: int | None = None) -> list[PricePoint]:
        """Insert a point then prune the symbol's window; returns the retained points."""
        self._history[symbol] = insert_point(self._history.get(symbol, []), point)
        return self.prune(symbol, point.ts if now_ms is None else now_ms)

    def prune(self, symbol: str, now_ms: int) -> list[PricePoint]:
        window = self._settings.rule_for(symbol).window_minutes
        pruned = prune_points(self._history.get(symbol, []), now_ms, window)
        self._history[symbol] = pruned
        return pruned

    def prune_all(self, now_ms: int) -> None:
        """Age out stale points for every symbol, including ones with no new ticks."""
        for symbol in list(self._history):
            self.prune(symbol, now_ms)

    def points(self, symbol: str) -> list[PricePoint]:
        return list(self._history.get(symbol, []))

    def snapshot(self) -> History:
        return {s: list(pts) for s, pts in self._history.items()}


def prune_history_map(history: History, settings: Settings, now_ms: int) -> History:
    """Restrict history to tracked symbols, each pruned to its effective window."""
    pruned: History = {}
    for symbol in settings.tracked_symbols(list(history)):
        window = settings.rule_for(symbol).window_minutes
        pruned[symbol] = prune_points(history.get(symbol, []), now_ms, window)
    return pruned
