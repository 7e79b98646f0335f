"""Windowed percentage change against the oldest retained price."""
from collections.abc import Sequence
from dataclasses import dataclass

from spike_alerts.schemas import Direction, PricePoint

# |change| below this is reported as flat
FLAT_EPSILON_PCT = 0.01


@dataclass(frozen=True)
class Change:
    change_pct: float
    direction: Direction


def compute_change(history: Sequence[PricePoint], latest_price: float) -> Change:
    """Compare ``latest_price`` to the baseline (oldest point in the window).

    An empty history uses the latest price as its own baseline, so a first tick
    never triggers. A zero baseline yields zero change.
    """
    baseline = history[0].price if history else latest_price
    change_pct = (latest_price - baseline) / baseline * 100 if baseline else 0.0
    if abs(change_pct) < FLAT_EPSILON_PCT:
        direction = Direction.FLAT
    elif change_pct > 0:
        direction = Direction.UP
    else:
        direction = Direction.DOWN
    return Change(change_pct=change_pct, direction=direction)
