"""Shared utilities for spike alerts."""
import math
import time
from datetime import datetime

MS_PER_MINUTE = 60_000
MS_PER_DAY = 24 * 60 * MS_PER_MINUTE


def now_ms() -> int:
    """Current wall-clock time as epoch milliseconds."""
    return int(time.time() * 1000)


def ms_to_datetime(ts: int) -> datetime:
    """Convert epoch milliseconds to a local naive datetime."""
    return datetime.fromtimestamp(ts / 1000)


def format_price(price: float | None) -> str:
    """Format a price with precision scaled to its magnitude."""
    if price is None or not math.isfinite(price):
        return "--"
    if price >= 1000:
        return f"{price:.2f}"
    if price >= 100:
        return f"{price:.3f}"
    if price >= 1:
        return f"{price:.4f}"
    return f"{price:.6f}"
