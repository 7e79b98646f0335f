"""Shared polling loop for pull-based tick delivery."""
import asyncio
from collections.abc import AsyncIterator, Awaitable, Callable

from spike_alerts.schemas import Tick


async def poll_ticks(
    fetch: Callable[[], Awaitable[list[Tick]]],
    poll_interval_seconds: float,
    *,
    stop_event: asyncio.Event,
    should_skip: Callable[[], bool] | None = None,
) -> AsyncIterator[list[Tick]]:
    """Fetch immediately, then every interval, yielding each non-empty batch.

    Args:
        fetch: Async callable returning this cycle's ticks. Must not raise;
            failures are expected to come back as an empty list.
        poll_interval_seconds: Seconds to wait between poll rounds.
        stop_event: When set, the loop exits (the wait is interruptible).
        should_skip: Optional predicate; a cycle is skipped while it returns True
            (e.g. while the push stream is live).
    """
    while not stop_event.is_set():
        if should_skip is None or not should_skip():
            ticks = await fetch()
            if ticks:
                yield ticks
        try:
            await asyncio.wait_for(stop_event.wait(), timeout=poll_interval_seconds)
        except asyncio.TimeoutError:
            continue
