"""Stored alert routes."""
from fastapi import APIRouter, Query

from spike_alerts.deps import Runner, Store
from spike_alerts.schemas import AlertEvent

router = APIRouter(prefix="/alerts", tags=["alerts"])


@router.get("", response_model=list[AlertEvent])
async def list_alerts(
    store: Store,
    symbol: str | None = Query(default=None, description="Only alerts for this symbol"),
    limit: int | None = Query(default=None, ge=1, le=500, description="Max alerts to return"),
) -> list[AlertEvent]:
    """Stored alerts, newest first."""
    alerts = await store.load_alerts()
    alerts.sort(key=lambda a: a.ts, reverse=True)
    if symbol:
        alerts = [a for a in alerts if a.symbol == symbol.upper()]
    return alerts[:limit] if limit else alerts


@router.delete("")
async def clear_alerts(runner: Runner) -> dict[str, bool]:
    """Remove all stored alerts and reset cooldowns."""
    return {"cleared": await runner.clear_alerts()}
