"""Manual trigger for the background entry point."""
from fastapi import APIRouter

from spike_alerts.deps import Runner
from spike_alerts.schemas import RunResult
from spike_alerts.services import minimum_interval_seconds

router = APIRouter(prefix="/background", tags=["background"])


@router.post("/run")
async def run_background(runner: Runner) -> dict[str, str]:
    """Run one background cycle in-process (same code path as ``spike-alerts-run-once``)."""
    result: RunResult = await runner.run_background_once()
    return {"result": result.value}


@router.get("/interval")
async def background_interval(runner: Runner) -> dict[str, int]:
    """Interval, in seconds, to register with the OS scheduler."""
    return {"seconds": minimum_interval_seconds(runner.settings)}
