"""Status indicator route."""
from fastapi import APIRouter

from spike_alerts.deps import Runner
from spike_alerts.schemas import EngineStatus

router = APIRouter(prefix="/status", tags=["status"])


@router.get("", response_model=EngineStatus)
async def get_status(runner: Runner) -> EngineStatus:
    """Transport mode, connection state, last error and counters."""
    return runner.status()
