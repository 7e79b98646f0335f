"""User settings routes.

Updates are normalised (clamped, defaulted) before they are stored, and every
update restarts the foreground loop with the new snapshot.
"""
import logging
from typing import Any

from fastapi import APIRouter, Body

from spike_alerts.deps import Runner
from spike_alerts.settings import Settings

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/settings", tags=["settings"])


@router.get("", response_model=Settings, response_model_by_alias=True)
async def get_settings(runner: Runner) -> Settings:
    return runner.settings


@router.put("", response_model=Settings, response_model_by_alias=True)
async def update_settings(runner: Runner, raw: dict[str, Any] = Body(...)) -> Settings:
    """Replace the settings document; missing fields take their defaults."""
    settings = await runner.apply_settings(raw)
    logger.info("Settings updated: %d symbols, mode %s", len(settings.symbols), settings.transport_mode.value)
    return settings


@router.post("/reload", response_model=Settings, response_model_by_alias=True)
async def reload_settings(runner: Runner) -> Settings:
    """Restart with the settings currently in the store (e.g. after ``spike-alerts-cli settings set``)."""
    return await runner.reload()
