"""API routers.

Includes routes for:
- /quotes - Latest quotes, window history and the /quotes/stream WebSocket
- /alerts - Stored alerts
- /status - Transport and pipeline status
- /settings - User settings
- /background - In-process background run
"""
from spike_alerts.routers.alerts import router as alerts_router
from spike_alerts.routers.background import router as background_router
from spike_alerts.routers.quotes import router as quotes_router
from spike_alerts.routers.settings import router as settings_router
from spike_alerts.routers.status import router as status_router

__all__ = [
    "alerts_router",
    "background_router",
    "quotes_router",
    "settings_router",
    "status_router",
]
