"""Execution contexts built on the shared pipeline.

- ``ForegroundRunner``: long-lived loop hosted by the API server.
- ``run_once``: single background invocation for OS schedulers.
"""
from spike_alerts.services.background import minimum_interval_seconds, run_once
from spike_alerts.services.context import EngineContext, create_context
from spike_alerts.services.foreground import ForegroundRunner
from spike_alerts.services.notifications import (LoggingDispatcher,
                                                 NotificationDispatcher,
                                                 WebhookDispatcher,
                                                 dispatch_alerts,
                                                 format_alert_notification)

__all__ = [
    "EngineContext",
    "ForegroundRunner",
    "LoggingDispatcher",
    "NotificationDispatcher",
    "WebhookDispatcher",
    "create_context",
    "dispatch_alerts",
    "format_alert_notification",
    "minimum_interval_seconds",
    "run_once",
]
