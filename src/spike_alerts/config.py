"""Process configuration read from the environment.

User-facing alert settings (symbols, thresholds, quiet hours) live in the
key-value store; see ``spike_alerts.settings``. This module only covers what a
process needs before it can reach that store.
"""
import logging
import os
from dataclasses import dataclass, field

_DEFAULT_DATABASE_URL = "sqlite:///spike_alerts.db"
_DEFAULT_REST_URL = "https://api.bybit.com"
_DEFAULT_STREAM_URL = "wss://stream.bybit.com/v5/public/spot"

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


@dataclass(frozen=True)
class AppConfig:
    """Environment-backed settings (reads env at instantiation)."""

    database_url: str = field(
        default_factory=lambda: os.getenv("SPIKE_ALERTS_DATABASE_URL", _DEFAULT_DATABASE_URL),
    )
    rest_url: str = field(
        default_factory=lambda: os.getenv("SPIKE_ALERTS_REST_URL", _DEFAULT_REST_URL),
    )
    stream_url: str = field(
        default_factory=lambda: os.getenv("SPIKE_ALERTS_STREAM_URL", _DEFAULT_STREAM_URL),
    )
    category: str = field(
        default_factory=lambda: os.getenv("SPIKE_ALERTS_CATEGORY", "spot"),
    )
    webhook_url: str = field(
        default_factory=lambda: os.getenv("SPIKE_ALERTS_WEBHOOK_URL", ""),
        repr=False,
    )
    log_level: str = field(
        default_factory=lambda: os.getenv("SPIKE_ALERTS_LOG_LEVEL", "INFO"),
    )
    http_timeout: float = field(
        default_factory=lambda: float(os.getenv("SPIKE_ALERTS_HTTP_TIMEOUT", "10")),
    )
    sql_echo: bool = field(
        default_factory=lambda: os.getenv("SQL_ECHO", "0") == "1",
    )


def configure_logging(level: str = "INFO") -> None:
    """Configure root logging once per process entry point."""
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format=LOG_FORMAT,
    )
    # websockets logs every frame at DEBUG; keep it out of the app's debug output
    logging.getLogger("websockets").setLevel(logging.WARNING)
