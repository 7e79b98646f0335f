"""User alert settings and their normalisation.

Settings are persisted as a camelCase JSON document. Anything read from storage
or accepted over the API goes through :func:`normalize_settings`, so the
detection pipeline can assume every value is present and within range.
"""
import math
import re
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any

from pydantic import ConfigDict, Field
from pydantic.alias_generators import to_camel

from spike_alerts.schemas import CamelModel, TransportMode
from spike_alerts.utils import MS_PER_MINUTE

DEFAULT_SYMBOLS = ("BTCUSDT", "ETHUSDT", "SOLUSDT")

# (min, max) accepted for each numeric field; out-of-range values are clamped
THRESHOLD_RANGE = (1.0, 25.0)
WINDOW_RANGE = (1, 30)
COOLDOWN_RANGE = (1, 60)
RETENTION_RANGE = (1, 30)
MAX_ALERTS_RANGE = (20, 500)
POLL_INTERVAL_RANGE = (10, 300)

_TIME_RE = re.compile(r"^([01]?\d|2[0-3]):([0-5]\d)$")


class SymbolRule(CamelModel):
    """Per-symbol override; unset fields fall back to the global value."""

    threshold_pct: float | None = None
    window_minutes: int | None = None
    cooldown_minutes: int | None = None


class QuietHours(CamelModel):
    """Daily range during which alerts are recorded but not pushed.

    ``start > end`` means the range spans midnight.
    """

    enabled: bool = False
    start_minute_of_day: int = 22 * 60
    end_minute_of_day: int = 7 * 60


@dataclass(frozen=True)
class EffectiveRule:
    """Resolved threshold/window/cooldown for one symbol."""

    threshold_pct: float
    window_minutes: int
    cooldown_minutes: int

    @property
    def window_ms(self) -> int:
        return self.window_minutes * MS_PER_MINUTE

    @property
    def cooldown_ms(self) -> int:
        return self.cooldown_minutes * MS_PER_MINUTE


class Settings(CamelModel):
    """Process-wide alert configuration, read-only to the pipeline."""

    model_config = ConfigDict(frozen=True)

    symbols: list[str] = Field(default_factory=lambda: list(DEFAULT_SYMBOLS))
    threshold_pct: float = 7.0
    window_minutes: int = 8
    cooldown_minutes: int = 4
    retention_days: int = 7
    max_alerts: int = 120
    poll_interval_sec: int = 60
    use_streaming: bool = True
    track_all_symbols: bool = False
    notifications_enabled: bool = True
    notification_sound: bool = True
    background_enabled: bool = False
    quiet_hours: QuietHours = Field(default_factory=QuietHours)
    symbol_rules: dict[str, SymbolRule] = Field(default_factory=dict)

    def rule_for(self, symbol: str) -> EffectiveRule:
        """Resolve the effective rule: override field if present, else global."""
        rule = self.symbol_rules.get(symbol)
        if rule is None:
            return EffectiveRule(self.threshold_pct, self.window_minutes, self.cooldown_minutes)
        return EffectiveRule(
            threshold_pct=(
                rule.threshold_pct if rule.threshold_pct is not None else self.threshold_pct
            ),
            window_minutes=(
                rule.window_minutes if rule.window_minutes is not None else self.window_minutes
            ),
            cooldown_minutes=(
                rule.cooldown_minutes
                if rule.cooldown_minutes is not None
                else self.cooldown_minutes
            ),
        )

    @property
    def streaming_enabled(self) -> bool:
        """Streaming and full-universe tracking are mutually exclusive."""
        return self.use_streaming and not self.track_all_symbols

    @property
    def transport_mode(self) -> TransportMode:
        return TransportMode.STREAMING if self.streaming_enabled else TransportMode.POLLING

    def tracked_symbols(self, known: list[str] | None = None) -> list[str]:
        """Symbols whose state is kept: configured ones, or every known one when tracking all."""
        if self.track_all_symbols:
            return list(known or [])
        return list(self.symbols)


# ---------------------------------------------------------------------------
# Normalisation
# ---------------------------------------------------------------------------


def _lookup(raw: Mapping[str, Any], name: str) -> Any:
    """Read a field by camelCase alias or snake_case name."""
    alias = to_camel(name)
    if alias in raw:
        return raw[alias]
    return raw.get(name)


def _to_number(value: Any) -> float | None:
    if isinstance(value, bool) or value is None:
        return None
    if isinstance(value, str):
        value = value.strip().replace(",", ".")
    try:
        number = float(value)
    except (TypeError, ValueError):
        return None
    return number if math.isfinite(number) else None


def clamp_number(value: Any, low: float, high: float, fallback: float) -> float:
    """Parse and clamp a number; unparsable input returns ``fallback``."""
    number = _to_number(value)
    if number is None:
        return fallback
    return min(max(number, low), high)


def clamp_integer(value: Any, low: int, high: int, fallback: int) -> int:
    return int(round(clamp_number(value, low, high, fallback)))


def parse_optional_number(value: Any, low: float, high: float) -> float | None:
    """Parse and clamp an optional override; unparsable input means "not set"."""
    number = _to_number(value)
    if number is None:
        return None
    return min(max(number, low), high)


def _to_bool(value: Any, fallback: bool) -> bool:
    return value if isinstance(value, bool) else fallback


def parse_symbols(value: Any) -> list[str]:
    """Parse a symbol list or comma-separated string into unique upper-case symbols."""
    if isinstance(value, str):
        parts = value.split(",")
    elif isinstance(value, (list, tuple, set)):
        parts = [p for p in value if isinstance(p, str)]
    else:
        return []
    symbols: list[str] = []
    for part in parts:
        symbol = part.strip().upper()
        if symbol and symbol not in symbols:
            symbols.append(symbol)
    return symbols


def parse_time_to_minutes(value: Any) -> int | None:
    """Parse ``HH:MM`` (or a minute-of-day int) to minutes since midnight."""
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value if 0 <= value < 24 * 60 else None
    if not isinstance(value, str):
        return None
    match = _TIME_RE.match(value.strip())
    if not match:
        return None
    return int(match.group(1)) * 60 + int(match.group(2))


def format_minutes(minutes: int) -> str:
    """Format minutes since midnight as ``HH:MM``."""
    return f"{minutes // 60:02d}:{minutes % 60:02d}"


def _normalize_quiet_hours(raw: Any) -> QuietHours:
    default = QuietHours()
    if not isinstance(raw, Mapping):
        return default
    # "start"/"end" accept the HH:MM form used by the settings API
    start_raw = _lookup(raw, "start_minute_of_day")
    end_raw = _lookup(raw, "end_minute_of_day")
    start = parse_time_to_minutes(start_raw if start_raw is not None else raw.get("start"))
    end = parse_time_to_minutes(end_raw if end_raw is not None else raw.get("end"))
    return QuietHours(
        enabled=_to_bool(raw.get("enabled"), default.enabled),
        start_minute_of_day=start if start is not None else default.start_minute_of_day,
        end_minute_of_day=end if end is not None else default.end_minute_of_day,
    )


def _normalize_symbol_rules(raw: Any) -> dict[str, SymbolRule]:
    if not isinstance(raw, Mapping):
        return {}
    rules: dict[str, SymbolRule] = {}
    for symbol, rule in raw.items():
        if not isinstance(symbol, str) or not isinstance(rule, Mapping):
            continue
        threshold = parse_optional_number(_lookup(rule, "threshold_pct"), *THRESHOLD_RANGE)
        window = parse_optional_number(_lookup(rule, "window_minutes"), *WINDOW_RANGE)
        cooldown = parse_optional_number(_lookup(rule, "cooldown_minutes"), *COOLDOWN_RANGE)
        if threshold is None and window is None and cooldown is None:
            continue
        rules[symbol.strip().upper()] = SymbolRule(
            threshold_pct=threshold,
            window_minutes=int(round(window)) if window is not None else None,
            cooldown_minutes=int(round(cooldown)) if cooldown is not None else None,
        )
    return rules


def normalize_settings(raw: Mapping[str, Any] | None) -> Settings:
    """Build valid settings from a partial, possibly malformed document.

    Missing or wrong-typed fields take their defaults, numbers are clamped to
    their allowed ranges, and full-universe tracking switches streaming off.
    """
    default = Settings()
    if not isinstance(raw, Mapping):
        return default

    symbols = parse_symbols(_lookup(raw, "symbols")) or list(default.symbols)
    track_all = _to_bool(_lookup(raw, "track_all_symbols"), default.track_all_symbols)
    use_streaming = _to_bool(_lookup(raw, "use_streaming"), default.use_streaming)

    return Settings(
        symbols=symbols,
        threshold_pct=clamp_number(
            _lookup(raw, "threshold_pct"), *THRESHOLD_RANGE, default.threshold_pct
        ),
        window_minutes=clamp_integer(
            _lookup(raw, "window_minutes"), *WINDOW_RANGE, default.window_minutes
        ),
        cooldown_minutes=clamp_integer(
            _lookup(raw, "cooldown_minutes"), *COOLDOWN_RANGE, default.cooldown_minutes
        ),
        retention_days=clamp_integer(
            _lookup(raw, "retention_days"), *RETENTION_RANGE, default.retention_days
        ),
        max_alerts=clamp_integer(
            _lookup(raw, "max_alerts"), *MAX_ALERTS_RANGE, default.max_alerts
        ),
        poll_interval_sec=clamp_integer(
            _lookup(raw, "poll_interval_sec"), *POLL_INTERVAL_RANGE, default.poll_interval_sec
        ),
        use_streaming=use_streaming and not track_all,
        track_all_symbols=track_all,
        notifications_enabled=_to_bool(
            _lookup(raw, "notifications_enabled"), default.notifications_enabled
        ),
        notification_sound=_to_bool(
            _lookup(raw, "notification_sound"), default.notification_sound
        ),
        background_enabled=_to_bool(
            _lookup(raw, "background_enabled"), default.background_enabled
        ),
        quiet_hours=_normalize_quiet_hours(_lookup(raw, "quiet_hours")),
        symbol_rules=_normalize_symbol_rules(_lookup(raw, "symbol_rules")),
    )
