"""Detection engine: window store, change detector, alert gate and the shared pipeline."""
from spike_alerts.engine.detector import Change, compute_change
from spike_alerts.engine.gate import AlertGate, is_within_quiet_hours, should_notify
from spike_alerts.engine.pipeline import PipelineResult, TickOutcome, apply_ticks, reconcile
from spike_alerts.engine.window import History, WindowStore, prune_history_map

__all__ = [
    "AlertGate",
    "Change",
    "History",
    "PipelineResult",
    "TickOutcome",
    "WindowStore",
    "apply_ticks",
    "compute_change",
    "is_within_quiet_hours",
    "prune_history_map",
    "reconcile",
    "should_notify",
]
