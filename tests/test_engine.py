"""Window store, change detector and alert gate."""
from datetime import datetime

import pytest
from conftest import MIN, T0, make_settings

from spike_alerts.engine import (AlertGate, WindowStore, compute_change,
                                 is_within_quiet_hours, prune_history_map,
                                 should_notify)
from spike_alerts.engine.window import insert_point
from spike_alerts.schemas import Direction, PricePoint
from spike_alerts.settings import QuietHours


def pp(ts: int, price: float) -> PricePoint:
    return PricePoint(ts=ts, price=price)


class TestWindowStore:
    def test_points_stay_sorted_for_out_of_order_ticks(self):
        window = WindowStore(make_settings())
        window.append("BTCUSDT", pp(T0 + 2 * MIN, 102), now_ms=T0 + 2 * MIN)
        window.append("BTCUSDT", pp(T0, 100), now_ms=T0 + 2 * MIN)
        window.append("BTCUSDT", pp(T0 + MIN, 101), now_ms=T0 + 2 * MIN)
        assert [p.ts for p in window.points("BTCUSDT")] == [T0, T0 + MIN, T0 + 2 * MIN]

    def test_equal_timestamps_keep_arrival_order(self):
        points = insert_point([pp(T0, 1), pp(T0 + MIN, 2)], pp(T0, 3))
        assert [p.price for p in points] == [1, 3, 2]

    def test_points_older_than_window_are_pruned(self):
        window = WindowStore(make_settings(windowMinutes=8))
        window.append("BTCUSDT", pp(T0, 100))
        window.append("BTCUSDT", pp(T0 + 8 * MIN, 101))
        assert len(window.points("BTCUSDT")) == 2  # exactly at the cutoff is kept
        retained = window.append("BTCUSDT", pp(T0 + 8 * MIN + 1, 102))
        assert [p.price for p in retained] == [101, 102]

    def test_override_window_applies_per_symbol(self):
        settings = make_settings(windowMinutes=8, symbolRules={"ETHUSDT": {"windowMinutes": 2}})
        window = WindowStore(settings)
        for symbol in ("BTCUSDT", "ETHUSDT"):
            window.append(symbol, pp(T0, 100))
            window.append(symbol, pp(T0 + 5 * MIN, 100))
        assert len(window.points("BTCUSDT")) == 2
        assert len(window.points("ETHUSDT")) == 1

    def test_pruning_is_idempotent(self):
        window = WindowStore(make_settings(windowMinutes=5))
        for i in range(10):
            window.append("BTCUSDT", pp(T0 + i * MIN, 100 + i), now_ms=T0)
        once = window.prune("BTCUSDT", T0 + 9 * MIN)
        assert window.prune("BTCUSDT", T0 + 9 * MIN) == once

    def test_prune_all_ages_out_idle_symbols(self):
        window = WindowStore(make_settings(), {"BTCUSDT": [pp(T0, 100)]})
        window.prune_all(T0 + 9 * MIN)
        assert window.snapshot() == {"BTCUSDT": []}

    def test_window_never_holds_points_older_than_window(self):
        window = WindowStore(make_settings(windowMinutes=3))
        for i in range(50):
            now = T0 + i * 20_000
            retained = window.append("BTCUSDT", pp(now, 100 + i))
            assert all(p.ts >= now - 3 * MIN for p in retained)

    def test_prune_history_map_restricts_to_tracked_symbols(self):
        history = {"BTCUSDT": [pp(T0, 1)], "DOGEUSDT": [pp(T0, 1)]}
        pruned = prune_history_map(history, make_settings(symbols=["BTCUSDT"]), T0)
        assert list(pruned) == ["BTCUSDT"]
        everything = prune_history_map(history, make_settings(trackAllSymbols=True), T0)
        assert set(everything) == {"BTCUSDT", "DOGEUSDT"}


class TestChangeDetector:
    def test_change_against_oldest_point(self):
        change = compute_change([pp(T0, 100), pp(T0 + MIN, 104)], 108)
        assert change.change_pct == pytest.approx(8.0)
        assert change.direction is Direction.UP

    def test_empty_history_is_flat(self):
        change = compute_change([], 123.0)
        assert change.change_pct == 0
        assert change.direction is Direction.FLAT

    def test_zero_baseline_yields_zero_change(self):
        assert compute_change([pp(T0, 0)], 10).change_pct == 0

    def test_tiny_moves_are_flat(self):
        assert compute_change([pp(T0, 100)], 100.005).direction is Direction.FLAT
        assert compute_change([pp(T0, 100)], 99.9).direction is Direction.DOWN


class TestAlertGate:
    def test_below_threshold_does_not_alert(self):
        gate = AlertGate(make_settings(thresholdPct=7))
        assert gate.evaluate("BTCUSDT", 6.99, 106.99, T0) is None
        assert gate.last_alert_at == {}

    def test_threshold_is_inclusive_and_symmetric(self):
        gate = AlertGate(make_settings(thresholdPct=7))
        alert = gate.evaluate("BTCUSDT", -7.0, 93.0, T0)
        assert alert is not None
        assert alert.id == f"BTCUSDT-{T0}"
        assert gate.last_alert_at == {"BTCUSDT": T0}

    def test_cooldown_boundary(self):
        gate = AlertGate(make_settings(cooldownMinutes=4))
        assert gate.evaluate("BTCUSDT", 8, 108, T0) is not None
        assert gate.evaluate("BTCUSDT", 9, 109, T0 + 4 * MIN - 1) is None
        assert gate.evaluate("BTCUSDT", 9, 109, T0 + 4 * MIN) is not None

    def test_cooldown_plus_one_ms_yields_two_alerts(self):
        gate = AlertGate(make_settings(cooldownMinutes=4))
        alerts = [gate.evaluate("BTCUSDT", 8, 108, ts) for ts in (T0, T0 + 4 * MIN + 1)]
        assert all(a is not None for a in alerts)

    def test_suppressed_crossings_do_not_extend_cooldown(self):
        gate = AlertGate(make_settings(cooldownMinutes=4))
        gate.evaluate("BTCUSDT", 8, 108, T0)
        gate.evaluate("BTCUSDT", 8, 108, T0 + MIN)
        assert gate.last_alert_at["BTCUSDT"] == T0

    def test_spike_and_drop_share_one_cooldown(self):
        gate = AlertGate(make_settings())
        assert gate.evaluate("BTCUSDT", 8, 108, T0) is not None
        assert gate.evaluate("BTCUSDT", -8, 92, T0 + MIN) is None

    def test_cooldown_is_per_symbol(self):
        gate = AlertGate(make_settings())
        assert gate.evaluate("BTCUSDT", 8, 108, T0) is not None
        assert gate.evaluate("ETHUSDT", 8, 2160, T0) is not None

    def test_override_threshold_and_cooldown(self):
        settings = make_settings(symbolRules={"BTCUSDT": {"thresholdPct": 2, "cooldownMinutes": 1}})
        gate = AlertGate(settings, {"BTCUSDT": T0})
        assert gate.evaluate("BTCUSDT", 2.5, 102.5, T0 + MIN) is not None
        assert gate.evaluate("ETHUSDT", 2.5, 2050, T0 + MIN) is None

    def test_alerts_never_closer_than_cooldown(self):
        gate = AlertGate(make_settings(cooldownMinutes=4))
        emitted = [
            a.ts
            for i in range(200)
            if (a := gate.evaluate("BTCUSDT", 10, 110, T0 + i * 15_000)) is not None
        ]
        assert len(emitted) > 1
        assert all(b - a >= 4 * MIN for a, b in zip(emitted, emitted[1:]))


class TestQuietHours:
    WRAPPING = QuietHours(enabled=True, start_minute_of_day=22 * 60, end_minute_of_day=7 * 60)

    @pytest.mark.parametrize(
        "hour, minute, quiet",
        [(22, 0, True), (23, 30, True), (3, 0, True), (23, 59, True), (0, 0, True), (6, 59, True), (7, 0, False), (12, 0, False), (21, 59, False)],
    )
    def test_range_wrapping_midnight(self, hour, minute, quiet):
        assert is_within_quiet_hours(self.WRAPPING, datetime(2024, 1, 1, hour, minute)) is quiet

    def test_same_day_range(self):
        quiet = QuietHours(enabled=True, start_minute_of_day=9 * 60, end_minute_of_day=17 * 60)
        assert is_within_quiet_hours(quiet, datetime(2024, 1, 1, 9, 0))
        assert not is_within_quiet_hours(quiet, datetime(2024, 1, 1, 17, 0))

    def test_disabled_or_empty_range_is_never_quiet(self):
        assert not is_within_quiet_hours(QuietHours(), datetime(2024, 1, 1, 23, 0))
        empty = QuietHours(enabled=True, start_minute_of_day=60, end_minute_of_day=60)
        assert not is_within_quiet_hours(empty, datetime(2024, 1, 1, 1, 0))

    def test_should_notify(self):
        night = datetime(2024, 1, 1, 23, 0)
        assert should_notify(make_settings(), night)
        assert not should_notify(make_settings(quietHours={"enabled": True}), night)
        assert not should_notify(make_settings(notificationsEnabled=False), datetime(2024, 1, 1, 12, 0))
