"""Notification formatting and dispatch."""
import json

import httpx
from conftest import NIGHT, NOON, T0, RecordingDispatcher, make_settings

from spike_alerts.schemas import AlertEvent
from spike_alerts.services import (WebhookDispatcher, dispatch_alerts,
                                   format_alert_notification)
from spike_alerts.utils import format_price


class TestFormatting:
    def test_spike(self):
        alert = AlertEvent.create("BTCUSDT", 8.0, 108.0, T0)
        assert format_alert_notification(alert) == ("BTCUSDT Spike", "+8.00% to $108.000")

    def test_drop(self):
        alert = AlertEvent.create("ETHUSDT", -7.5, 1850.0, T0)
        assert format_alert_notification(alert) == ("ETHUSDT Drop", "-7.50% to $1850.00")

    def test_price_precision_scales(self):
        assert format_price(64250.123) == "64250.12"
        assert format_price(150.5) == "150.500"
        assert format_price(0.1234567) == "0.123457"
        assert format_price(float("nan")) == "--"


class TestDispatch:
    ALERTS = [AlertEvent.create("BTCUSDT", 8.0, 108.0, T0), AlertEvent.create("SOLUSDT", -9.0, 45.5, T0)]

    async def test_delivers_one_per_alert(self):
        dispatcher = RecordingDispatcher()
        delivered = await dispatch_alerts(dispatcher, make_settings(notificationSound=False), self.ALERTS, NOON)
        assert delivered == 2
        assert dispatcher.delivered[1] == ("SOLUSDT Drop", "-9.00% to $45.5000", False)

    async def test_quiet_hours_suppress(self):
        dispatcher = RecordingDispatcher()
        settings = make_settings(quietHours={"enabled": True, "start": "22:00", "end": "07:00"})
        assert await dispatch_alerts(dispatcher, settings, self.ALERTS, NIGHT) == 0
        assert dispatcher.delivered == []

    async def test_disabled_notifications_suppress(self):
        dispatcher = RecordingDispatcher()
        assert await dispatch_alerts(dispatcher, make_settings(notificationsEnabled=False), self.ALERTS, NOON) == 0

    async def test_failures_are_swallowed(self):
        assert await dispatch_alerts(RecordingDispatcher(fail=True), make_settings(), self.ALERTS, NOON) == 0


class TestWebhookDispatcher:
    async def test_posts_json(self):
        requests: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            requests.append(request)
            return httpx.Response(204)

        client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
        dispatcher = WebhookDispatcher("https://hooks.test/alerts", client=client)
        await dispatcher.deliver("BTCUSDT Spike", "+8.00% to $108.000", True)
        await client.aclose()
        assert requests[0].method == "POST"
        assert json.loads(requests[0].content) == {
            "title": "BTCUSDT Spike",
            "body": "+8.00% to $108.000",
            "sound": True,
        }
