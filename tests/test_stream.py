"""Stream connection state machine against an in-process fake socket."""
import asyncio
import warnings
from pathlib import Path

import websockets
from conftest import T0, FakeConnector, FakeSocket, until

from spike_alerts.providers.bybit import StreamConnection, stream as stream_module
from spike_alerts.providers.core import ReconnectBackoff
from spike_alerts.schemas import ConnectionStatus, Tick

URL = "wss://stream.test/v5/public/spot"


def make_stream(connector: FakeConnector, received: list[Tick], **kwargs) -> StreamConnection:
    kwargs.setdefault("ping_interval", 60.0)
    kwargs.setdefault("pong_timeout", 60.0)
    return StreamConnection(
        URL,
        ["BTCUSDT", "ETHUSDT"],
        received.extend,
        connect=connector,
        backoff=ReconnectBackoff(base_delay=0.01, max_delay=0.04),
        clock=lambda: T0,
        **kwargs,
    )


class TestStreamConnection:
    async def test_subscribes_every_symbol_on_open(self):
        socket = FakeSocket()
        stream = make_stream(FakeConnector(socket), [])
        stream.start()
        await until(lambda: len(socket.sent) == 2)
        assert stream.status is ConnectionStatus.CONNECTED
        assert socket.sent == [
            {"op": "subscribe", "args": ["tickers.BTCUSDT"]},
            {"op": "subscribe", "args": ["tickers.ETHUSDT"]},
        ]
        await stream.stop()

    async def test_forwards_ticks_and_drops_malformed_frames(self):
        socket = FakeSocket()
        received: list[Tick] = []
        stream = make_stream(FakeConnector(socket), received)
        stream.start()
        socket.feed("garbage")
        socket.feed({"topic": "tickers.BTCUSDT", "data": {"symbol": "BTCUSDT", "lastPrice": "100"}})
        await until(lambda: received)
        assert received == [Tick(symbol="BTCUSDT", price=100.0, ts=T0)]
        assert stream.status is ConnectionStatus.CONNECTED
        await stream.stop()

    async def test_answers_server_ping(self):
        socket = FakeSocket()
        stream = make_stream(FakeConnector(socket), [])
        stream.start()
        socket.feed({"op": "ping"})
        await until(lambda: socket.sent_ops("pong"))
        await stream.stop()

    async def test_missing_pong_resets_the_connection(self):
        silent, second = FakeSocket(), FakeSocket()
        connector = FakeConnector(silent, second)
        stream = make_stream(connector, [], ping_interval=0.01, pong_timeout=0.02)
        stream.start()
        await until(lambda: silent.closed)
        assert silent.sent_ops("ping")
        await until(lambda: len(second.sent_ops("subscribe")) == 2)
        assert connector.urls[:2] == [URL, URL]
        await stream.stop()

    async def test_pong_keeps_the_connection_alive(self):
        socket = FakeSocket()
        connector = FakeConnector(socket)
        stream = make_stream(connector, [], ping_interval=0.01, pong_timeout=0.2)

        async def answer_pings() -> None:
            answered = 0
            while True:
                pings = len(socket.sent_ops("ping"))
                if pings > answered:
                    socket.feed({"op": "ping", "ret_msg": "pong", "success": True})
                    answered = pings
                await asyncio.sleep(0.002)

        responder = asyncio.create_task(answer_pings())
        stream.start()
        await until(lambda: len(socket.sent_ops("ping")) >= 3)
        assert not socket.closed
        assert connector.urls == [URL]
        responder.cancel()
        await stream.stop()

    async def test_server_close_reconnects_and_resubscribes(self):
        first, second = FakeSocket(), FakeSocket()
        connector = FakeConnector(first, second)
        stream = make_stream(connector, [])
        stream.start()
        await until(lambda: len(first.sent) == 2)
        first.server_close()
        await until(lambda: len(second.sent_ops("subscribe")) == 2)
        assert stream.status is ConnectionStatus.CONNECTED
        assert stream.backoff.attempt == 0
        await stream.stop()

    async def test_connect_failures_back_off_then_recover(self):
        socket = FakeSocket()
        connector = FakeConnector(socket, failures=3)
        stream = make_stream(connector, [])
        stream.start()
        await until(lambda: stream.status is ConnectionStatus.CONNECTED)
        assert len(connector.urls) == 4
        assert stream.backoff.attempt == 0
        await stream.stop()

    async def test_reconnecting_status_while_down(self):
        stream = make_stream(FakeConnector(failures=1000), [])
        stream.start()
        await until(lambda: stream.backoff.attempt >= 2)
        assert stream.status is ConnectionStatus.RECONNECTING
        assert stream.last_error == "Ticker stream unreachable"
        await stream.stop()

    async def test_stop_cancels_everything_and_closes_socket(self):
        socket = FakeSocket()
        connector = FakeConnector(socket, FakeSocket())
        stream = make_stream(connector, [], ping_interval=0.01, pong_timeout=5.0)
        stream.start()
        await until(lambda: stream.status is ConnectionStatus.CONNECTED)
        await stream.stop()
        assert socket.closed
        assert stream.status is ConnectionStatus.DISCONNECTED
        assert not stream.is_running
        await asyncio.sleep(0.05)
        assert len(connector.urls) == 1  # no reconnect after a manual stop


class TestStreamModule:
    def test_source_compiles_without_warnings(self):
        path = Path(stream_module.__file__)
        with warnings.catch_warnings():
            warnings.simplefilter("error")
            compile(path.read_text(), str(path), "exec")

    def test_websocket_errors_count_as_connection_errors(self):
        assert websockets.WebSocketException in stream_module._CONNECTION_ERRORS
        assert issubclass(websockets.ConnectionClosed, stream_module._CONNECTION_ERRORS)
