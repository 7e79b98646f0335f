"""Live quote routes backed by the foreground runner."""
import asyncio
import logging
from typing import Any

from fastapi import APIRouter, HTTPException, WebSocket, WebSocketDisconnect

from spike_alerts.deps import Runner, RunnerWs, Store
from spike_alerts.schemas import PricePoint, Quote

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/quotes", tags=["quotes"])


def parse_symbols_param(query_params: Any) -> set[str]:
    """Parse the comma-separated 'symbols' query param into upper-cased symbols."""
    raw = (query_params.get("symbols") or "").strip()
    return {s.strip().upper() for s in raw.split(",") if s.strip()}


@router.get("", response_model=dict[str, Quote])
async def list_quotes(runner: Runner) -> dict[str, Quote]:
    """Latest quote per symbol seen since the server started."""
    return runner.quotes


@router.get("/{symbol}", response_model=Quote)
async def get_quote(symbol: str, runner: Runner) -> Quote:
    quote = runner.quotes.get(symbol.upper())
    if quote is None:
        raise HTTPException(status_code=404, detail=f"No quote for '{symbol.upper()}' yet")
    return quote


@router.get("/{symbol}/history", response_model=list[PricePoint])
async def get_quote_history(symbol: str, store: Store) -> list[PricePoint]:
    """Retained window points for a symbol, oldest first."""
    history = await store.load_history()
    return history.get(symbol.upper(), [])


async def _watch_disconnect(websocket: WebSocket, stop_event: asyncio.Event) -> None:
    """Drain client messages until the client goes away."""
    try:
        while True:
            await websocket.receive_text()
    except WebSocketDisconnect:
        logger.debug("Quote stream client disconnected")
    finally:
        stop_event.set()


@router.websocket("/stream")
async def stream_quotes(websocket: WebSocket, runner: RunnerWs) -> None:
    """Push every quote update as JSON; ``?symbols=BTCUSDT,ETHUSDT`` filters.

    Each connection gets its own queue and stop_event, so one client
    disconnecting does not affect the others.
    """
    await websocket.accept()
    wanted = parse_symbols_param(websocket.query_params)
    queue = runner.subscribe()
    stop_event = asyncio.Event()
    watcher = asyncio.create_task(_watch_disconnect(websocket, stop_event))
    stopped = asyncio.create_task(stop_event.wait())
    try:
        for quote in runner.quotes.values():
            if not wanted or quote.symbol in wanted:
                await websocket.send_json(quote.model_dump(mode="json", by_alias=True))
        while not stop_event.is_set():
            getter = asyncio.create_task(queue.get())
            done, _ = await asyncio.wait({getter, stopped}, return_when=asyncio.FIRST_COMPLETED)
            if getter not in done:
                getter.cancel()
                break
            quote = getter.result()
            if wanted and quote.symbol not in wanted:
                continue
            await websocket.send_json(quote.model_dump(mode="json", by_alias=True))
    except WebSocketDisconnect:
        logger.debug("Quote stream client disconnected")
    finally:
        runner.unsubscribe(queue)
        for task in (watcher, stopped):
            task.cancel()
        await asyncio.gather(watcher, stopped, return_exceptions=True)
