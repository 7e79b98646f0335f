"""FastAPI dependency injection: app.state holds the runner; Depends() resolves it.

The lifespan (main.py) creates one EngineContext and one ForegroundRunner and
attaches them to app.state; these getters are used by Depends().
"""
from typing import Annotated

from fastapi import Depends, Request, WebSocket

from spike_alerts.db import StateStore
from spike_alerts.services import EngineContext, ForegroundRunner


def get_context(request: Request) -> EngineContext:
    """Resolve the process EngineContext from app.state (created at startup)."""
    return request.app.state.context


def get_runner(request: Request) -> ForegroundRunner:
    """Resolve the ForegroundRunner from app.state."""
    return request.app.state.runner


def get_runner_ws(websocket: WebSocket) -> ForegroundRunner:
    """Resolve the ForegroundRunner for WebSocket routes."""
    return websocket.scope["app"].state.runner


def get_state_store(request: Request) -> StateStore:
    return request.app.state.context.store


# Type aliases for route injection
Context = Annotated[EngineContext, Depends(get_context)]
Runner = Annotated[ForegroundRunner, Depends(get_runner)]
RunnerWs = Annotated[ForegroundRunner, Depends(get_runner_ws)]
Store = Annotated[StateStore, Depends(get_state_store)]
