"""FastAPI app: widget pages, JSON tool endpoints, WebSocket events, MCP mount."""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import TYPE_CHECKING, Any

from fastapi import FastAPI, WebSocket
from fastapi.staticfiles import StaticFiles
from starlette.middleware.cors import CORSMiddleware

from taskmanager import __version__
from taskmanager.config_loader import AppConfig
from taskmanager.event_bus import EventBus
from taskmanager.store.database import Database
from taskmanager.tools.dispatcher import TaskToolDispatcher
from taskmanager.tools.widgets import WidgetRegistry

if TYPE_CHECKING:
    from mcp.server.fastmcp import FastMCP

_logger = logging.getLogger(__name__)


class ConnectionManager:
    """Open WebSocket connections, each optionally watching one user id."""

    def __init__(self) -> None:
        # Keyed by id(): starlette WebSockets are Mappings and not hashable.
        self.active: dict[int, tuple[WebSocket, str | None]] = {}

    async def connect(self, ws: WebSocket) -> None:
        await ws.accept()
        self.active[id(ws)] = (ws, None)

    def watch(self, ws: WebSocket, user_id: str | None) -> None:
        if id(ws) in self.active:
            self.active[id(ws)] = (ws, user_id)

    def disconnect(self, ws: WebSocket) -> None:
        self.active.pop(id(ws), None)

    async def broadcast(self, event: dict[str, Any]) -> None:
        message = json.dumps(event)
        for key, (ws, user_id) in list(self.active.items()):
            if user_id is not None and event.get("user_id") != user_id:
                continue
            try:
                await ws.send_text(message)
            except Exception:
                _logger.debug("Dropping dead WebSocket connection")
                self.active.pop(key, None)


def create_app(
    dispatcher: TaskToolDispatcher | None = None,
    widgets: WidgetRegistry | None = None,
    db: Database | None = None,
    event_bus: EventBus | None = None,
    config: AppConfig | None = None,
    mcp_server: FastMCP | None = None,
) -> FastAPI:
    """Assemble the web app around already-initialised components.

    When *mcp_server* is given its streamable-HTTP app is mounted at
    ``/mcp``; the caller must run ``mcp_server.session_manager.run()``
    around the server's lifetime.
    """
    app = FastAPI(
        title=config.app_name if config else "Task Manager",
        description="Task manager UI, JSON tool endpoints, and MCP server for chat assistants.",
        version=__version__,
    )

    cors_origins = config.cors_origins if config else ["http://localhost:3000"]
    app.add_middleware(
        CORSMiddleware,
        allow_origins=cors_origins,
        allow_credentials=False,
        allow_methods=["GET", "POST", "OPTIONS"],
        allow_headers=["Content-Type", "Accept"],
    )

    ws_manager = ConnectionManager()
    if event_bus is not None:
        event_bus.subscribe("*", ws_manager.broadcast)

    # ------------------------------------------------------------------
    # Wire up shared deps for routers
    # ------------------------------------------------------------------
    from taskmanager.dashboard.routers import pages as pages_router
    from taskmanager.dashboard.routers import tools as tools_router
    from taskmanager.dashboard.routers import ws as ws_router
    from taskmanager.dashboard.routers._deps import set_components

    set_components(dispatcher, widgets, db)
    pages_router.set_base_url(config.widget_base_url if config else "")
    ws_router.set_ws_deps(ws_manager)

    app.include_router(tools_router.router, tags=["Tools"])
    app.include_router(ws_router.router)
    app.include_router(pages_router.router, tags=["Pages"])

    static_dir = Path(__file__).parent / "static"
    if static_dir.exists():
        app.mount("/static", StaticFiles(directory=str(static_dir)), name="static")

    if mcp_server is not None:
        app.mount("/mcp", mcp_server.streamable_http_app())
        _logger.info("MCP endpoint mounted at /mcp")

    return app
