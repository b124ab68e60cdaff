"""WebSocket endpoint pushing task change events to open pages.

Clients may send ``{"type": "watch", "userId": "USR-001"}`` to receive only
that user's events; until then they receive everything.
"""

from __future__ import annotations

import json

from fastapi import APIRouter, WebSocket, WebSocketDisconnect

router = APIRouter()

_ws_manager = None


def set_ws_deps(ws_manager):
    """Called by app.py to inject the connection manager."""
    global _ws_manager
    _ws_manager = ws_manager


@router.websocket("/ws")
async def task_events(ws: WebSocket):
    await _ws_manager.connect(ws)
    try:
        while True:
            try:
                msg = json.loads(await ws.receive_text())
            except json.JSONDecodeError:
                continue
            kind = msg.get("type") if isinstance(msg, dict) else None
            if kind == "ping":
                await ws.send_text(json.dumps({"type": "pong"}))
            elif kind == "watch":
                _ws_manager.watch(ws, msg.get("userId") or None)
                await ws.send_text(json.dumps({"type": "watching", "userId": msg.get("userId")}))
    except WebSocketDisconnect:
        pass
    finally:
        _ws_manager.disconnect(ws)
