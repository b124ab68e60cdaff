"""JSON endpoints: health, widget descriptors, and one POST route per tool.

The browser UI calls these routes when it runs outside the chat host; the
response body is always the tool envelope, including for tool-level errors.
"""

from __future__ import annotations

import logging

from fastapi import APIRouter
from fastapi.responses import JSONResponse

from taskmanager.dashboard.models import (
    CreateTaskBody,
    ListTasksBody,
    TaskIdBody,
    UpdateTaskBody,
)
from taskmanager.dashboard.routers._deps import get_db_optional, get_dispatcher, get_widgets

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api")


# ------------------------------------------------------------------
# Health / discovery
# ------------------------------------------------------------------


@router.get("/health")
async def health():
    db = get_db_optional()
    if db is None:
        return {"status": "ok", "db": "not_configured"}
    try:
        await db.execute_fetchone("SELECT 1")
        return {"status": "ok", "db": "connected"}
    except Exception as e:
        logger.warning("Health check failed: %s", e)
        return JSONResponse(status_code=503, content={"status": "degraded", "db": str(e)})


@router.get("/widgets")
async def list_widgets():
    widgets = get_widgets()
    return widgets.describe() if widgets is not None else []


# ------------------------------------------------------------------
# Tools
# ------------------------------------------------------------------


async def _call(name: str, body=None) -> dict:
    arguments = body.model_dump(exclude_none=True) if body is not None else {}
    result = await get_dispatcher().call(name, arguments)
    return result.to_envelope()


@router.post("/tools/show_task_manager")
async def show_task_manager():
    return await _call("show_task_manager")


@router.post("/tools/create_task")
async def create_task(body: CreateTaskBody):
    return await _call("create_task", body)


@router.post("/tools/list_tasks")
async def list_tasks(body: ListTasksBody):
    return await _call("list_tasks", body)


@router.post("/tools/get_task")
async def get_task(body: TaskIdBody):
    return await _call("get_task", body)


@router.post("/tools/update_task")
async def update_task(body: UpdateTaskBody):
    return await _call("update_task", body)


@router.post("/tools/delete_task")
async def delete_task(body: TaskIdBody):
    return await _call("delete_task", body)
