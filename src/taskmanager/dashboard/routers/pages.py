"""Browser routes: each renders one widget template."""

from __future__ import annotations

from pathlib import Path

from fastapi import APIRouter, HTTPException
from fastapi.templating import Jinja2Templates
from starlette.requests import Request

from taskmanager.dashboard.routers._deps import get_dispatcher
from taskmanager.tools.dispatcher import LookupStatus, task_payload
from taskmanager.tools.widgets import HOME, TASK_FORM, TASK_LIST, USER_INFO, Widget

router = APIRouter()

templates = Jinja2Templates(directory=str(Path(__file__).parent.parent / "templates"))

# Absolute origin used for assets and API calls inside widget HTML; set by app.py.
_base_url = ""


def set_base_url(base_url: str) -> None:
    global _base_url
    _base_url = base_url.rstrip("/")


def _render(request: Request, template: str, widget: Widget, **context):
    base_url = _base_url or str(request.base_url).rstrip("/")
    return templates.TemplateResponse(
        request,
        template,
        {"base_url": base_url, "widget": widget, **context},
    )


@router.get("/")
async def home(request: Request):
    return _render(request, "home.html", HOME)


@router.get("/tasks")
async def task_list(request: Request):
    return _render(request, "task_list.html", TASK_LIST)


@router.get("/tasks/new")
async def new_task(request: Request):
    return _render(request, "task_form.html", TASK_FORM, task=None)


@router.get("/tasks/{task_id}")
async def edit_task(request: Request, task_id: str):
    lookup = await get_dispatcher().lookup_task(task_id)
    if lookup.status is LookupStatus.NOT_FOUND:
        raise HTTPException(status_code=404, detail=f"Task {task_id} not found")
    if lookup.status is LookupStatus.FAILED:
        raise HTTPException(status_code=503, detail=str(lookup.error))
    return _render(request, "task_form.html", TASK_FORM, task=task_payload(lookup.record))


@router.get("/user-info")
async def user_info(request: Request):
    return _render(request, "user_info.html", USER_INFO)
