"""Tests for widget descriptors and the widget HTML registry."""

import httpx
import pytest

from taskmanager.tools.widgets import (
    HOME,
    TASK_FORM,
    TASK_LIST,
    USER_INFO,
    WIDGET_MIME_TYPE,
    WIDGETS,
    WidgetRegistry,
    widget_meta,
)


def _client(handler) -> httpx.AsyncClient:
    return httpx.AsyncClient(transport=httpx.MockTransport(handler), base_url="http://ui.test")


def test_widget_uris_are_unique():
    uris = [w.template_uri for w in WIDGETS]
    assert len(set(uris)) == len(uris) == 4
    assert all(uri.startswith("ui://widget/") for uri in uris)


def test_create_task_routes_to_two_widgets():
    owners = {w.id for w in WIDGETS if "create_task" in w.tools}
    assert owners == {TASK_FORM.id, USER_INFO.id}


def test_widget_meta():
    meta = widget_meta(TASK_LIST)
    assert meta["openai/outputTemplate"] == "ui://widget/task-list.html"
    assert meta["openai/toolInvocation/invoking"] == "Loading your tasks..."
    assert meta["openai/toolInvocation/invoked"] == "Tasks loaded"
    assert meta["openai/widgetAccessible"] is False
    assert meta["openai/resultCanProduceWidget"] is True


async def test_load_fetches_every_widget_path():
    requested = []

    def handler(request: httpx.Request) -> httpx.Response:
        requested.append(request.url.path)
        return httpx.Response(200, text=f"<html>{request.url.path}</html>")

    registry = WidgetRegistry()
    async with _client(handler) as client:
        await registry.load(client)

    assert registry.loaded
    assert sorted(requested) == sorted(w.path for w in WIDGETS)
    assert registry.html(HOME) == "<html>/</html>"
    assert registry.html(TASK_FORM) == "<html>/tasks/new</html>"


async def test_load_is_one_shot():
    calls = 0

    def handler(request: httpx.Request) -> httpx.Response:
        nonlocal calls
        calls += 1
        return httpx.Response(200, text="<html></html>")

    registry = WidgetRegistry()
    async with _client(handler) as client:
        await registry.load(client)
        await registry.load(client)
    assert calls == len(WIDGETS)


async def test_load_failure_raises():
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(500, text="boom")

    registry = WidgetRegistry()
    async with _client(handler) as client:
        with pytest.raises(httpx.HTTPStatusError):
            await registry.load(client)
    assert not registry.loaded


def test_html_before_load_raises():
    with pytest.raises(RuntimeError, match="not been loaded"):
        WidgetRegistry().html(HOME)


def test_describe():
    registry = WidgetRegistry(widget_domain="https://tasks.example.com")
    described = registry.describe()
    assert [d["id"] for d in described] == [w.id for w in WIDGETS]
    first = described[0]
    assert first["mimeType"] == WIDGET_MIME_TYPE
    assert first["loaded"] is False
    assert first["_meta"]["openai/widgetDomain"] == "https://tasks.example.com"
