"""Tests for the FastMCP task tools server."""

import json

import httpx

from taskmanager.tools.dispatcher import TOOL_NAMES, ToolResult
from taskmanager.tools.task_tools import build_task_tools_server, to_call_tool_result
from taskmanager.tools.widgets import (
    HOME,
    TASK_FORM,
    TASK_LIST,
    USER_INFO,
    WIDGET_MIME_TYPE,
    WIDGETS,
    WidgetRegistry,
)


async def _loaded_registry() -> WidgetRegistry:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, text=f"<html>{request.url.path}</html>")

    registry = WidgetRegistry()
    async with httpx.AsyncClient(
        transport=httpx.MockTransport(handler), base_url="http://ui.test"
    ) as client:
        await registry.load(client)
    return registry


async def test_server_registers_all_tools(dispatcher):
    server = build_task_tools_server(dispatcher, WidgetRegistry())
    tools = await server.list_tools()
    assert {t.name for t in tools} == set(TOOL_NAMES)


async def test_tool_schemas_use_wire_argument_names(dispatcher):
    server = build_task_tools_server(dispatcher, WidgetRegistry())
    tools = {t.name: t for t in await server.list_tools()}

    create = tools["create_task"].inputSchema
    assert {"firstName", "lastName", "title", "description", "status", "dueDate"} <= set(
        create["properties"]
    )
    assert create.get("required", []) == []
    assert '"in-progress"' in json.dumps(create["properties"]["status"])

    assert tools["get_task"].inputSchema["required"] == ["taskId"]
    assert tools["update_task"].inputSchema["required"] == ["taskId"]


async def test_server_registers_widget_resources(dispatcher):
    server = build_task_tools_server(dispatcher, WidgetRegistry())
    resources = await server.list_resources()
    assert {str(r.uri) for r in resources} == {w.template_uri for w in WIDGETS}
    assert all(r.mimeType == WIDGET_MIME_TYPE for r in resources)


async def test_widget_tools_name_their_output_template(dispatcher):
    server = build_task_tools_server(dispatcher, WidgetRegistry())
    tools = {t.name: t for t in await server.list_tools()}

    assert tools["show_task_manager"].meta["openai/outputTemplate"] == HOME.template_uri
    assert tools["create_task"].meta["openai/outputTemplate"] == USER_INFO.template_uri
    assert tools["list_tasks"].meta["openai/outputTemplate"] == TASK_LIST.template_uri
    assert tools["list_tasks"].meta["openai/toolInvocation/invoking"] == TASK_LIST.invoking
    assert tools["get_task"].meta is None


async def test_widget_resources_carry_widget_meta(dispatcher):
    server = build_task_tools_server(
        dispatcher, WidgetRegistry(widget_domain="https://tasks.example.com")
    )
    resources = {str(r.uri): r for r in await server.list_resources()}

    for widget in WIDGETS:
        meta = resources[widget.template_uri].meta
        assert meta["openai/widgetDescription"] == widget.description
        assert meta["openai/widgetPrefersBorder"] is True
        assert meta["openai/widgetDomain"] == "https://tasks.example.com"


async def test_reading_a_resource_returns_loaded_html(dispatcher):
    server = build_task_tools_server(dispatcher, await _loaded_registry())
    contents = list(await server.read_resource("ui://widget/task-list.html"))
    assert contents[0].content == "<html>/tasks</html>"


async def test_tool_function_returns_call_tool_result(dispatcher):
    server = build_task_tools_server(dispatcher, WidgetRegistry())
    tool = server._tool_manager.get_tool("create_task")
    result = await tool.fn(firstName="Jane", lastName="Doe", title="T", description="D")
    assert result.isError is False
    assert result.structuredContent["taskId"] == "TSK-001"
    assert result.content[0].text == 'Task "T" created successfully!'


async def test_missing_task_is_error_result(dispatcher):
    server = build_task_tools_server(dispatcher, WidgetRegistry())
    result = await server._tool_manager.get_tool("get_task").fn(taskId="TSK-404")
    assert result.isError is True


def test_to_call_tool_result_puts_widget_metadata_in_meta():
    result = to_call_tool_result(ToolResult(text="ok", structured={"a": 1}, widget=TASK_FORM))
    wire = result.model_dump(by_alias=True, exclude_none=True)
    assert wire["_meta"]["openai/outputTemplate"] == TASK_FORM.template_uri
    assert wire["structuredContent"] == {"a": 1}
    assert wire["content"] == [{"type": "text", "text": "ok"}]


def test_to_call_tool_result_without_widget():
    wire = to_call_tool_result(ToolResult(text="gone", is_error=True)).model_dump(
        by_alias=True, exclude_none=True
    )
    assert "_meta" not in wire
    assert wire["isError"] is True
