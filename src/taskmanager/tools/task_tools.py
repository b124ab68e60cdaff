"""MCP server exposing the task tools and widget resources via FastMCP.

The server can be mounted into the dashboard (streamable HTTP, see
``taskmanager.dashboard.app``) or run on stdio::

    taskmanager mcp --config config/app.yaml
"""

from typing import Annotated, Literal, Optional

from mcp import types
from mcp.server.fastmcp import FastMCP
from pydantic import Field

from taskmanager.tools.dispatcher import TaskToolDispatcher, ToolResult
from taskmanager.tools.widgets import (
    HOME,
    TASK_LIST,
    USER_INFO,
    WIDGET_MIME_TYPE,
    Widget,
    WidgetRegistry,
    widget_meta,
)

TaskStatus = Literal["todo", "in-progress", "done"]


def to_call_tool_result(result: ToolResult) -> types.CallToolResult:
    """Convert a dispatcher result to the MCP wire type (metadata goes in ``_meta``)."""
    payload: dict = {
        "content": [{"type": "text", "text": result.text}],
        "isError": result.is_error,
    }
    if result.structured is not None:
        payload["structuredContent"] = result.structured
    if result.widget is not None:
        payload["_meta"] = result.metadata
    return types.CallToolResult.model_validate(payload)


def _register_widget_resource(mcp: FastMCP, registry: WidgetRegistry, widget: Widget) -> None:
    @mcp.resource(
        widget.template_uri,
        name=widget.name,
        title=widget.title,
        description=widget.description,
        mime_type=WIDGET_MIME_TYPE,
        meta=registry.resource_meta(widget),
    )
    def read_widget() -> str:
        return registry.html(widget)


def build_task_tools_server(
    dispatcher: TaskToolDispatcher,
    widgets: WidgetRegistry,
    **settings,
) -> FastMCP:
    """Build the FastMCP server.  *settings* are passed through to FastMCP."""
    mcp = FastMCP("task-manager", **settings)

    for widget in widgets.widgets:
        _register_widget_resource(mcp, widgets, widget)

    # Argument names are camelCase because they are the tool's wire schema.

    @mcp.tool(title="Show Task Manager", meta=widget_meta(HOME))
    async def show_task_manager():
        """Display the task manager interface with options to create tasks, view tasks, and manage your task list."""
        return to_call_tool_result(await dispatcher.show_task_manager())

    @mcp.tool(title="Create Task", meta=widget_meta(USER_INFO))
    async def create_task(
        firstName: Annotated[Optional[str], Field(description="The user's first name (optional - if not provided, show user info widget first)")] = None,
        lastName: Annotated[Optional[str], Field(description="The user's last name (optional - if not provided, show user info widget first)")] = None,
        title: Annotated[Optional[str], Field(description="The title of the task (optional - can be filled in the form)")] = None,
        description: Annotated[Optional[str], Field(description="The description of the task (optional - can be filled in the form)")] = None,
        status: Annotated[Optional[TaskStatus], Field(description="Task status (optional, default: todo)")] = None,
        dueDate: Annotated[Optional[str], Field(description="Due date in ISO format (YYYY-MM-DD)")] = None,
    ):
        """Create a new task.

        When the user wants to create a task, call this tool immediately, even
        without parameters, to display the user information widget.  Do not
        ask for the details in text; the widget guides the user through
        entering their name and the task details.
        """
        return to_call_tool_result(
            await dispatcher.create_task(
                first_name=firstName,
                last_name=lastName,
                title=title,
                description=description,
                status=status,
                due_date=dueDate,
            )
        )

    @mcp.tool(title="List Tasks", meta=widget_meta(TASK_LIST))
    async def list_tasks(
        firstName: Annotated[Optional[str], Field(description="The user's first name (optional - can be filled in the widget)")] = None,
        lastName: Annotated[Optional[str], Field(description="The user's last name (optional - can be filled in the widget)")] = None,
    ):
        """Display all tasks for a user.

        The widget shows a form to enter a first and last name, then lists
        that user's tasks.
        """
        return to_call_tool_result(
            await dispatcher.list_tasks(first_name=firstName, last_name=lastName)
        )

    @mcp.tool(title="Get Task")
    async def get_task(
        taskId: Annotated[str, Field(description="The ID of the task to retrieve")],
    ):
        """Get details of a specific task by its ID."""
        return to_call_tool_result(await dispatcher.get_task(task_id=taskId))

    @mcp.tool(title="Update Task")
    async def update_task(
        taskId: Annotated[str, Field(description="The ID of the task to update")],
        title: Annotated[Optional[str], Field(description="New title for the task")] = None,
        description: Annotated[Optional[str], Field(description="New description for the task")] = None,
        status: Annotated[Optional[TaskStatus], Field(description="New status for the task")] = None,
        dueDate: Annotated[Optional[str], Field(description="New due date in ISO format (YYYY-MM-DD)")] = None,
    ):
        """Update an existing task's title, description, status, or due date.

        Only the fields you pass are changed.  Returns the updated task.
        """
        return to_call_tool_result(
            await dispatcher.update_task(
                task_id=taskId,
                title=title,
                description=description,
                status=status,
                due_date=dueDate,
            )
        )

    @mcp.tool(title="Delete Task")
    async def delete_task(
        taskId: Annotated[str, Field(description="The ID of the task to delete")],
    ):
        """Delete a task by its ID. Returns confirmation of deletion."""
        return to_call_tool_result(await dispatcher.delete_task(task_id=taskId))

    return mcp
