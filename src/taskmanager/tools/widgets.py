"""HTML widget descriptors and the startup-loaded widget HTML registry."""

from __future__ import annotations

import logging
from dataclasses import dataclass

import httpx

logger = logging.getLogger(__name__)

WIDGET_MIME_TYPE = "text/html+skybridge"


@dataclass(frozen=True)
class Widget:
    """A UI page that can also be rendered inside the chat assistant.

    ``path`` is the browser route the HTML is fetched from and ``tools``
    lists the tool invocations whose results route to this widget.
    """

    id: str
    name: str
    title: str
    template_uri: str
    path: str
    invoking: str
    invoked: str
    description: str
    tools: tuple[str, ...]


HOME = Widget(
    id="task_manager_home",
    name="task-manager-home",
    title="Task Manager",
    template_uri="ui://widget/task-manager-home.html",
    path="/",
    invoking="Loading task manager...",
    invoked="Task manager ready",
    description="Task manager homepage with navigation",
    tools=("show_task_manager",),
)

TASK_LIST = Widget(
    id="task_list_widget",
    name="task-list-widget",
    title="Task List",
    template_uri="ui://widget/task-list.html",
    path="/tasks",
    invoking="Loading your tasks...",
    invoked="Tasks loaded",
    description="Displays all tasks for the user",
    tools=("list_tasks",),
)

TASK_FORM = Widget(
    id="task_form_widget",
    name="task-form-widget",
    title="Create Task",
    template_uri="ui://widget/task-form.html",
    path="/tasks/new",
    invoking="Opening task form...",
    invoked="Task form ready",
    description="Form to create a new task with input fields",
    tools=("create_task",),
)

USER_INFO = Widget(
    id="user_info_widget",
    name="user-info-widget",
    title="User Information",
    template_uri="ui://widget/user-info.html",
    path="/user-info",
    invoking="Loading user info form...",
    invoked="User info form ready",
    description="Form to collect user's first and last name",
    tools=("create_task",),
)

WIDGETS: tuple[Widget, ...] = (HOME, TASK_LIST, TASK_FORM, USER_INFO)


def widget_meta(widget: Widget) -> dict:
    """Routing metadata attached to a tool result that should render *widget*."""
    return {
        "openai/outputTemplate": widget.template_uri,
        "openai/toolInvocation/invoking": widget.invoking,
        "openai/toolInvocation/invoked": widget.invoked,
        "openai/widgetAccessible": False,
        "openai/resultCanProduceWidget": True,
    }


class WidgetRegistry:
    """Holds the HTML of every widget, fetched once from the UI server.

    The HTML never changes after :meth:`load`; there is no refresh.
    """

    def __init__(self, widgets: tuple[Widget, ...] = WIDGETS, widget_domain: str = "") -> None:
        self.widgets = widgets
        self.widget_domain = widget_domain
        self._html: dict[str, str] = {}

    @property
    def loaded(self) -> bool:
        return len(self._html) == len(self.widgets)

    async def load(self, client: httpx.AsyncClient) -> None:
        """Fetch each widget's page through *client* (a no-op once loaded).

        Raises ``httpx.HTTPError`` if the UI server is unreachable or a page
        does not return 2xx; the caller treats that as a startup failure.
        """
        if self.loaded:
            return
        for widget in self.widgets:
            resp = await client.get(widget.path)
            resp.raise_for_status()
            self._html[widget.id] = resp.text
            logger.debug("Loaded widget %s from %s (%d bytes)", widget.id, widget.path, len(resp.text))
        logger.info("Loaded %d widget templates", len(self._html))

    def html(self, widget: Widget) -> str:
        try:
            return self._html[widget.id]
        except KeyError:
            raise RuntimeError(f"Widget HTML for {widget.id!r} has not been loaded") from None

    def resource_meta(self, widget: Widget) -> dict:
        return {
            "openai/widgetDescription": widget.description,
            "openai/widgetPrefersBorder": True,
            "openai/widgetDomain": self.widget_domain,
        }

    def describe(self) -> list[dict]:
        """Widget descriptors, as served by ``GET /api/widgets``."""
        return [
            {
                "id": w.id,
                "name": w.name,
                "title": w.title,
                "uri": w.template_uri,
                "mimeType": WIDGET_MIME_TYPE,
                "path": w.path,
                "description": w.description,
                "tools": list(w.tools),
                "loaded": w.id in self._html,
                "_meta": self.resource_meta(w),
            }
            for w in self.widgets
        ]
