"""Task Manager: web UI, MCP server, and command-line entry point."""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys
from dataclasses import dataclass
from pathlib import Path

import httpx
from dotenv import load_dotenv
from mcp.server.fastmcp import FastMCP

from taskmanager.config_loader import AppConfig, ConfigError, load_app_config
from taskmanager.event_bus import EventBus
from taskmanager.store import Stores, open_stores
from taskmanager.store.tasks import STATUSES
from taskmanager.tools.dispatcher import TaskToolDispatcher, task_payload, user_payload
from taskmanager.tools.task_tools import build_task_tools_server
from taskmanager.tools.widgets import WidgetRegistry

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_PATH = Path("config") / "app.yaml"
WIDGET_FETCH_TIMEOUT = 10.0


@dataclass
class Components:
    """Everything a running server needs, built from one :class:`AppConfig`."""

    config: AppConfig
    stores: Stores
    event_bus: EventBus
    dispatcher: TaskToolDispatcher
    widgets: WidgetRegistry
    mcp: FastMCP

    async def close(self) -> None:
        await self.event_bus.drain()
        try:
            await self.stores.close()
        except Exception:
            logger.exception("Error closing database")


async def build_components(config: AppConfig, **mcp_settings) -> Components:
    stores = await open_stores(config.db_path)
    event_bus = EventBus()
    dispatcher = TaskToolDispatcher(users=stores.users, tasks=stores.tasks, event_bus=event_bus)
    widgets = WidgetRegistry(widget_domain=config.widget_base_url)
    mcp = build_task_tools_server(dispatcher, widgets, **mcp_settings)
    logger.info("Components ready (db=%s)", config.db_path)
    return Components(
        config=config,
        stores=stores,
        event_bus=event_bus,
        dispatcher=dispatcher,
        widgets=widgets,
        mcp=mcp,
    )


async def load_widgets(widgets: WidgetRegistry, config: AppConfig, app=None) -> None:
    """Fetch widget HTML once, in-process through *app* or from ``widgets.base_url``."""
    if app is not None:
        transport = httpx.ASGITransport(app=app)
        client = httpx.AsyncClient(
            transport=transport, base_url=f"http://{config.host}:{config.port}"
        )
    elif config.widget_base_url:
        client = httpx.AsyncClient(base_url=config.widget_base_url, timeout=WIDGET_FETCH_TIMEOUT)
    else:
        raise ConfigError("widgets.base_url is required to fetch widget HTML")
    async with client:
        await widgets.load(client)


async def run_server(config: AppConfig) -> None:
    """Serve the web UI, the JSON tool endpoints and the MCP endpoint."""
    import uvicorn

    from taskmanager.dashboard.app import create_app

    components = await build_components(config, host=config.host, streamable_http_path="/")
    try:
        app = create_app(
            dispatcher=components.dispatcher,
            widgets=components.widgets,
            db=components.stores.db,
            event_bus=components.event_bus,
            config=config,
            mcp_server=components.mcp,
        )
        await load_widgets(components.widgets, config, app=app)

        server = uvicorn.Server(uvicorn.Config(app, host=config.host, port=config.port, log_level="info"))
        async with components.mcp.session_manager.run():
            logger.info("Serving on http://%s:%d (MCP at /mcp)", config.host, config.port)
            await server.serve()
    finally:
        await components.close()


async def run_stdio(config: AppConfig) -> None:
    """Run only the MCP server over stdio."""
    if not config.widget_base_url:
        raise ConfigError(
            "widgets.base_url (or TASKMANAGER_WIDGET_BASE_URL) is required for the stdio MCP server"
        )
    components = await build_components(config)
    try:
        await load_widgets(components.widgets, config)
        await components.mcp.run_stdio_async()
    finally:
        await components.close()


async def show_tasks(
    stores: Stores,
    first_name: str,
    last_name: str,
    status: str | None = None,
    due_today: bool = False,
    as_json: bool = False,
) -> list[dict]:
    """Print a user's tasks, optionally filtered by status or due today."""
    user = await stores.users.get_by_name(first_name, last_name)
    if user is None:
        print(f"No user found for {first_name} {last_name}")
        return []

    if due_today:
        tasks = await stores.tasks.get_tasks_due_today(user["id"])
        if status:
            tasks = [t for t in tasks if t["status"] == status]
    elif status:
        tasks = await stores.tasks.get_by_user_and_status(user["id"], status)
    else:
        tasks = await stores.tasks.get_by_user(user["id"])

    if as_json:
        print(json.dumps(
            {"user": user_payload(user), "tasks": [task_payload(t) for t in tasks]},
            indent=2,
        ))
        return tasks

    print(f"\n=== Tasks for {user['first_name']} {user['last_name']} ({user['id']}) ===\n")
    if not tasks:
        print("  (none)")
    for t in tasks:
        print(f"  {t['id']}: [{t['status']}] {t['title']}")
    return tasks


async def _run_tasks_command(config: AppConfig, args) -> None:
    stores = await open_stores(config.db_path)
    try:
        await show_tasks(
            stores,
            args.first_name,
            args.last_name,
            status=args.status,
            due_today=args.due_today,
            as_json=args.json,
        )
    finally:
        await stores.close()


def _cmd_init(args):
    """Write a starter config and .env.example, leaving existing files alone."""
    project_dir = Path(args.dir).resolve()
    config_dir = project_dir / "config"
    config_dir.mkdir(parents=True, exist_ok=True)

    app_yaml = config_dir / "app.yaml"
    if not app_yaml.exists():
        app_yaml.write_text(
            'app_name: "Task Manager"\n\n'
            'database:\n  path: "data/taskmanager.db"\n\n'
            'server:\n  host: "127.0.0.1"\n  port: 8430\n\n'
            '# Public origin of this app, used for widget assets inside the chat host.\n'
            '# Leave empty to render widgets against the local server.\n'
            'widgets:\n  base_url: ""\n\n'
            'cors_origins:\n  - "http://localhost:3000"\n'
        )
        print("  Created config/app.yaml")
    else:
        print("  Kept existing config/app.yaml")

    env_example = project_dir / ".env.example"
    if not env_example.exists():
        env_example.write_text(
            '# Optional overrides\n'
            'TASKMANAGER_DATABASE=data/taskmanager.db\n'
            'TASKMANAGER_WIDGET_BASE_URL=\n'
            'LOG_LEVEL=INFO\n'
            'LOG_FORMAT=dev\n'
        )
        print("  Created .env.example")

    (project_dir / "data").mkdir(exist_ok=True)
    print("\nNext: run `taskmanager serve`")


def _load_config(args) -> AppConfig:
    path = Path(args.config) if args.config else None
    if path is None and DEFAULT_CONFIG_PATH.exists():
        path = DEFAULT_CONFIG_PATH
    config = load_app_config(path)
    if getattr(args, "host", None):
        config.host = args.host
    if getattr(args, "port", None):
        config.port = args.port
    return config


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="taskmanager", description="Task manager web app and MCP server"
    )
    sub = parser.add_subparsers(dest="command", help="Available commands")

    serve_parser = sub.add_parser("serve", help="Start the web app and MCP endpoint (default)")
    serve_parser.add_argument("--config", default=None, help="Path to app.yaml")
    serve_parser.add_argument("--host", default=None)
    serve_parser.add_argument("--port", type=int, default=None)

    mcp_parser = sub.add_parser("mcp", help="Run the MCP server on stdio")
    mcp_parser.add_argument("--config", default=None, help="Path to app.yaml")
    mcp_parser.add_argument("--log-file", default=None, help="Write logs to this file instead of stderr")

    tasks_parser = sub.add_parser("tasks", help="Print a user's tasks")
    tasks_parser.add_argument("first_name")
    tasks_parser.add_argument("last_name")
    tasks_parser.add_argument("--status", choices=STATUSES, default=None)
    tasks_parser.add_argument("--due-today", action="store_true", help="Only tasks due today")
    tasks_parser.add_argument("--json", action="store_true", help="Print wire-format JSON")
    tasks_parser.add_argument("--config", default=None, help="Path to app.yaml")

    init_parser = sub.add_parser("init", help="Write a starter config")
    init_parser.add_argument("--dir", default=".", help="Project directory")

    return parser


def cli_main(argv: list[str] | None = None):
    # Load .env before anything else so env vars are available immediately
    load_dotenv()

    from taskmanager.logging_config import setup_file_logging, setup_logging
    setup_logging()

    args = _build_parser().parse_args(argv)
    command = args.command or "serve"

    if command == "init":
        _cmd_init(args)
        return

    if command == "serve" and args.command is None:
        args.config = args.host = args.port = None

    try:
        config = _load_config(args)
        if command == "serve":
            asyncio.run(run_server(config))
        elif command == "mcp":
            if args.log_file:
                setup_file_logging(Path(args.log_file))
            asyncio.run(run_stdio(config))
        elif command == "tasks":
            asyncio.run(_run_tasks_command(config, args))
    except (ConfigError, FileNotFoundError) as e:
        print(f"Configuration error: {e}", file=sys.stderr)
        raise SystemExit(1)
    except httpx.HTTPError as e:
        print(f"Could not load widget HTML: {e}", file=sys.stderr)
        raise SystemExit(1)
    except KeyboardInterrupt:
        pass


if __name__ == "__main__":
    cli_main()
