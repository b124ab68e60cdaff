"""Tests for the taskmanager CLI."""

import argparse
import asyncio
import json

import pytest

from taskmanager.config_loader import AppConfig
from taskmanager.main import _cmd_init, build_components, cli_main, show_tasks
from taskmanager.store import open_stores
from taskmanager.tools.dispatcher import TOOL_NAMES


@pytest.fixture
def clean_env(monkeypatch, tmp_path):
    """Run from an empty directory with no TASKMANAGER_* settings."""
    monkeypatch.chdir(tmp_path)
    for name in (
        "TASKMANAGER_DATABASE",
        "TASKMANAGER_HOST",
        "TASKMANAGER_PORT",
        "TASKMANAGER_WIDGET_BASE_URL",
    ):
        monkeypatch.delenv(name, raising=False)
    return tmp_path


# ------------------------------------------------------------------
# init
# ------------------------------------------------------------------


def test_init_writes_starter_files(tmp_path):
    _cmd_init(argparse.Namespace(dir=str(tmp_path)))
    app_yaml = tmp_path / "config" / "app.yaml"
    assert app_yaml.exists()
    assert "database:" in app_yaml.read_text()
    assert "TASKMANAGER_DATABASE" in (tmp_path / ".env.example").read_text()


def test_init_keeps_existing_config(tmp_path, capsys):
    config_dir = tmp_path / "config"
    config_dir.mkdir()
    (config_dir / "app.yaml").write_text("database:\n  path: mine.db\n")
    _cmd_init(argparse.Namespace(dir=str(tmp_path)))
    assert (config_dir / "app.yaml").read_text() == "database:\n  path: mine.db\n"
    assert "Kept existing config/app.yaml" in capsys.readouterr().out


def test_init_via_cli_main(clean_env):
    cli_main(["init", "--dir", str(clean_env)])
    assert (clean_env / "config" / "app.yaml").exists()


# ------------------------------------------------------------------
# Configuration failures
# ------------------------------------------------------------------


def test_missing_database_exits(clean_env, capsys):
    with pytest.raises(SystemExit) as exc:
        cli_main(["tasks", "Jane", "Doe"])
    assert exc.value.code == 1
    assert "No database configured" in capsys.readouterr().err


def test_missing_config_file_exits(clean_env):
    with pytest.raises(SystemExit):
        cli_main(["tasks", "Jane", "Doe", "--config", str(clean_env / "nope.yaml")])


def test_stdio_requires_widget_base_url(clean_env, monkeypatch, capsys):
    monkeypatch.setenv("TASKMANAGER_DATABASE", ":memory:")
    with pytest.raises(SystemExit):
        cli_main(["mcp"])
    assert "widgets.base_url" in capsys.readouterr().err


# ------------------------------------------------------------------
# tasks
# ------------------------------------------------------------------


async def test_show_tasks_prints_user_tasks(stores, jane, capsys):
    await stores.tasks.create(jane["id"], "Buy milk")
    await stores.tasks.create(jane["id"], "Ship report", status="done")
    rows = await show_tasks(stores, "Jane", "Doe")
    out = capsys.readouterr().out
    assert len(rows) == 2
    assert "Tasks for Jane Doe" in out
    assert "[done] Ship report" in out


async def test_show_tasks_status_filter(stores, jane):
    await stores.tasks.create(jane["id"], "Buy milk")
    await stores.tasks.create(jane["id"], "Ship report", status="done")
    rows = await show_tasks(stores, "Jane", "Doe", status="done")
    assert [r["title"] for r in rows] == ["Ship report"]


async def test_show_tasks_unknown_user(stores, capsys):
    assert await show_tasks(stores, "Nobody", "Here") == []
    assert "No user found for Nobody Here" in capsys.readouterr().out


async def test_show_tasks_json(stores, jane, capsys):
    await stores.tasks.create(jane["id"], "Buy milk")
    await show_tasks(stores, "Jane", "Doe", as_json=True)
    data = json.loads(capsys.readouterr().out)
    assert data["user"]["email"] == "jane.doe@taskmanager.com"
    assert data["tasks"][0]["userId"] == jane["id"]


def test_tasks_command_reads_configured_database(clean_env, capsys):
    db_path = clean_env / "data" / "tasks.db"

    async def seed():
        stores = await open_stores(str(db_path))
        user = await stores.users.get_or_create("Jane", "Doe")
        await stores.tasks.create(user["id"], "Buy milk")
        await stores.close()

    asyncio.run(seed())
    config = clean_env / "app.yaml"
    config.write_text(f'database:\n  path: "{db_path}"\n')

    cli_main(["tasks", "Jane", "Doe", "--config", str(config)])
    assert "TSK-001: [todo] Buy milk" in capsys.readouterr().out


# ------------------------------------------------------------------
# Component wiring
# ------------------------------------------------------------------


async def test_build_components():
    components = await build_components(AppConfig(db_path=":memory:"))
    try:
        tools = await components.mcp.list_tools()
        assert {t.name for t in tools} == set(TOOL_NAMES)
        assert components.dispatcher.event_bus is components.event_bus
        assert not components.widgets.loaded
    finally:
        await components.close()
