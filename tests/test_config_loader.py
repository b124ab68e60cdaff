"""Tests for app config loading and validation."""

from pathlib import Path

import pytest

from taskmanager.config_loader import DEFAULT_PORT, AppConfig, ConfigError, load_app_config


def _write(tmp_path: Path, text: str) -> Path:
    path = tmp_path / "app.yaml"
    path.write_text(text)
    return path


def test_load_full_config(tmp_path):
    path = _write(
        tmp_path,
        'app_name: "My Tasks"\n'
        'database:\n  path: "/srv/tasks.db"\n'
        'server:\n  host: "0.0.0.0"\n  port: 9000\n'
        'widgets:\n  base_url: "https://tasks.example.com/"\n'
        'cors_origins:\n  - "https://chat.example.com"\n',
    )
    config = load_app_config(path, environ={})
    assert config == AppConfig(
        db_path="/srv/tasks.db",
        app_name="My Tasks",
        host="0.0.0.0",
        port=9000,
        widget_base_url="https://tasks.example.com",
        cors_origins=["https://chat.example.com"],
    )


def test_defaults_from_environment_only():
    config = load_app_config(None, environ={"TASKMANAGER_DATABASE": ":memory:"})
    assert config.db_path == ":memory:"
    assert config.port == DEFAULT_PORT
    assert config.host == "127.0.0.1"
    assert config.widget_base_url == ""


def test_environment_overrides_yaml(tmp_path):
    path = _write(tmp_path, 'database:\n  path: "a.db"\nserver:\n  port: 9000\n')
    config = load_app_config(
        path,
        environ={
            "TASKMANAGER_DATABASE": "/tmp/b.db",
            "TASKMANAGER_PORT": "9100",
            "TASKMANAGER_HOST": "0.0.0.0",
            "TASKMANAGER_WIDGET_BASE_URL": "https://w.example.com",
        },
    )
    assert config.db_path == "/tmp/b.db"
    assert config.port == 9100
    assert config.host == "0.0.0.0"
    assert config.widget_base_url == "https://w.example.com"


def test_home_directory_is_expanded(tmp_path):
    path = _write(tmp_path, 'database:\n  path: "~/tasks.db"\n')
    assert load_app_config(path, environ={}).db_path == str(Path.home() / "tasks.db")


def test_missing_database_is_fatal(tmp_path):
    path = _write(tmp_path, "server:\n  port: 9000\n")
    with pytest.raises(ConfigError, match="No database configured"):
        load_app_config(path, environ={})


def test_missing_file(tmp_path):
    with pytest.raises(FileNotFoundError):
        load_app_config(tmp_path / "nope.yaml", environ={})


def test_non_mapping_yaml(tmp_path):
    path = _write(tmp_path, "- just\n- a list\n")
    with pytest.raises(ConfigError, match="mapping"):
        load_app_config(path, environ={})


@pytest.mark.parametrize("port", ["0", "70000", "http"])
def test_invalid_port(port):
    with pytest.raises(ConfigError, match="server.port"):
        load_app_config(None, environ={"TASKMANAGER_DATABASE": ":memory:", "TASKMANAGER_PORT": port})
