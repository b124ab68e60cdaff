"""Tests for logging configuration."""

import json
import logging

from taskmanager.logging_config import JSONFormatter, setup_file_logging, setup_logging


def test_invalid_log_level_falls_back_to_info(capsys):
    """Invalid LOG_LEVEL should warn and fall back to INFO."""
    setup_logging(level="BOGUS")
    captured = capsys.readouterr()
    assert "Invalid LOG_LEVEL" in captured.err
    assert logging.root.level == logging.INFO


def test_valid_log_level_works():
    setup_logging(level="DEBUG")
    assert logging.root.level == logging.DEBUG


def test_level_from_environment(monkeypatch):
    monkeypatch.setenv("LOG_LEVEL", "warning")
    setup_logging()
    assert logging.root.level == logging.WARNING


def test_json_format_selected(monkeypatch):
    monkeypatch.setenv("LOG_FORMAT", "json")
    setup_logging()
    assert isinstance(logging.root.handlers[0].formatter, JSONFormatter)


def test_noisy_loggers_quietened():
    setup_logging(level="DEBUG")
    assert logging.getLogger("uvicorn.access").level == logging.WARNING


def test_json_formatter_includes_extras():
    record = logging.LogRecord(
        "taskmanager.tools", logging.INFO, __file__, 1, "created %s", ("TSK-001",), None
    )
    record.task_id = "TSK-001"
    data = json.loads(JSONFormatter().format(record))
    assert data["message"] == "created TSK-001"
    assert data["level"] == "INFO"
    assert data["logger"] == "taskmanager.tools"
    assert data["task_id"] == "TSK-001"


def test_file_logging_writes_to_file(tmp_path):
    log_file = tmp_path / "logs" / "taskmanager.log"
    setup_file_logging(log_file, level="INFO")
    logging.getLogger("taskmanager.test").info("hello file")
    for h in logging.root.handlers:
        h.flush()
    assert "hello file" in log_file.read_text()
