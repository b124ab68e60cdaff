"""Shared dependencies injected by app.py during create_app()."""

from __future__ import annotations

from fastapi import HTTPException

_dispatcher = None
_widgets = None
_db = None


def set_components(dispatcher, widgets, db=None):
    """Called by app.py to inject the dispatcher, widget registry and database."""
    global _dispatcher, _widgets, _db
    _dispatcher = dispatcher
    _widgets = widgets
    _db = db


def get_dispatcher():
    """Return the tool dispatcher or raise 503 if the app is not wired yet."""
    if _dispatcher is None:
        raise HTTPException(503, "Task store is not available.")
    return _dispatcher


def get_widgets():
    return _widgets


def get_db_optional():
    """Return the database or None (no error)."""
    return _db
