# tests/conftest.py
import logging

import pytest

from taskmanager.event_bus import EventBus
from taskmanager.store import open_stores
from taskmanager.tools.dispatcher import TaskToolDispatcher


@pytest.fixture
async def stores():
    """In-memory database with the user and task stores registered."""
    s = await open_stores(":memory:")
    yield s
    await s.close()


@pytest.fixture
def event_bus():
    return EventBus()


@pytest.fixture
def dispatcher(stores, event_bus):
    return TaskToolDispatcher(users=stores.users, tasks=stores.tasks, event_bus=event_bus)


@pytest.fixture
async def jane(stores):
    """A user created the way the tool adapter creates one."""
    return await stores.users.get_or_create("Jane", "Doe")


@pytest.fixture(autouse=True)
def restore_root_logger():
    """setup_logging() replaces root handlers; put the test runner's back."""
    root = logging.getLogger()
    handlers, level = list(root.handlers), root.level
    yield
    for h in root.handlers:
        if h not in handlers:
            h.close()
    root.handlers[:] = handlers
    root.setLevel(level)
