"""Task Manager: task CRUD for the browser and for chat assistants over MCP."""

__version__ = "1.0.0"
