"""Pydantic request bodies for the JSON tool endpoints.

Field names match the tool wire schema (camelCase).
"""

from __future__ import annotations

from typing import Literal, Optional

from pydantic import BaseModel

TaskStatus = Literal["todo", "in-progress", "done"]


class CreateTaskBody(BaseModel):
    firstName: Optional[str] = None
    lastName: Optional[str] = None
    title: Optional[str] = None
    description: Optional[str] = None
    status: Optional[TaskStatus] = None
    dueDate: Optional[str] = None


class ListTasksBody(BaseModel):
    firstName: Optional[str] = None
    lastName: Optional[str] = None


class TaskIdBody(BaseModel):
    taskId: str


class UpdateTaskBody(BaseModel):
    taskId: str
    title: Optional[str] = None
    description: Optional[str] = None
    status: Optional[TaskStatus] = None
    dueDate: Optional[str] = None
