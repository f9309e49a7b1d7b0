"""Task records and the events exchanged by the task service."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Any

from asynctracker.messaging import to_jsonable

EVENT_KEY_TASK_ASSIGNED = "Task.Assigned"
EVENT_KEY_TASK_COMPLETED = "Task.Completed"
EVENT_KEY_ACCOUNT_CREATED = "Account.Created"
EVENT_KEY_ACCOUNT_UPDATED = "Account.Updated"


@dataclass
class Task:
    task_id: str
    user_id: str | None
    description: str
    completed: bool
    created_at: datetime

    def to_dict(self) -> dict[str, Any]:
        return {
            "task_id": self.task_id,
            "user_id": self.user_id,
            "description": self.description,
            "completed": self.completed,
            "created_at": to_jsonable(self.created_at),
        }


@dataclass(frozen=True)
class Event:
    """A message key together with the value to serialise."""

    key: str
    value: Any


@dataclass
class TaskAssignedValue:
    task: Task
    old_user_id: str | None = None

    def to_dict(self) -> dict[str, Any]:
        """Return the task's fields with the previous assignee alongside."""
        return {**self.task.to_dict(), "old_user_id": self.old_user_id}


@dataclass
class AccountCreatedValue:
    user_id: str
    role: str


@dataclass
class AccountUpdatedValue:
    user_id: str
    active: bool
    role: str


def new_event_task_assigned(task: Task, old_user_id: str | None) -> Event:
    return Event(key=EVENT_KEY_TASK_ASSIGNED, value=TaskAssignedValue(task, old_user_id))


def new_event_task_completed(task: Task) -> Event:
    return Event(key=EVENT_KEY_TASK_COMPLETED, value=task)