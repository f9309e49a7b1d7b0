"""Task storage, assignment and completion for the task service."""

from __future__ import annotations

import logging
import random
import sqlite3
import uuid
from datetime import datetime, timezone

from asynctracker.common import (
    KAFKA_TOPIC_TASK,
    NoDevelopersAvailable,
    Role,
    TaskNotFound,
)
from asynctracker.database import Database
from asynctracker.messaging import InMemoryBroker, TopicWriter
from asynctracker.task.models import Task, new_event_task_assigned, new_event_task_completed

_log = logging.getLogger(__name__)

_TASK_COLUMNS = "task_id, user_id, description, completed, created_at"


def create_schema(db: Database) -> None:
    """Create the task_accounts and tasks tables if they do not exist."""
    with db.transaction() as conn:
        conn.execute(
            """
            CREATE TABLE IF NOT EXISTS task_accounts (
                user_id TEXT PRIMARY KEY,
                active BOOLEAN NOT NULL,
                role TEXT NOT NULL
            )
            """
        )
        conn.execute(
            """
            CREATE TABLE IF NOT EXISTS tasks (
                task_id TEXT PRIMARY KEY,
                user_id TEXT,
                description TEXT NOT NULL,
                completed BOOLEAN NOT NULL DEFAULT 0,
                created_at TEXT NOT NULL,
                updated_at TEXT
            )
            """
        )


def _row_to_task(row: sqlite3.Row) -> Task:
    return Task(
        task_id=row["task_id"],
        user_id=row["user_id"],
        description=row["description"],
        completed=bool(row["completed"]),
        created_at=datetime.fromisoformat(row["created_at"]),
    )


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


def _fetch_task(conn: sqlite3.Connection, task_id: str) -> Task:
    row = conn.execute(
        f"SELECT {_TASK_COLUMNS} FROM tasks WHERE task_id = ?", (task_id,)
    ).fetchone()
    if row is None:
        raise TaskNotFound()
    return _row_to_task(row)


class TaskEventWriter:
    """Writers for the topics the task service publishes to."""

    def __init__(self, broker: InMemoryBroker) -> None:
        self.topic_writer_task = TopicWriter(broker, KAFKA_TOPIC_TASK)

    def close(self) -> None:
        self.topic_writer_task.close()


class TaskService:
    """Creates, completes and shuffles tasks among active developers."""

    def __init__(
        self,
        db: Database,
        event_writer: TaskEventWriter,
        rng: random.Random | None = None,
    ) -> None:
        self.db = db
        self.event_writer = event_writer
        self.rng = rng if rng is not None else random.Random()

    def _active_accounts_by_role(self, role: str) -> list[str]:
        with self.db.transaction() as conn:
            rows = conn.execute(
                "SELECT user_id FROM task_accounts WHERE role = ? AND active ORDER BY rowid",
                (str(role),),
            ).fetchall()
        return [row["user_id"] for row in rows]

    def upsert_account_role(self, user_id: str, active: bool, role: str) -> None:
        """Insert an account or update its active flag and role."""
        with self.db.transaction() as conn:
            conn.execute(
                """
                INSERT INTO task_accounts (user_id, active, role) VALUES (?, ?, ?)
                ON CONFLICT (user_id) DO UPDATE SET active = excluded.active, role = excluded.role
                """,
                (user_id, bool(active), str(role)),
            )

    def get_tasks_for_account(self, user_id: str) -> list[Task]:
        """Return every task assigned to the account."""
        with self.db.transaction() as conn:
            rows = conn.execute(
                f"SELECT {_TASK_COLUMNS} FROM tasks WHERE user_id = ? ORDER BY created_at, rowid",
                (user_id,),
            ).fetchall()
        return [_row_to_task(row) for row in rows]

    def create_task(self, description: str) -> tuple[str, str | None]:
        """Store a task, assign it to a random active developer if any.

        Returns the new task id and the assignee's user id, or None.
        """
        task_id = str(uuid.uuid4())
        developers = self._active_accounts_by_role(Role.DEVELOPER)
        user_id = self.rng.choice(developers) if developers else None

        with self.db.transaction() as conn:
            conn.execute(
                "INSERT INTO tasks (task_id, user_id, description, completed, created_at)"
                " VALUES (?, ?, ?, 0, ?)",
                (task_id, user_id, description, _now()),
            )
            created = _fetch_task(conn, task_id)

        if user_id is not None:
            event = new_event_task_assigned(created, None)
            self.event_writer.topic_writer_task.write_json(event.key, event.value)
        return task_id, user_id

    def complete_task(self, task_id: str, user_id: str) -> None:
        """Mark the user's task completed and announce it.

        Raises TaskNotFound when the task does not exist or belongs to someone else.
        """
        with self.db.transaction() as conn:
            cursor = conn.execute(
                "UPDATE tasks SET completed = 1, updated_at = ? WHERE task_id = ? AND user_id = ?",
                (_now(), task_id, user_id),
            )
            if cursor.rowcount == 0:
                raise TaskNotFound()
            completed = _fetch_task(conn, task_id)
        event = new_event_task_completed(completed)
        self.event_writer.topic_writer_task.write_json(event.key, event.value)

    def assign_tasks(self) -> None:
        """Give every open task to a random active developer.

        Raises NoDevelopersAvailable when there is no active developer.
        """
        developers = self._active_accounts_by_role(Role.DEVELOPER)
        if not developers:
            raise NoDevelopersAvailable()
        for task_id, old_user_id in self._non_completed_tasks():
            developer_id = self.rng.choice(developers)
            with self.db.transaction() as conn:
                assigned = self._assign_task(conn, task_id, developer_id)
            event = new_event_task_assigned(assigned, old_user_id)
            self.event_writer.topic_writer_task.write_json(event.key, event.value)

    def _non_completed_tasks(self) -> list[tuple[str, str | None]]:
        with self.db.transaction() as conn:
            rows = conn.execute(
                "SELECT task_id, user_id FROM tasks WHERE NOT completed ORDER BY created_at, rowid"
            ).fetchall()
        return [(row["task_id"], row["user_id"]) for row in rows]

    @staticmethod
    def _assign_task(conn: sqlite3.Connection, task_id: str, user_id: str) -> Task:
        cursor = conn.execute(
            "UPDATE tasks SET user_id = ?, updated_at = ? WHERE task_id = ?",
            (user_id, _now(), task_id),
        )
        if cursor.rowcount == 0:
            raise TaskNotFound()
        return _fetch_task(conn, task_id)