"""
tasks/store.py -- SQLAlchemy Core persistence layer for tasks and comments.

Pattern: Repository + Data Mapper. TaskStore is the repository; the _row_to_*
functions are the mappers. The engine (tasks/engine.py) never touches SQL.

Referential rules are enforced by the database, not by Python:
  tasks.assigned_to_user_id -> identities.id   ON DELETE RESTRICT
  comments.task_id          -> tasks.id        ON DELETE CASCADE
  comments.author_id        -> identities.id   ON DELETE RESTRICT
Deleting a task therefore removes its comments in the same statement, and an
identity that still owns tasks or comments cannot be deleted out from under
them. (SQLite needs PRAGMA foreign_keys=ON -- see core/db.py.)

Optimistic concurrency:
  update_task() is a single conditional UPDATE:
      UPDATE tasks SET ..., version = version + 1
      WHERE id = :id AND version = :expected
  The check and the write are one atomic statement, so no lock is held
  between the caller's read and its write. rowcount == 0 means either the
  row is gone or someone else bumped the version; the caller tells the two
  apart with task_exists().

Security: all queries use bound parameters. No f-strings in SQL.
"""

from datetime import datetime, timezone
from enum import Enum
from typing import Optional

from sqlalchemy import Column, ForeignKey, Index, Integer, String, Table, select
from sqlalchemy.engine import Engine

from auth.store import identities
from core.db import metadata
from tasks.models import Comment, Task, TaskStatus, UrgencyLevel

# ---------------------------------------------------------------------------
# Schema
# ---------------------------------------------------------------------------

tasks = Table(
    "tasks",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("title", String(100), nullable=False),
    Column("description", String(1000)),
    Column("urgency", String(20), nullable=False),
    Column("status", String(20), nullable=False, server_default=TaskStatus.ASSIGNED.value),
    Column("due_date", String(32), nullable=False),
    Column("created_at", String(32), nullable=False),
    Column("updated_at", String(32), nullable=False),
    Column("version", Integer, nullable=False, server_default="1"),
    Column(
        "assigned_to_user_id",
        String(36),
        ForeignKey("identities.id", ondelete="RESTRICT"),
        nullable=False,
    ),
    Index("ix_tasks_assigned_to_user_id", "assigned_to_user_id"),
    Index("ix_tasks_status", "status"),
)

comments = Table(
    "comments",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("text", String(500), nullable=False),
    Column("created_at", String(32), nullable=False),
    Column("author_id", String(36), ForeignKey("identities.id", ondelete="RESTRICT"), nullable=False),
    Column("task_id", Integer, ForeignKey("tasks.id", ondelete="CASCADE"), nullable=False),
    Index("ix_comments_author_id", "author_id"),
    Index("ix_comments_task_id", "task_id"),
)

# Read models join in the assignee / author so views never need a second lookup.
_task_view = select(
    tasks,
    identities.c.username.label("assigned_to_username"),
    identities.c.email.label("assigned_to_email"),
).select_from(tasks.outerjoin(identities, tasks.c.assigned_to_user_id == identities.c.id))

_comment_view = select(
    comments,
    identities.c.username.label("author_username"),
).select_from(comments.outerjoin(identities, comments.c.author_id == identities.c.id))


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def _column_value(value):
    return value.value if isinstance(value, Enum) else value


# ---------------------------------------------------------------------------
# Repository
# ---------------------------------------------------------------------------


class TaskStore:
    """Repository for Task and Comment entities.

    Usage:
        store = TaskStore(engine)
        task_id = store.create_task(Task(title="Ship it", assigned_to_user_id=uid))
        store.update_task(task_id, expected_version=1, status="Completed")
    """

    def __init__(self, engine: Engine) -> None:
        self.engine = engine
        metadata.create_all(self.engine)

    # ------------------------------------------------------------------
    # Tasks
    # ------------------------------------------------------------------

    def create_task(self, task: Task) -> int:
        """Insert a new task at version 1 and return its ID."""
        now = _now_iso()
        with self.engine.begin() as conn:
            result = conn.execute(
                tasks.insert().values(
                    title=task.title,
                    description=task.description,
                    urgency=_column_value(task.urgency),
                    status=_column_value(task.status),
                    due_date=task.due_date or now,
                    created_at=now,
                    updated_at=now,
                    version=1,
                    assigned_to_user_id=task.assigned_to_user_id,
                )
            )
            return result.inserted_primary_key[0]

    def get_task(self, task_id: int) -> Optional[Task]:
        """Fetch one task with its comments. Returns None if not found."""
        with self.engine.connect() as conn:
            row = conn.execute(_task_view.where(tasks.c.id == task_id)).fetchone()
            if row is None:
                return None
            task = _row_to_task(row)
            task.comments = self._comments_for(conn, [task_id]).get(task_id, [])
        return task

    def list_tasks(self, assigned_to: Optional[str] = None) -> list[Task]:
        """Return tasks (optionally only one assignee's), newest first, with comments."""
        query = _task_view.order_by(tasks.c.created_at.desc(), tasks.c.id.desc())
        if assigned_to is not None:
            query = query.where(tasks.c.assigned_to_user_id == assigned_to)
        with self.engine.connect() as conn:
            result = [_row_to_task(r) for r in conn.execute(query).fetchall()]
            by_task = self._comments_for(conn, [t.id for t in result])
        for task in result:
            task.comments = by_task.get(task.id, [])
        return result

    def task_exists(self, task_id: int) -> bool:
        with self.engine.connect() as conn:
            row = conn.execute(select(tasks.c.id).where(tasks.c.id == task_id)).fetchone()
        return row is not None

    def update_task(self, task_id: int, expected_version: int, **fields) -> bool:
        """Apply `fields` only if the stored version still equals expected_version.

        Bumps version and stamps updated_at on success. Enum values are
        stored by value. Returns True if the row was written, False if the
        row is missing or its version has moved on.
        """
        values = {k: _column_value(v) for k, v in fields.items()}
        values["version"] = tasks.c.version + 1
        values["updated_at"] = _now_iso()
        with self.engine.begin() as conn:
            result = conn.execute(
                tasks.update().where((tasks.c.id == task_id) & (tasks.c.version == expected_version)).values(**values)
            )
            return result.rowcount > 0

    def delete_task(self, task_id: int) -> bool:
        """Delete a task (its comments cascade). Returns False if not found."""
        with self.engine.begin() as conn:
            result = conn.execute(tasks.delete().where(tasks.c.id == task_id))
            return result.rowcount > 0

    # ------------------------------------------------------------------
    # Comments
    # ------------------------------------------------------------------

    def add_comment(self, comment: Comment) -> int:
        """Insert a comment and return its ID.

        Raises sqlalchemy.exc.IntegrityError if the task or author no longer
        exists (FK violation) -- callers check existence first and treat a
        late violation as a storage error.
        """
        with self.engine.begin() as conn:
            result = conn.execute(
                comments.insert().values(
                    text=comment.text,
                    created_at=_now_iso(),
                    author_id=comment.author_id,
                    task_id=comment.task_id,
                )
            )
            return result.inserted_primary_key[0]

    def get_comment(self, comment_id: int) -> Optional[Comment]:
        with self.engine.connect() as conn:
            row = conn.execute(_comment_view.where(comments.c.id == comment_id)).fetchone()
        return _row_to_comment(row) if row is not None else None

    def list_comments(self, task_id: int) -> list[Comment]:
        """Return a task's comments, oldest first."""
        with self.engine.connect() as conn:
            return self._comments_for(conn, [task_id]).get(task_id, [])

    @staticmethod
    def _comments_for(conn, task_ids: list[int]) -> dict[int, list[Comment]]:
        if not task_ids:
            return {}
        rows = conn.execute(
            _comment_view.where(comments.c.task_id.in_(task_ids)).order_by(comments.c.created_at, comments.c.id)
        ).fetchall()
        grouped: dict[int, list[Comment]] = {}
        for row in rows:
            grouped.setdefault(row.task_id, []).append(_row_to_comment(row))
        return grouped


# ---------------------------------------------------------------------------
# Row mappers (Data Mapper pattern)
# ---------------------------------------------------------------------------


def _row_to_task(row) -> Task:
    return Task(
        id=row.id,
        title=row.title,
        description=row.description,
        urgency=UrgencyLevel(row.urgency),
        status=TaskStatus(row.status),
        due_date=row.due_date,
        created_at=row.created_at,
        updated_at=row.updated_at,
        version=row.version,
        assigned_to_user_id=row.assigned_to_user_id,
        assigned_to_username=row.assigned_to_username or "Unknown User",
        assigned_to_email=row.assigned_to_email or "Unknown Email",
    )


def _row_to_comment(row) -> Comment:
    return Comment(
        id=row.id,
        text=row.text,
        created_at=row.created_at,
        author_id=row.author_id,
        task_id=row.task_id,
        author_username=row.author_username or "Unknown User",
    )
