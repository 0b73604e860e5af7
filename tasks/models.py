"""
tasks/models.py -- Domain dataclasses and enumerations for tasks and comments.

These are pure data containers with zero logic. Access rules and the
concurrency check live in tasks/engine.py; SQL lives in tasks/store.py.

Timestamps are ISO 8601 strings, written by the store.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Optional


class UrgencyLevel(str, Enum):
    LOW = "Low"
    MEDIUM = "Medium"
    HIGH = "High"


class TaskStatus(str, Enum):
    ASSIGNED = "Assigned"
    IN_PROGRESS = "InProgress"
    COMPLETED = "Completed"
    BLOCKED = "Blocked"


@dataclass
class Comment:
    """A note attached to a task. Immutable once written.

    author_username is filled in by the store's join on read; it is not a
    column on the comments table.
    """

    task_id: int
    author_id: str
    text: str
    id: Optional[int] = None
    created_at: str = ""
    author_username: str = ""


@dataclass
class Task:
    """A unit of work assigned to one identity.

    version is the optimistic-concurrency token: every successful write
    increments it, and conditional updates compare against it. updated_at is
    informational only -- two writes can share a clock tick, so it is never
    used for conflict detection.

    assigned_to_username / assigned_to_email / comments are read-model
    fields populated by the store.
    """

    title: str
    assigned_to_user_id: str
    urgency: UrgencyLevel = UrgencyLevel.MEDIUM
    status: TaskStatus = TaskStatus.ASSIGNED
    description: Optional[str] = None
    due_date: str = ""
    id: Optional[int] = None
    created_at: str = ""
    updated_at: str = ""
    version: int = 1
    assigned_to_username: str = ""
    assigned_to_email: str = ""
    comments: list[Comment] = field(default_factory=list)


@dataclass
class TaskChanges:
    """Full replacement of the admin-editable fields of a task."""

    title: str
    assigned_to_user_id: str
    urgency: UrgencyLevel
    status: TaskStatus
    description: Optional[str] = None
    due_date: Optional[str] = None  # None resets the due date to now


@dataclass(frozen=True)
class UserSummary:
    """An assignable identity: id, username and email, nothing else."""

    id: str
    username: str
    email: str
