"""
tasks/engine.py -- Task ownership rules and optimistic concurrency.

Every public operation takes the caller's Claims and returns
(ErrorReason, payload | None). Nothing here raises for an expected failure;
the HTTP layer maps the reason to a response in one place (api/errors.py).

Access rules (all decided by auth.guard.authorize):
  create / full update / delete / list all / assignable users -- Admin only
  status update / view one task     -- the assignee, or any Admin
  my tasks / add comment            -- any User or Admin

Status values are unconstrained: any status may follow any status. Only
*who* may change it is restricted.

Concurrency: each update reads the task, then issues one conditional UPDATE
against the version it read (or the version the client says it read). A
moved version is reported as CONCURRENCY_ERROR and never retried here --
the client re-fetches and resubmits.

Storage exceptions are logged with full detail and surface as
DATABASE_ERROR; the message a client sees is generic.
"""

import functools
import logging
from datetime import datetime, timezone
from typing import Optional

from sqlalchemy.exc import SQLAlchemyError

from auth.guard import RequireAnyRole, RequireOwnerOrRole, RequireRole, authorize
from auth.models import ROLE_ADMIN, ROLE_USER, Claims
from auth.store import IdentityStore
from core.errors import ErrorReason
from tasks.models import Comment, Task, TaskChanges, TaskStatus, UrgencyLevel, UserSummary
from tasks.store import TaskStore

logger = logging.getLogger("taskdesk.tasks")

_ADMIN_ONLY = RequireRole(ROLE_ADMIN)
_MEMBERS = RequireAnyRole((ROLE_USER, ROLE_ADMIN))


def _storage_errors(operation):
    """Turn any SQLAlchemyError raised by `operation` into (DATABASE_ERROR, None)."""

    @functools.wraps(operation)
    def wrapper(self, *args, **kwargs):
        try:
            return operation(self, *args, **kwargs)
        except SQLAlchemyError:
            logger.exception("Database error in TaskEngine.%s", operation.__name__)
            return ErrorReason.DATABASE_ERROR, None

    return wrapper


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


class TaskEngine:
    def __init__(self, task_store: TaskStore, identity_store: IdentityStore) -> None:
        self.tasks = task_store
        self.identities = identity_store

    # ------------------------------------------------------------------
    # Reference data
    # ------------------------------------------------------------------

    @staticmethod
    def urgency_levels() -> list[str]:
        return [level.value for level in UrgencyLevel]

    @_storage_errors
    def assignable_users(self, claims: Optional[Claims]) -> tuple[ErrorReason, Optional[list[UserSummary]]]:
        """Identities that do not hold the Admin role. Admin only."""
        decision = authorize(claims, _ADMIN_ONLY)
        if not decision.allowed:
            return decision.reason, None
        users = self.identities.list_identities_without_role(ROLE_ADMIN)
        return ErrorReason.SUCCESS, [UserSummary(id=u.id, username=u.username, email=u.email) for u in users]

    # ------------------------------------------------------------------
    # Admin operations
    # ------------------------------------------------------------------

    @_storage_errors
    def create_task(self, claims: Optional[Claims], draft: Task) -> tuple[ErrorReason, Optional[Task]]:
        """Create a task in the Assigned state. Admin only.

        The assignee must exist now; a missing one is USER_NOT_FOUND. A
        missing due date defaults to the creation time.
        """
        decision = authorize(claims, _ADMIN_ONLY)
        if not decision.allowed:
            return decision.reason, None

        if self.identities.find_by_id(draft.assigned_to_user_id) is None:
            logger.warning("Attempted to create task for non-existent user %s", draft.assigned_to_user_id)
            return ErrorReason.USER_NOT_FOUND, None

        task_id = self.tasks.create_task(
            Task(
                title=draft.title,
                description=draft.description,
                urgency=draft.urgency,
                status=TaskStatus.ASSIGNED,
                due_date=draft.due_date or _now_iso(),
                assigned_to_user_id=draft.assigned_to_user_id,
            )
        )
        logger.info("Task %s created for user %s", task_id, draft.assigned_to_user_id)
        return ErrorReason.SUCCESS, self.tasks.get_task(task_id)

    @_storage_errors
    def list_tasks(self, claims: Optional[Claims]) -> tuple[ErrorReason, Optional[list[Task]]]:
        decision = authorize(claims, _ADMIN_ONLY)
        if not decision.allowed:
            return decision.reason, None
        return ErrorReason.SUCCESS, self.tasks.list_tasks()

    @_storage_errors
    def update_task(
        self,
        claims: Optional[Claims],
        task_id: int,
        changes: TaskChanges,
        expected_version: Optional[int] = None,
    ) -> tuple[ErrorReason, Optional[Task]]:
        """Replace every admin-editable field of a task. Admin only.

        A changed assignee is re-validated. expected_version defaults to the
        version read here; pass the client's copy to detect conflicts that
        happened before this request arrived.
        """
        decision = authorize(claims, _ADMIN_ONLY)
        if not decision.allowed:
            return decision.reason, None

        task = self.tasks.get_task(task_id)
        if task is None:
            return ErrorReason.NOT_FOUND, None

        if changes.assigned_to_user_id != task.assigned_to_user_id:
            if self.identities.find_by_id(changes.assigned_to_user_id) is None:
                logger.warning(
                    "Attempted to reassign task %s to non-existent user %s", task_id, changes.assigned_to_user_id
                )
                return ErrorReason.USER_NOT_FOUND, None

        written = self.tasks.update_task(
            task_id,
            task.version if expected_version is None else expected_version,
            title=changes.title,
            description=changes.description,
            urgency=changes.urgency,
            status=changes.status,
            due_date=changes.due_date or _now_iso(),
            assigned_to_user_id=changes.assigned_to_user_id,
        )
        if not written:
            return self._lost_update(task_id), None
        logger.info("Task %s updated", task_id)
        return ErrorReason.SUCCESS, self.tasks.get_task(task_id)

    @_storage_errors
    def delete_task(self, claims: Optional[Claims], task_id: int) -> tuple[ErrorReason, None]:
        """Delete a task and (by FK cascade) its comments. Admin only."""
        decision = authorize(claims, _ADMIN_ONLY)
        if not decision.allowed:
            return decision.reason, None
        if not self.tasks.delete_task(task_id):
            return ErrorReason.NOT_FOUND, None
        logger.info("Task %s deleted", task_id)
        return ErrorReason.SUCCESS, None

    # ------------------------------------------------------------------
    # Member operations
    # ------------------------------------------------------------------

    @_storage_errors
    def get_task(self, claims: Optional[Claims], task_id: int) -> tuple[ErrorReason, Optional[Task]]:
        """One task with its comments, for its assignee or any Admin."""
        decision = authorize(claims, _MEMBERS)
        if not decision.allowed:
            return decision.reason, None
        task = self.tasks.get_task(task_id)
        if task is None:
            return ErrorReason.NOT_FOUND, None
        decision = authorize(claims, RequireOwnerOrRole(task.assigned_to_user_id, ROLE_ADMIN))
        if not decision.allowed:
            return decision.reason, None
        return ErrorReason.SUCCESS, task

    @_storage_errors
    def my_tasks(self, claims: Optional[Claims]) -> tuple[ErrorReason, Optional[list[Task]]]:
        decision = authorize(claims, _MEMBERS)
        if not decision.allowed:
            return decision.reason, None
        return ErrorReason.SUCCESS, self.tasks.list_tasks(assigned_to=claims.identity_id)

    @_storage_errors
    def update_status(
        self,
        claims: Optional[Claims],
        task_id: int,
        status: TaskStatus,
        expected_version: Optional[int] = None,
    ) -> tuple[ErrorReason, Optional[Task]]:
        """Change only the status. Allowed for the assignee or any Admin."""
        decision = authorize(claims, _MEMBERS)
        if not decision.allowed:
            return decision.reason, None

        task = self.tasks.get_task(task_id)
        if task is None:
            return ErrorReason.NOT_FOUND, None

        if self.identities.find_by_id(claims.identity_id) is None:
            logger.warning("User %s updating status of task %s not found in system", claims.identity_id, task_id)
            return ErrorReason.USER_NOT_FOUND, None

        decision = authorize(claims, RequireOwnerOrRole(task.assigned_to_user_id, ROLE_ADMIN))
        if not decision.allowed:
            logger.warning(
                "User %s attempted to update status of task %s assigned to %s",
                claims.identity_id,
                task_id,
                task.assigned_to_user_id,
            )
            return decision.reason, None

        written = self.tasks.update_task(
            task_id,
            task.version if expected_version is None else expected_version,
            status=status,
        )
        if not written:
            return self._lost_update(task_id), None
        logger.info(
            "Status of task %s set to %s by %s (admin=%s)",
            task_id,
            status.value,
            claims.identity_id,
            claims.has_role(ROLE_ADMIN),
        )
        return ErrorReason.SUCCESS, self.tasks.get_task(task_id)

    @_storage_errors
    def add_comment(self, claims: Optional[Claims], task_id: int, text: str) -> tuple[ErrorReason, Optional[Comment]]:
        """Attach a comment to any existing task. Any User or Admin may comment."""
        decision = authorize(claims, _MEMBERS)
        if not decision.allowed:
            return decision.reason, None

        if not self.tasks.task_exists(task_id):
            logger.warning("Attempted to add comment to non-existent task %s", task_id)
            return ErrorReason.NOT_FOUND, None

        if self.identities.find_by_id(claims.identity_id) is None:
            logger.warning("User %s adding a comment not found in system", claims.identity_id)
            return ErrorReason.USER_NOT_FOUND, None

        comment_id = self.tasks.add_comment(Comment(task_id=task_id, author_id=claims.identity_id, text=text))
        logger.info("Comment %s added to task %s by %s", comment_id, task_id, claims.identity_id)
        return ErrorReason.SUCCESS, self.tasks.get_comment(comment_id)

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _lost_update(self, task_id: int) -> ErrorReason:
        """Classify a conditional update that wrote nothing."""
        if not self.tasks.task_exists(task_id):
            logger.warning("Update of task %s found no row: task deleted", task_id)
            return ErrorReason.NOT_FOUND
        logger.warning("Concurrency conflict updating task %s", task_id)
        return ErrorReason.CONCURRENCY_ERROR
