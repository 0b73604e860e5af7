"""
api/routes/v1/tasks.py -- Task and comment REST endpoints.

Routes:
  GET    /api/v1/tasks/users            -- assignable identities (admin)
  GET    /api/v1/tasks/urgency-levels   -- urgency names (authenticated)
  GET    /api/v1/tasks/my-tasks         -- tasks assigned to the caller
  GET    /api/v1/tasks                  -- every task (admin)
  POST   /api/v1/tasks                  -- create (admin); 201
  GET    /api/v1/tasks/{id}             -- one task (assignee or admin)
  PUT    /api/v1/tasks/{id}             -- full update (admin)
  DELETE /api/v1/tasks/{id}             -- delete with comments (admin); 204
  PATCH  /api/v1/tasks/{id}/status      -- status only (assignee or admin)
  POST   /api/v1/tasks/{id}/comments    -- add a comment (user or admin); 201

Every handler requires a valid token (401 otherwise). Role and ownership
decisions are made by TaskEngine, not here; a non-SUCCESS reason is turned
into a response by api/errors.error_for_reason().

Fixed paths are registered before /tasks/{task_id} so they never parse as an ID.
"""

from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends, Request, Response

from api.errors import error_for_reason
from api.models import (
    CommentCreate,
    CommentView,
    TaskCreate,
    TaskStatusUpdate,
    TaskUpdate,
    TaskView,
    UserSummaryResponse,
)
from auth.dependencies import get_current_claims
from auth.models import Claims
from core.errors import ErrorReason
from tasks.engine import TaskEngine
from tasks.models import Task, TaskChanges

router = APIRouter(dependencies=[Depends(get_current_claims)])


def _engine(request: Request) -> TaskEngine:
    return request.app.state.task_engine


def _unwrap(outcome):
    reason, payload = outcome
    if reason is not ErrorReason.SUCCESS:
        raise error_for_reason(reason)
    return payload


def _iso(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value is not None else None


# ---------------------------------------------------------------------------
# Reference data
# ---------------------------------------------------------------------------


@router.get("/tasks/users", response_model=list[UserSummaryResponse])
def assignable_users(request: Request, claims: Claims = Depends(get_current_claims)) -> list[UserSummaryResponse]:
    """Identities without the Admin role, for the assignee picker."""
    users = _unwrap(_engine(request).assignable_users(claims))
    return [UserSummaryResponse.from_summary(u) for u in users]


@router.get("/tasks/urgency-levels", response_model=list[str])
def urgency_levels() -> list[str]:
    return TaskEngine.urgency_levels()


@router.get("/tasks/my-tasks", response_model=list[TaskView])
def my_tasks(request: Request, claims: Claims = Depends(get_current_claims)) -> list[TaskView]:
    tasks = _unwrap(_engine(request).my_tasks(claims))
    return [TaskView.from_task(t) for t in tasks]


# ---------------------------------------------------------------------------
# Collection
# ---------------------------------------------------------------------------


@router.get("/tasks", response_model=list[TaskView])
def list_tasks(request: Request, claims: Claims = Depends(get_current_claims)) -> list[TaskView]:
    tasks = _unwrap(_engine(request).list_tasks(claims))
    return [TaskView.from_task(t) for t in tasks]


@router.post("/tasks", response_model=TaskView, status_code=201)
def create_task(request: Request, body: TaskCreate, claims: Claims = Depends(get_current_claims)) -> TaskView:
    """Create a task in the Assigned state. 422 if the assignee does not exist."""
    draft = Task(
        title=body.title,
        description=body.description,
        urgency=body.urgency,
        due_date=_iso(body.due_date) or "",
        assigned_to_user_id=body.assigned_to_user_id,
    )
    return TaskView.from_task(_unwrap(_engine(request).create_task(claims, draft)))


# ---------------------------------------------------------------------------
# Single task
# ---------------------------------------------------------------------------


@router.get("/tasks/{task_id}", response_model=TaskView)
def get_task(request: Request, task_id: int, claims: Claims = Depends(get_current_claims)) -> TaskView:
    return TaskView.from_task(_unwrap(_engine(request).get_task(claims, task_id)))


@router.put("/tasks/{task_id}", response_model=TaskView)
def update_task(
    request: Request,
    task_id: int,
    body: TaskUpdate,
    claims: Claims = Depends(get_current_claims),
) -> TaskView:
    """Replace the task's editable fields. 409 if the version moved underneath."""
    changes = TaskChanges(
        title=body.title,
        description=body.description,
        urgency=body.urgency,
        status=body.status,
        due_date=_iso(body.due_date),
        assigned_to_user_id=body.assigned_to_user_id,
    )
    outcome = _engine(request).update_task(claims, task_id, changes, expected_version=body.version)
    return TaskView.from_task(_unwrap(outcome))


@router.delete("/tasks/{task_id}", status_code=204)
def delete_task(request: Request, task_id: int, claims: Claims = Depends(get_current_claims)) -> Response:
    _unwrap(_engine(request).delete_task(claims, task_id))
    return Response(status_code=204)


@router.patch("/tasks/{task_id}/status", response_model=TaskView)
def update_status(
    request: Request,
    task_id: int,
    body: TaskStatusUpdate,
    claims: Claims = Depends(get_current_claims),
) -> TaskView:
    """Change the status. The assignee or any Admin; 403 for everyone else."""
    outcome = _engine(request).update_status(claims, task_id, body.status, expected_version=body.version)
    return TaskView.from_task(_unwrap(outcome))


@router.post("/tasks/{task_id}/comments", response_model=CommentView, status_code=201)
def add_comment(
    request: Request,
    task_id: int,
    body: CommentCreate,
    claims: Claims = Depends(get_current_claims),
) -> CommentView:
    comment = _unwrap(_engine(request).add_comment(claims, task_id, body.text))
    return CommentView.from_comment(comment)
