"""
api/routes/v1/dashboard.py -- Admin dashboard endpoint.

Returns a small aggregate over the task table for dashboard widgets. This is
a read-only route -- no mutations here.
"""

from collections import Counter

from fastapi import APIRouter, Depends, Request
from pydantic import BaseModel

from api.errors import error_for_reason
from auth.dependencies import require_admin
from auth.models import Claims
from core.errors import ErrorReason
from tasks.engine import TaskEngine
from tasks.models import TaskStatus

# Auth policy:
# - GET /api/v1/dashboard/admin-data: requires Admin
router = APIRouter()


class AdminDataResponse(BaseModel):
    message: str
    total_tasks: int
    status_counts: dict[str, int]


@router.get("/dashboard/admin-data", response_model=AdminDataResponse)
def admin_data(request: Request, claims: Claims = Depends(require_admin)) -> AdminDataResponse:
    """Return task counts per status across all assignees.

    Response:
      total_tasks    -- number of tasks in the system
      status_counts  -- {"Assigned": N, "InProgress": N, "Completed": N, "Blocked": N}
    """
    engine: TaskEngine = request.app.state.task_engine
    reason, tasks = engine.list_tasks(claims)
    if reason is not ErrorReason.SUCCESS:
        raise error_for_reason(reason)

    counts = Counter(t.status.value for t in tasks)
    return AdminDataResponse(
        message=f"Welcome to the admin dashboard, {claims.username}.",
        total_tasks=len(tasks),
        status_counts={s.value: counts.get(s.value, 0) for s in TaskStatus},
    )
