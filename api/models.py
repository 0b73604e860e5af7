"""
API request and response models for TaskDesk REST endpoints.

These Pydantic v2 models define the HTTP transport contract for the API layer.
They are intentionally separate from the dataclasses in auth/models.py,
tasks/models.py and notes/models.py, which own the internal domain
representation. Route handlers map between the two.

Separation of concerns: domain dataclasses = domain truth; api/ models = API contract.
"""

from datetime import datetime
from typing import Annotated, Optional

from pydantic import BaseModel, ConfigDict, Field, StringConstraints

from auth.models import AuthResult
from auth.passwords import MAX_PASSWORD_BYTES
from notes.models import Note
from tasks.models import Comment, Task, TaskStatus, UrgencyLevel, UserSummary

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

USERNAME_PATTERN = r"^[A-Za-z0-9\-._@+]{3,50}$"
EMAIL_PATTERN = r"^[^@\s]+@[^@\s]+\.[^@\s]+$"


# ---------------------------------------------------------------------------
# Auth
# ---------------------------------------------------------------------------


class RegisterRequest(BaseModel):
    """Request body for POST /api/v1/auth/register."""

    username: Annotated[str, StringConstraints(strip_whitespace=True, pattern=USERNAME_PATTERN)]
    email: Annotated[str, StringConstraints(strip_whitespace=True, max_length=255, pattern=EMAIL_PATTERN)]
    # Kept byte-exact. Strength and the bcrypt byte limit live in PasswordPolicy
    # so violations come back as WeakPassword.
    password: str = Field(min_length=1, max_length=MAX_PASSWORD_BYTES)


class LoginRequest(BaseModel):
    """Request body for POST /api/v1/auth/login. Accepts a username or an email."""

    username_or_email: Annotated[str, StringConstraints(strip_whitespace=True, min_length=1, max_length=255)]
    password: str = Field(min_length=1, max_length=MAX_PASSWORD_BYTES)


class AuthResponse(BaseModel):
    """The AuthResult envelope, returned on success and failure alike."""

    is_success: bool
    message: str
    reason: str
    token: Optional[str] = None
    identity_id: Optional[str] = None
    username: Optional[str] = None
    email: Optional[str] = None
    roles: list[str] = Field(default_factory=list)

    @classmethod
    def from_result(cls, result: AuthResult) -> "AuthResponse":
        return cls(
            is_success=result.is_success,
            message=result.message,
            reason=result.reason.value,
            token=result.token,
            identity_id=result.identity_id,
            username=result.username,
            email=result.email,
            roles=list(result.roles),
        )


# ---------------------------------------------------------------------------
# Users
# ---------------------------------------------------------------------------


class ProfileResponse(BaseModel):
    """Response for GET /api/v1/users/profile -- straight from the token claims."""

    model_config = ConfigDict(frozen=True)

    identity_id: str
    username: str
    email: str
    roles: list[str]


class MessageResponse(BaseModel):
    model_config = ConfigDict(frozen=True)

    message: str


class UserSummaryResponse(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    username: str
    email: str

    @classmethod
    def from_summary(cls, user: UserSummary) -> "UserSummaryResponse":
        return cls(id=user.id, username=user.username, email=user.email)


# ---------------------------------------------------------------------------
# Tasks
# ---------------------------------------------------------------------------


class TaskCreate(BaseModel):
    """Request body for POST /api/v1/tasks. Status is always Assigned on create."""

    model_config = ConfigDict(str_strip_whitespace=True)

    title: str = Field(min_length=1, max_length=100)
    description: Optional[str] = Field(default=None, max_length=1000)
    urgency: UrgencyLevel = UrgencyLevel.MEDIUM
    due_date: Optional[datetime] = None
    assigned_to_user_id: str = Field(min_length=1, max_length=36)


class TaskUpdate(BaseModel):
    """Request body for PUT /api/v1/tasks/{id}.

    version is the client's copy of the concurrency token. When omitted the
    server compares against the version it reads itself.
    """

    model_config = ConfigDict(str_strip_whitespace=True)

    title: str = Field(min_length=1, max_length=100)
    description: Optional[str] = Field(default=None, max_length=1000)
    urgency: UrgencyLevel
    status: TaskStatus
    due_date: Optional[datetime] = None
    assigned_to_user_id: str = Field(min_length=1, max_length=36)
    version: Optional[int] = Field(default=None, ge=1)


class TaskStatusUpdate(BaseModel):
    """Request body for PATCH /api/v1/tasks/{id}/status."""

    status: TaskStatus
    version: Optional[int] = Field(default=None, ge=1)


class CommentCreate(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True)

    text: str = Field(min_length=1, max_length=500)


class CommentView(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: int
    text: str
    created_at: str
    author_id: str
    author_username: str
    task_id: int

    @classmethod
    def from_comment(cls, comment: Comment) -> "CommentView":
        return cls(
            id=comment.id,
            text=comment.text,
            created_at=comment.created_at,
            author_id=comment.author_id,
            author_username=comment.author_username,
            task_id=comment.task_id,
        )


class TaskView(BaseModel):
    """A task with assignee details and its comments, oldest comment first."""

    model_config = ConfigDict(frozen=True)

    id: int
    title: str
    description: Optional[str]
    urgency: UrgencyLevel
    status: TaskStatus
    due_date: str
    created_at: str
    updated_at: str
    version: int
    assigned_to_user_id: str
    assigned_to_username: str
    assigned_to_email: str
    comments: list[CommentView] = Field(default_factory=list)

    @classmethod
    def from_task(cls, task: Task) -> "TaskView":
        """Factory Method: the dataclass -> API mapping lives beside the model."""
        return cls(
            id=task.id,
            title=task.title,
            description=task.description,
            urgency=task.urgency,
            status=task.status,
            due_date=task.due_date,
            created_at=task.created_at,
            updated_at=task.updated_at,
            version=task.version,
            assigned_to_user_id=task.assigned_to_user_id,
            assigned_to_username=task.assigned_to_username,
            assigned_to_email=task.assigned_to_email,
            comments=[CommentView.from_comment(c) for c in task.comments],
        )


# ---------------------------------------------------------------------------
# Notes
# ---------------------------------------------------------------------------


class NoteCreate(BaseModel):
    """Request body for POST /api/v1/notes and PUT /api/v1/notes/{id}."""

    model_config = ConfigDict(str_strip_whitespace=True)

    title: str = Field(min_length=1, max_length=100)
    description: Optional[str] = Field(default=None, max_length=1000)


NoteUpdate = NoteCreate


class NoteResponse(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: int
    title: str
    description: Optional[str]
    date_created: str

    @classmethod
    def from_note(cls, note: Note) -> "NoteResponse":
        return cls(id=note.id, title=note.title, description=note.description, date_created=note.date_created)


# ---------------------------------------------------------------------------
# Errors and health
# ---------------------------------------------------------------------------


class ErrorDetail(BaseModel):
    """Machine-readable error payload."""

    model_config = ConfigDict(frozen=True)

    code: str
    message: str
    detail: Optional[str] = None


class ErrorResponse(BaseModel):
    """Top-level error envelope returned on 4xx/5xx responses."""

    model_config = ConfigDict(frozen=True)

    error: ErrorDetail


class HealthResponse(BaseModel):
    """Response for GET /api/v1/health."""

    model_config = ConfigDict(frozen=True)

    status: str = "healthy"
    version: str
    components: dict[str, str] = Field(default_factory=dict)
