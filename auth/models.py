"""
auth/models.py -- Domain dataclasses for authentication entities.

Pattern: Data class (pure data container, zero logic beyond trivial
properties). Stores and services do the work.

Layer rule: no imports from api/, tasks/, or notes/.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime

from core.errors import ErrorReason

ROLE_ADMIN = "Admin"
ROLE_USER = "User"
KNOWN_ROLES = frozenset({ROLE_ADMIN, ROLE_USER})


@dataclass
class Identity:
    """A registered principal.

    password_hash is excluded from repr so it never lands in a log line by
    accident. Response models never carry it either.

    id is None before the record is written to the database; the store
    assigns a uuid4 string on insert.
    """

    username: str
    email: str
    id: str | None = None
    password_hash: str = field(default="", repr=False)
    roles: list[str] = field(default_factory=list)
    email_confirmed: bool = False
    failed_attempts: int = 0
    locked_until: str | None = None  # ISO 8601, None when not locked
    created_at: str | None = None


@dataclass
class IdentityResult:
    """Outcome of IdentityStore.create_identity().

    errors holds (reason, description) pairs. The reason is one of
    DUPLICATE_EMAIL, DUPLICATE_USERNAME or WEAK_PASSWORD; a weak password
    produces one entry per policy violation.
    """

    identity: Identity | None = None
    errors: list[tuple[ErrorReason, str]] = field(default_factory=list)

    @property
    def succeeded(self) -> bool:
        return self.identity is not None and not self.errors


@dataclass(frozen=True)
class Claims:
    """The decoded, verified contents of a bearer token."""

    identity_id: str
    username: str
    email: str
    roles: frozenset[str]
    token_id: str
    issued_at: datetime
    expires_at: datetime

    def has_role(self, role: str) -> bool:
        return role in self.roles


@dataclass
class AuthResult:
    """Uniform envelope returned by register() and login().

    Callers must treat a missing token as failure even when is_success is
    set -- `succeeded` encodes that rule so nobody re-implements it.
    """

    is_success: bool
    message: str
    reason: ErrorReason = ErrorReason.SUCCESS
    token: str | None = None
    identity_id: str | None = None
    username: str | None = None
    email: str | None = None
    roles: list[str] = field(default_factory=list)

    @property
    def succeeded(self) -> bool:
        return self.is_success and bool(self.token)

    @classmethod
    def failure(cls, reason: ErrorReason, message: str) -> AuthResult:
        return cls(is_success=False, message=message, reason=reason)
