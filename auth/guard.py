"""
auth/guard.py -- Pure authorization decisions.

authorize(claims, requirement) never touches storage. Callers resolve any
resource owner id first (e.g. the task's assignee) and pass it in the
requirement. That keeps every decision testable as a plain function and lets
the same guard serve FastAPI dependencies and the task engine.

Deny reasons:
  UNAUTHENTICATED -- no claims at all (missing or invalid token). Maps to 401.
  FORBIDDEN       -- authenticated but lacking privilege. Maps to 403.

Layer rule: no imports from api/, tasks/, or notes/.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Union

from auth.models import Claims
from core.errors import ErrorReason


@dataclass(frozen=True)
class RequireRole:
    role: str


@dataclass(frozen=True)
class RequireAnyRole:
    roles: tuple[str, ...]


@dataclass(frozen=True)
class RequireOwnerOrRole:
    """Allow the resource owner, or anyone holding `role`."""

    owner_id: str
    role: str


Requirement = Union[RequireRole, RequireAnyRole, RequireOwnerOrRole]


@dataclass(frozen=True)
class Decision:
    allowed: bool
    reason: ErrorReason = ErrorReason.SUCCESS
    message: str = ""


ALLOW = Decision(allowed=True)


def authorize(claims: Claims | None, requirement: Requirement) -> Decision:
    """Return ALLOW or a deny Decision carrying UNAUTHENTICATED / FORBIDDEN."""
    if claims is None:
        return Decision(False, ErrorReason.UNAUTHENTICATED, "Authentication required.")

    if isinstance(requirement, RequireRole):
        allowed = requirement.role in claims.roles
        message = f"{requirement.role} role required."
    elif isinstance(requirement, RequireAnyRole):
        allowed = not claims.roles.isdisjoint(requirement.roles)
        message = f"One of these roles is required: {', '.join(requirement.roles)}."
    elif isinstance(requirement, RequireOwnerOrRole):
        allowed = claims.identity_id == requirement.owner_id or requirement.role in claims.roles
        message = "You do not have access to this resource."
    else:
        raise TypeError(f"Unsupported requirement: {requirement!r}")

    if allowed:
        return ALLOW
    return Decision(False, ErrorReason.FORBIDDEN, message)
