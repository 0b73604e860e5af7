"""
auth/dependencies.py -- FastAPI Depends() helpers for authentication.

Identity travels as an `Authorization: Bearer <token>` header. The token is
validated by the TokenIssuer built at startup (request.app.state.token_issuer)
and converted to a Claims object; route handlers only ever see Claims.

try_get_claims() is the soft variant (returns None on failure).
get_current_claims() wraps it and raises HTTP 401 if unauthenticated.
require_roles(*roles) runs the authorization guard and raises 401 or 403
depending on the decision's reason.

Layer rule: no imports from api/, tasks/, or notes/.
  auth/dependencies.py may import from fastapi (for Request/HTTPException)
  because this module is part of the FastAPI dependency injection system.
"""

from __future__ import annotations

from collections.abc import Callable

from fastapi import HTTPException, Request

from auth.guard import Decision, RequireAnyRole, RequireRole, authorize
from auth.models import ROLE_ADMIN, ROLE_USER, Claims
from auth.tokens import InvalidTokenError, TokenIssuer
from core.errors import ErrorReason


def try_get_claims(request: Request) -> Claims | None:
    """Return the verified claims for the request, or None.

    Never raises -- callers that need a hard 401 should use
    get_current_claims().
    """
    auth_header = request.headers.get("Authorization", "")
    scheme, _, token = auth_header.partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        return None
    issuer: TokenIssuer = request.app.state.token_issuer
    try:
        return issuer.validate(token.strip())
    except InvalidTokenError:
        return None


def _deny(decision: Decision) -> HTTPException:
    if decision.reason is ErrorReason.UNAUTHENTICATED:
        return HTTPException(
            status_code=401,
            detail={"code": "unauthorized", "message": decision.message},
            headers={"WWW-Authenticate": "Bearer"},
        )
    return HTTPException(
        status_code=403,
        detail={"code": "forbidden", "message": decision.message},
    )


def get_current_claims(request: Request) -> Claims:
    """Require authentication. Raises HTTP 401 if the request is not authenticated.

    Use as a FastAPI dependency:
        @router.get("/protected")
        def route(claims: Claims = Depends(get_current_claims)): ...
    """
    claims = try_get_claims(request)
    if claims is None:
        raise HTTPException(
            status_code=401,
            detail={"code": "unauthorized", "message": "Authentication required."},
            headers={"WWW-Authenticate": "Bearer"},
        )
    return claims


def require_roles(*roles: str) -> Callable[[Request], Claims]:
    """Build a dependency that admits callers holding any of `roles`.

    Use as a FastAPI dependency:
        @router.post("/admin-only")
        def route(claims: Claims = Depends(require_roles("Admin"))): ...
    """
    requirement = RequireRole(roles[0]) if len(roles) == 1 else RequireAnyRole(tuple(roles))

    def dependency(request: Request) -> Claims:
        claims = try_get_claims(request)
        decision = authorize(claims, requirement)
        if not decision.allowed:
            raise _deny(decision)
        return claims

    return dependency


require_admin = require_roles(ROLE_ADMIN)
require_member = require_roles(ROLE_USER, ROLE_ADMIN)
