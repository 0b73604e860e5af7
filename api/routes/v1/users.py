"""
api/routes/v1/users.py -- Caller profile and role-probe endpoints.

Routes:
  GET /api/v1/users/profile             -- any authenticated caller
  GET /api/v1/users/user-specific-data  -- role User only
"""

from fastapi import APIRouter, Depends

from api.models import MessageResponse, ProfileResponse
from auth.dependencies import get_current_claims, require_roles
from auth.models import ROLE_USER, Claims

router = APIRouter()


@router.get("/users/profile", response_model=ProfileResponse)
async def profile(claims: Claims = Depends(get_current_claims)) -> ProfileResponse:
    """Return the caller's identity as carried by the token. No database hit."""
    return ProfileResponse(
        identity_id=claims.identity_id,
        username=claims.username,
        email=claims.email,
        roles=sorted(claims.roles),
    )


@router.get("/users/user-specific-data", response_model=MessageResponse)
async def user_specific_data(claims: Claims = Depends(require_roles(ROLE_USER))) -> MessageResponse:
    return MessageResponse(message=f"Data for user {claims.username}.")
