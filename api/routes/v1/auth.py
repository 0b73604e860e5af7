"""
api/routes/v1/auth.py -- Registration and login REST endpoints.

Routes:
  POST /api/v1/auth/register  -- create a User-role account; returns a token
  POST /api/v1/auth/login     -- username or email + password; returns a token

Both answer with the AuthResponse envelope on success and on failure, so
clients parse one shape. The status code comes from api/errors.py.

Security:
  [H2] Both routes are rate-limited per IP (LOGIN_RATE_LIMIT).
  [C1] AuthService.login() provides timing equalization and one message for
       unknown account and wrong password -- use it, never inline.
  [M5] Cache-Control: no-store on every response that may carry a token.
"""

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse

from api.errors import status_for_reason
from api.limiter import limiter
from api.models import AuthResponse, LoginRequest, RegisterRequest
from auth.models import AuthResult
from auth.service import AuthService
from core.config import get_settings

# Auth policy:
# - POST /api/v1/auth/register: public -- self-service signup, always role User
# - POST /api/v1/auth/login:    public -- login endpoint must be unauthenticated
router = APIRouter()

_LIMIT = get_settings().login_rate_limit


def _respond(result: AuthResult) -> JSONResponse:
    status = 200 if result.succeeded else status_for_reason(result.reason)
    resp = JSONResponse(status_code=status, content=AuthResponse.from_result(result).model_dump())
    resp.headers["Cache-Control"] = "no-store"  # [M5]
    return resp


@limiter.limit(_LIMIT)  # [H2] must be ABOVE @router to preserve FastAPI introspection
@router.post("/auth/register", response_model=AuthResponse)
def register(request: Request, body: RegisterRequest) -> JSONResponse:
    """Register a new account with the User role and return a token for it."""
    service: AuthService = request.app.state.auth_service
    return _respond(service.register(body.username, body.email, body.password))


@limiter.limit(_LIMIT)  # [H2] brute-force mitigation
@router.post("/auth/login", response_model=AuthResponse)
def login(request: Request, body: LoginRequest) -> JSONResponse:
    """Authenticate with username or email and password.

    Unknown account and wrong password return the same 401 body. A locked
    account returns 423 until the lockout window passes.
    """
    service: AuthService = request.app.state.auth_service
    return _respond(service.login(body.username_or_email, body.password))
