"""
api/errors.py -- The one place an ErrorReason becomes an HTTP response.

Core code (auth/, tasks/, notes/) reports outcomes as ErrorReason values and
never picks status codes. Route handlers call error_for_reason() and raise
the result; the HTTPException handler in api/main.py wraps the detail dict
in the standard {"error": {...}} envelope.

The table must cover every ErrorReason except SUCCESS. A missing entry fails
at import time, so a new reason cannot ship without a status.
"""

from fastapi import HTTPException

from core.errors import ErrorReason

_GENERIC_DB_MESSAGE = "An error occurred while processing the request."

# reason -> (status, code, default message)
ERROR_TABLE: dict[ErrorReason, tuple[int, str, str]] = {
    ErrorReason.NOT_FOUND: (404, "not_found", "Resource not found."),
    ErrorReason.FORBIDDEN: (403, "forbidden", "You do not have permission to perform this action."),
    ErrorReason.UNAUTHENTICATED: (401, "unauthorized", "Authentication required."),
    ErrorReason.USER_NOT_FOUND: (422, "user_not_found", "The referenced user does not exist."),
    ErrorReason.DUPLICATE_EMAIL: (409, "duplicate_email", "Email already exists."),
    ErrorReason.DUPLICATE_USERNAME: (409, "duplicate_username", "Username already exists."),
    ErrorReason.WEAK_PASSWORD: (400, "weak_password", "Password does not meet the password policy."),
    ErrorReason.INVALID_CREDENTIALS: (401, "invalid_credentials", "Invalid username/email or password."),
    ErrorReason.ACCOUNT_LOCKED: (423, "account_locked", "Account is temporarily locked."),
    ErrorReason.CONCURRENCY_ERROR: (
        409,
        "concurrency_conflict",
        "The resource was modified by another request. Reload it and try again.",
    ),
    ErrorReason.DATABASE_ERROR: (500, "database_error", _GENERIC_DB_MESSAGE),
}

_missing = {r for r in ErrorReason if r is not ErrorReason.SUCCESS} - ERROR_TABLE.keys()
if _missing:
    raise RuntimeError(f"ErrorReason values without an HTTP mapping: {sorted(r.value for r in _missing)}")


def status_for_reason(reason: ErrorReason) -> int:
    return ERROR_TABLE[reason][0]


def error_for_reason(reason: ErrorReason, message: str | None = None) -> HTTPException:
    """Build the HTTPException for a failed outcome.

    `message` overrides the default text, except for DATABASE_ERROR, whose
    outward message is always the generic one. Raises ValueError for SUCCESS.
    """
    if reason is ErrorReason.SUCCESS:
        raise ValueError("SUCCESS is not an error")
    status, code, default = ERROR_TABLE[reason]
    if reason is ErrorReason.DATABASE_ERROR or not message:
        message = default
    headers = {"WWW-Authenticate": "Bearer"} if reason is ErrorReason.UNAUTHENTICATED else None
    return HTTPException(status_code=status, detail={"code": code, "message": message}, headers=headers)
