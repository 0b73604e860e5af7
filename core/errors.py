"""
core/errors.py -- The closed error taxonomy shared by every service.

Service operations never raise for expected failures. They return an
ErrorReason (alone or paired with a payload) and the HTTP layer maps each
reason to a response in exactly one table (api/errors.py). Adding a member
here without a mapping there fails at import time.
"""

from enum import Enum


class ErrorReason(str, Enum):
    SUCCESS = "Success"
    NOT_FOUND = "NotFound"
    FORBIDDEN = "Forbidden"  # authenticated, insufficient privilege
    UNAUTHENTICATED = "Unauthenticated"  # no token or an invalid one
    USER_NOT_FOUND = "UserNotFound"  # a referenced identity is missing
    DUPLICATE_EMAIL = "DuplicateEmail"
    DUPLICATE_USERNAME = "DuplicateUsername"
    WEAK_PASSWORD = "WeakPassword"
    INVALID_CREDENTIALS = "InvalidCredentials"
    ACCOUNT_LOCKED = "AccountLocked"
    CONCURRENCY_ERROR = "ConcurrencyError"
    DATABASE_ERROR = "DatabaseError"
