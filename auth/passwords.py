"""
auth/passwords.py -- Password policy, bcrypt hashing, and lockout policy.

Security design decisions:
  Passwords: bcrypt directly, no passlib wrapper. passlib's wrap-bug
       detection builds a password longer than 72 bytes, which bcrypt 4.x
       rejects with an explicit error. The cost factor comes from
       Settings.bcrypt_rounds (12 in production, lowered in tests).

  Timing equalization: DUMMY_HASH is computed once at module load. Login
       always runs bcrypt, against the real hash or against DUMMY_HASH, so
       response time does not reveal whether an account exists [C1].

  Policy: defaults match the account rules the web client was built
       against -- 8+ chars, a digit, an uppercase and a lowercase letter.
       Non-alphanumerics are not required.

Layer rule: no imports from api/, tasks/, or notes/.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import timedelta

import bcrypt

from core.config import Settings, get_settings

_settings = get_settings()

# bcrypt only hashes this many bytes; bcrypt 5 raises on longer input.
MAX_PASSWORD_BYTES = 72


# ---------------------------------------------------------------------------
# Hashing
# ---------------------------------------------------------------------------


def hash_password(plain: str) -> str:
    """Return a salted bcrypt hash of the plaintext password.

    Callers must keep the input within MAX_PASSWORD_BYTES once UTF-8
    encoded. PasswordPolicy.validate enforces that before anything is stored.
    """
    salt = bcrypt.gensalt(rounds=_settings.bcrypt_rounds)
    return bcrypt.hashpw(plain.encode("utf-8"), salt).decode("utf-8")


def verify_password(plain: str, hashed: str) -> bool:
    """Return True if the plaintext password matches the bcrypt hash."""
    try:
        return bcrypt.checkpw(plain.encode("utf-8"), hashed.encode("utf-8"))
    except ValueError:
        # Malformed or empty stored hash
        return False


DUMMY_HASH: str = hash_password("taskdesk_timing_dummy")


# ---------------------------------------------------------------------------
# Policy
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class PasswordPolicy:
    min_length: int = 8
    require_digit: bool = True
    require_uppercase: bool = True
    require_lowercase: bool = True
    require_non_alphanumeric: bool = False
    required_unique_chars: int = 1

    @classmethod
    def from_settings(cls, settings: Settings) -> PasswordPolicy:
        return cls(
            min_length=settings.password_min_length,
            require_digit=settings.password_require_digit,
            require_uppercase=settings.password_require_uppercase,
            require_lowercase=settings.password_require_lowercase,
            require_non_alphanumeric=settings.password_require_non_alphanumeric,
            required_unique_chars=settings.password_required_unique_chars,
        )

    def validate(self, plain: str) -> list[str]:
        """Return every policy violation as a human-readable sentence.

        An empty list means the password is acceptable. All rules are
        checked so the caller can show the full list at once.
        """
        violations: list[str] = []
        if len(plain) < self.min_length:
            violations.append(f"Passwords must be at least {self.min_length} characters.")
        if self.require_digit and not any(c.isdigit() for c in plain):
            violations.append("Passwords must have at least one digit ('0'-'9').")
        if self.require_uppercase and not any(c.isupper() for c in plain):
            violations.append("Passwords must have at least one uppercase ('A'-'Z').")
        if self.require_lowercase and not any(c.islower() for c in plain):
            violations.append("Passwords must have at least one lowercase ('a'-'z').")
        if self.require_non_alphanumeric and all(c.isalnum() for c in plain):
            violations.append("Passwords must have at least one non alphanumeric character.")
        if len(set(plain)) < self.required_unique_chars:
            violations.append(f"Passwords must use at least {self.required_unique_chars} different characters.")
        if len(plain.encode("utf-8")) > MAX_PASSWORD_BYTES:
            violations.append(f"Passwords must be at most {MAX_PASSWORD_BYTES} bytes when UTF-8 encoded.")
        return violations


# ---------------------------------------------------------------------------
# Lockout
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class LockoutPolicy:
    """After max_failed_attempts consecutive failures, lock for `duration`."""

    max_failed_attempts: int = 5
    duration: timedelta = timedelta(minutes=5)

    @classmethod
    def from_settings(cls, settings: Settings) -> LockoutPolicy:
        return cls(
            max_failed_attempts=settings.lockout_max_failed_attempts,
            duration=timedelta(minutes=settings.lockout_minutes),
        )
