"""
auth/store.py -- SQLAlchemy Core persistence layer for identities.

Pattern: Repository + Data Mapper (same as tasks/store.py).
IdentityStore is the repository; _row_to_identity is the mapper. Service and
dependency code never touches SQL directly.

Security:
  All queries use bound parameters. No f-strings in SQL.

  Username and email uniqueness is case-insensitive. The store writes a
  lowercased copy of each into normalized_username / normalized_email, and
  both carry a UNIQUE constraint. create_identity() pre-checks for friendly
  error messages, but the pre-check races with concurrent registrations --
  the constraint is what actually closes the race. An IntegrityError from
  the insert is translated back into the matching duplicate error.

  password_hash never leaves this module except inside the Identity
  dataclass, whose repr hides it.

Layer rule: no imports from api/, tasks/, or notes/.
"""

from __future__ import annotations

import uuid
from datetime import datetime, timezone

from sqlalchemy import Column, ForeignKey, Integer, PrimaryKeyConstraint, String, Table, Text, exists, select
from sqlalchemy.engine import Engine
from sqlalchemy.exc import IntegrityError

from auth.models import KNOWN_ROLES, Identity, IdentityResult
from auth.passwords import LockoutPolicy, PasswordPolicy, hash_password, verify_password
from core.db import metadata
from core.errors import ErrorReason

# ---------------------------------------------------------------------------
# Schema
# ---------------------------------------------------------------------------

identities = Table(
    "identities",
    metadata,
    Column("id", String(36), primary_key=True),
    Column("username", String(50), nullable=False),
    Column("normalized_username", String(50), nullable=False, unique=True),
    Column("email", String(255), nullable=False),
    Column("normalized_email", String(255), nullable=False, unique=True),
    Column("password_hash", Text, nullable=False),
    Column("email_confirmed", Integer, nullable=False, server_default="0"),
    Column("failed_attempts", Integer, nullable=False, server_default="0"),
    Column("locked_until", String(32)),  # ISO 8601, NULL when not locked
    Column("created_at", String(32), nullable=False),
)

identity_roles = Table(
    "identity_roles",
    metadata,
    Column("identity_id", String(36), ForeignKey("identities.id", ondelete="CASCADE"), nullable=False),
    Column("role", String(30), nullable=False),
    PrimaryKeyConstraint("identity_id", "role", name="pk_identity_roles"),
)

_DUPLICATE_EMAIL_MSG = "Email already exists."
_DUPLICATE_USERNAME_MSG = "Username already exists."


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _now() -> datetime:
    return datetime.now(timezone.utc)


def _normalize(value: str) -> str:
    return value.strip().lower()


# ---------------------------------------------------------------------------
# Repository
# ---------------------------------------------------------------------------


class IdentityStore:
    """Repository for Identity entities and their roles.

    Usage:
        store = IdentityStore(create_db_engine("sqlite://"))
        result = store.create_identity(Identity(username="alice", email="a@x.io"), "Secret123", roles=["User"])
        alice = store.find_by_username("ALICE")
    """

    def __init__(
        self,
        engine: Engine,
        policy: PasswordPolicy | None = None,
        lockout: LockoutPolicy | None = None,
    ) -> None:
        self.engine = engine
        self.policy = policy or PasswordPolicy()
        self.lockout = lockout or LockoutPolicy()
        metadata.create_all(self.engine)

    # ------------------------------------------------------------------
    # Lookups
    # ------------------------------------------------------------------

    def find_by_id(self, identity_id: str) -> Identity | None:
        return self._find_one(identities.c.id == identity_id)

    def find_by_username(self, username: str) -> Identity | None:
        """Case-insensitive username lookup. Returns None if not found."""
        return self._find_one(identities.c.normalized_username == _normalize(username))

    def find_by_email(self, email: str) -> Identity | None:
        """Case-insensitive email lookup. Returns None if not found."""
        return self._find_one(identities.c.normalized_email == _normalize(email))

    def _find_one(self, clause) -> Identity | None:
        with self.engine.connect() as conn:
            row = conn.execute(identities.select().where(clause)).fetchone()
            if row is None:
                return None
            roles = self._roles_for(conn, row.id)
        return _row_to_identity(row, roles)

    def list_identities(self) -> list[Identity]:
        """Return all identities ordered by username."""
        with self.engine.connect() as conn:
            rows = conn.execute(identities.select().order_by(identities.c.normalized_username)).fetchall()
            return [_row_to_identity(r, self._roles_for(conn, r.id)) for r in rows]

    def list_identities_without_role(self, role: str) -> list[Identity]:
        """Return identities that do NOT hold `role`, ordered by username."""
        holds_role = exists().where((identity_roles.c.identity_id == identities.c.id) & (identity_roles.c.role == role))
        with self.engine.connect() as conn:
            rows = conn.execute(
                identities.select().where(~holds_role).order_by(identities.c.normalized_username)
            ).fetchall()
            return [_row_to_identity(r, self._roles_for(conn, r.id)) for r in rows]

    # ------------------------------------------------------------------
    # Creation
    # ------------------------------------------------------------------

    def create_identity(self, identity: Identity, password: str, roles: list[str]) -> IdentityResult:
        """Validate, hash and insert a new identity together with its roles.

        Checks run in a fixed order -- email, username, password policy -- and
        the first failing group is returned. The identity row and its role
        rows are written in one transaction.

        Raises ValueError when roles is empty or names a role outside
        KNOWN_ROLES (a programming error, not user input). Other storage
        errors propagate to the caller.
        """
        roles = list(roles)
        if not roles:
            raise ValueError("An identity needs at least one role.")
        unknown = set(roles) - KNOWN_ROLES
        if unknown:
            raise ValueError(f"Unknown roles: {sorted(unknown)!r}")

        if self.find_by_email(identity.email) is not None:
            return IdentityResult(errors=[(ErrorReason.DUPLICATE_EMAIL, _DUPLICATE_EMAIL_MSG)])
        if self.find_by_username(identity.username) is not None:
            return IdentityResult(errors=[(ErrorReason.DUPLICATE_USERNAME, _DUPLICATE_USERNAME_MSG)])
        violations = self.policy.validate(password)
        if violations:
            return IdentityResult(errors=[(ErrorReason.WEAK_PASSWORD, v) for v in violations])

        identity_id = str(uuid.uuid4())
        created_at = _now().isoformat()
        password_hash = hash_password(password)
        try:
            with self.engine.begin() as conn:
                conn.execute(
                    identities.insert().values(
                        id=identity_id,
                        username=identity.username.strip(),
                        normalized_username=_normalize(identity.username),
                        email=identity.email.strip(),
                        normalized_email=_normalize(identity.email),
                        password_hash=password_hash,
                        email_confirmed=1 if identity.email_confirmed else 0,
                        created_at=created_at,
                    )
                )
                for role in roles:
                    conn.execute(identity_roles.insert().values(identity_id=identity_id, role=role))
        except IntegrityError:
            # Lost the race against a concurrent insert; the constraint caught it.
            if self.find_by_email(identity.email) is not None:
                return IdentityResult(errors=[(ErrorReason.DUPLICATE_EMAIL, _DUPLICATE_EMAIL_MSG)])
            if self.find_by_username(identity.username) is not None:
                return IdentityResult(errors=[(ErrorReason.DUPLICATE_USERNAME, _DUPLICATE_USERNAME_MSG)])
            raise
        return IdentityResult(identity=self.find_by_id(identity_id))

    # ------------------------------------------------------------------
    # Credentials and roles
    # ------------------------------------------------------------------

    def verify_password(self, identity: Identity, plain: str) -> bool:
        return verify_password(plain, identity.password_hash)

    def roles_of(self, identity: Identity) -> set[str]:
        with self.engine.connect() as conn:
            return set(self._roles_for(conn, identity.id))

    def add_role(self, identity: Identity, role: str) -> None:
        """Grant `role` to the identity. Granting a held role is a no-op."""
        if role not in KNOWN_ROLES:
            raise ValueError(f"Unknown role: {role!r}")
        with self.engine.begin() as conn:
            already = conn.execute(
                select(identity_roles.c.role).where(
                    (identity_roles.c.identity_id == identity.id) & (identity_roles.c.role == role)
                )
            ).fetchone()
            if already is None:
                conn.execute(identity_roles.insert().values(identity_id=identity.id, role=role))
        if role not in identity.roles:
            identity.roles.append(role)

    @staticmethod
    def _roles_for(conn, identity_id: str) -> list[str]:
        rows = conn.execute(
            select(identity_roles.c.role)
            .where(identity_roles.c.identity_id == identity_id)
            .order_by(identity_roles.c.role)
        ).fetchall()
        return [r.role for r in rows]

    # ------------------------------------------------------------------
    # Lockout
    # ------------------------------------------------------------------

    def is_locked_out(self, identity: Identity, now: datetime | None = None) -> bool:
        if not identity.locked_until:
            return False
        return datetime.fromisoformat(identity.locked_until) > (now or _now())

    def record_failed_attempt(self, identity: Identity, now: datetime | None = None) -> bool:
        """Count a failed verification. Returns True if this attempt started a lockout.

        The counter is incremented in SQL (not read-modify-write in Python) so
        two concurrent failures both count. Starting a lockout resets the
        counter, so the next window starts from zero.
        """
        now = now or _now()
        with self.engine.begin() as conn:
            conn.execute(
                identities.update()
                .where(identities.c.id == identity.id)
                .values(failed_attempts=identities.c.failed_attempts + 1)
            )
            count = conn.execute(
                select(identities.c.failed_attempts).where(identities.c.id == identity.id)
            ).scalar_one()
            locked = count >= self.lockout.max_failed_attempts
            if locked:
                locked_until = (now + self.lockout.duration).isoformat()
                conn.execute(
                    identities.update()
                    .where(identities.c.id == identity.id)
                    .values(failed_attempts=0, locked_until=locked_until)
                )
                identity.failed_attempts = 0
                identity.locked_until = locked_until
            else:
                identity.failed_attempts = count
        return locked

    def reset_failed_attempts(self, identity: Identity) -> None:
        with self.engine.begin() as conn:
            conn.execute(
                identities.update().where(identities.c.id == identity.id).values(failed_attempts=0, locked_until=None)
            )
        identity.failed_attempts = 0
        identity.locked_until = None


# ---------------------------------------------------------------------------
# Row mapper (Data Mapper pattern)
# ---------------------------------------------------------------------------


def _row_to_identity(row, roles: list[str]) -> Identity:
    return Identity(
        id=row.id,
        username=row.username,
        email=row.email,
        password_hash=row.password_hash,
        roles=list(roles),
        email_confirmed=bool(row.email_confirmed),
        failed_attempts=row.failed_attempts,
        locked_until=row.locked_until,
        created_at=row.created_at,
    )
