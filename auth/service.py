"""
auth/service.py -- Registration, login and admin bootstrap.

AuthService orchestrates the IdentityStore (lookups, creation, lockout
bookkeeping) and the TokenIssuer, and always answers with the AuthResult
envelope. It never raises for expected failures.

Enumeration resistance [C1]:
  An unknown account and a wrong password produce the same reason, the same
  message and (via the dummy bcrypt run) roughly the same response time.
  Lockout is the one deliberately distinct answer -- a locked user needs to
  know to wait rather than to retype.

Storage failures are logged with full detail and returned as DATABASE_ERROR
with a generic message.

Layer rule: no imports from api/, tasks/, or notes/.
"""

from __future__ import annotations

import logging

from sqlalchemy.exc import SQLAlchemyError

from auth.models import ROLE_ADMIN, ROLE_USER, AuthResult, Identity
from auth.passwords import DUMMY_HASH, verify_password
from auth.store import IdentityStore
from auth.tokens import TokenIssuer
from core.errors import ErrorReason

logger = logging.getLogger("taskdesk.auth")

INVALID_CREDENTIALS_MSG = "Invalid username/email or password."
ACCOUNT_LOCKED_MSG = "Account is temporarily locked due to repeated failed logins. Try again later."
_DATABASE_ERROR_MSG = "An error occurred while processing the request."


class AuthService:
    def __init__(self, store: IdentityStore, issuer: TokenIssuer) -> None:
        self.store = store
        self.issuer = issuer

    # ------------------------------------------------------------------
    # Registration
    # ------------------------------------------------------------------

    def register(self, username: str, email: str, password: str) -> AuthResult:
        """Create a User-role identity and return a token for it.

        Email is auto-confirmed; there is no verification flow.
        """
        try:
            result = self.store.create_identity(
                Identity(username=username, email=email, email_confirmed=True),
                password,
                roles=[ROLE_USER],
            )
            if result.succeeded:
                logger.info("Registered identity %s (%s)", result.identity.username, result.identity.id)
                return self._success(result.identity, "User registered successfully!")
        except SQLAlchemyError:
            logger.exception("Database error registering %s", username)
            return AuthResult.failure(ErrorReason.DATABASE_ERROR, _DATABASE_ERROR_MSG)

        reason, description = result.errors[0]
        if reason is ErrorReason.WEAK_PASSWORD:
            details = ", ".join(d for _, d in result.errors)
            return AuthResult.failure(reason, f"User creation failed: {details}")
        return AuthResult.failure(reason, description)

    # ------------------------------------------------------------------
    # Login
    # ------------------------------------------------------------------

    def login(self, username_or_email: str, password: str) -> AuthResult:
        """Authenticate by username (first) or email, with timing equalization.

        Always runs bcrypt -- against DUMMY_HASH when the account does not
        exist -- so response time does not reveal which accounts exist.
        """
        try:
            identity = self.store.find_by_username(username_or_email) or self.store.find_by_email(username_or_email)
            if identity is None:
                verify_password(password, DUMMY_HASH)
                return AuthResult.failure(ErrorReason.INVALID_CREDENTIALS, INVALID_CREDENTIALS_MSG)

            if self.store.is_locked_out(identity):
                logger.warning("Login attempt on locked account %s", identity.id)
                return AuthResult.failure(ErrorReason.ACCOUNT_LOCKED, ACCOUNT_LOCKED_MSG)

            if not self.store.verify_password(identity, password):
                if self.store.record_failed_attempt(identity):
                    logger.warning("Account %s locked after repeated failed logins", identity.id)
                return AuthResult.failure(ErrorReason.INVALID_CREDENTIALS, INVALID_CREDENTIALS_MSG)

            if identity.failed_attempts or identity.locked_until:
                self.store.reset_failed_attempts(identity)
            return self._success(identity, "Login successful!")
        except SQLAlchemyError:
            logger.exception("Database error during login")
            return AuthResult.failure(ErrorReason.DATABASE_ERROR, _DATABASE_ERROR_MSG)

    # ------------------------------------------------------------------
    # Bootstrap
    # ------------------------------------------------------------------

    def seed_admin(self, username: str, email: str, password: str) -> AuthResult:
        """Create the admin account if no identity owns `email` yet.

        Idempotent: an existing account is left as is (its roles included)
        and reported as a success without a token.
        """
        if self.store.find_by_email(email) is not None:
            logger.info("Admin account %s already exists", email)
            return AuthResult(is_success=True, message="Admin user already exists.")

        result = self.store.create_identity(
            Identity(username=username, email=email, email_confirmed=True),
            password,
            roles=[ROLE_ADMIN],
        )
        if not result.succeeded:
            details = ", ".join(description for _, description in result.errors)
            logger.error("Error creating admin user: %s", details)
            return AuthResult.failure(result.errors[0][0], f"Error creating admin user: {details}")

        logger.info("Admin user %s created and assigned %s role", username, ROLE_ADMIN)
        return self._success(result.identity, "Admin user created.")

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _success(self, identity: Identity, message: str) -> AuthResult:
        roles = sorted(self.store.roles_of(identity))
        return AuthResult(
            is_success=True,
            message=message,
            token=self.issuer.issue(identity, roles),
            identity_id=identity.id,
            username=identity.username,
            email=identity.email,
            roles=roles,
        )
