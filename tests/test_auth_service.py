"""
tests/test_auth_service.py -- Unit tests for auth/service.py (AuthService).

Covers:
  - register(): token roles are exactly {User}, duplicate and weak-password
    failures, email precedence
  - login(): by username and by email, enumeration-identical failures,
    lockout after repeated failures, counter reset on success
  - seed_admin(): creation with Admin role, idempotency
  - storage failures surface as DATABASE_ERROR with a generic message
"""

from __future__ import annotations

import pytest
from sqlalchemy.exc import OperationalError

from auth.service import ACCOUNT_LOCKED_MSG, INVALID_CREDENTIALS_MSG, AuthService
from auth.tokens import TokenIssuer
from core.errors import ErrorReason

PASSWORD = "Abcdef12"


class TestRegister:
    def test_token_roles_are_exactly_user(self, auth_service: AuthService, issuer: TokenIssuer) -> None:
        result = auth_service.register("alice", "alice@example.com", PASSWORD)
        assert result.succeeded
        assert result.message == "User registered successfully!"
        assert result.roles == ["User"]
        claims = issuer.validate(result.token)
        assert claims.roles == frozenset({"User"})
        assert claims.identity_id == result.identity_id

    def test_email_auto_confirmed(self, auth_service: AuthService) -> None:
        result = auth_service.register("alice", "alice@example.com", PASSWORD)
        assert auth_service.store.find_by_id(result.identity_id).email_confirmed is True

    def test_duplicate_email_regardless_of_username(self, auth_service: AuthService) -> None:
        auth_service.register("alice", "alice@example.com", PASSWORD)
        result = auth_service.register("brand-new-name", "alice@example.com", PASSWORD)
        assert not result.succeeded
        assert result.reason is ErrorReason.DUPLICATE_EMAIL
        assert result.token is None

    def test_duplicate_username(self, auth_service: AuthService) -> None:
        auth_service.register("alice", "alice@example.com", PASSWORD)
        result = auth_service.register("Alice", "other@example.com", PASSWORD)
        assert result.reason is ErrorReason.DUPLICATE_USERNAME

    def test_weak_password_message_carries_violations(self, auth_service: AuthService) -> None:
        result = auth_service.register("alice", "alice@example.com", "abcdefgh")
        assert result.reason is ErrorReason.WEAK_PASSWORD
        assert result.message == (
            "User creation failed: "
            "Passwords must have at least one digit ('0'-'9')., "
            "Passwords must have at least one uppercase ('A'-'Z')."
        )

    def test_password_over_72_bytes_is_weak_not_a_crash(self, auth_service: AuthService) -> None:
        result = auth_service.register("alice", "alice@example.com", "Abcdef12" * 10)
        assert result.reason is ErrorReason.WEAK_PASSWORD
        assert "72 bytes" in result.message
        assert auth_service.store.find_by_username("alice") is None

    def test_storage_failure(self, auth_service: AuthService, monkeypatch: pytest.MonkeyPatch) -> None:
        def boom(*args, **kwargs):
            raise OperationalError("INSERT", {}, Exception("disk I/O error"))

        monkeypatch.setattr(auth_service.store, "create_identity", boom)
        result = auth_service.register("alice", "alice@example.com", PASSWORD)
        assert result.reason is ErrorReason.DATABASE_ERROR
        assert "disk" not in result.message


class TestLogin:
    @pytest.fixture(autouse=True)
    def _alice(self, auth_service: AuthService) -> None:
        auth_service.register("alice", "alice@example.com", PASSWORD)

    def test_by_username(self, auth_service: AuthService) -> None:
        result = auth_service.login("alice", PASSWORD)
        assert result.succeeded
        assert result.message == "Login successful!"

    def test_by_email_case_insensitive(self, auth_service: AuthService) -> None:
        assert auth_service.login("ALICE@example.com", PASSWORD).succeeded

    def test_unknown_and_wrong_password_are_indistinguishable(self, auth_service: AuthService) -> None:
        wrong = auth_service.login("alice", "Wrong1234")
        unknown = auth_service.login("nobody", "Wrong1234")
        assert wrong.reason is unknown.reason is ErrorReason.INVALID_CREDENTIALS
        assert wrong.message == unknown.message == INVALID_CREDENTIALS_MSG
        assert wrong.token is None and unknown.token is None

    def test_lockout_after_five_failures(self, auth_service: AuthService) -> None:
        for _ in range(5):
            assert auth_service.login("alice", "Wrong1234").reason is ErrorReason.INVALID_CREDENTIALS
        locked = auth_service.login("alice", PASSWORD)
        assert locked.reason is ErrorReason.ACCOUNT_LOCKED
        assert locked.message == ACCOUNT_LOCKED_MSG
        assert not locked.succeeded

    def test_success_resets_failure_counter(self, auth_service: AuthService) -> None:
        for _ in range(4):
            auth_service.login("alice", "Wrong1234")
        assert auth_service.login("alice", PASSWORD).succeeded
        assert auth_service.store.find_by_username("alice").failed_attempts == 0
        # Four more failures do not lock, because the count started over.
        for _ in range(4):
            auth_service.login("alice", "Wrong1234")
        assert auth_service.login("alice", PASSWORD).succeeded

    def test_storage_failure(self, auth_service: AuthService, monkeypatch: pytest.MonkeyPatch) -> None:
        def boom(*args, **kwargs):
            raise OperationalError("SELECT", {}, Exception("database is locked"))

        monkeypatch.setattr(auth_service.store, "find_by_username", boom)
        result = auth_service.login("alice", PASSWORD)
        assert result.reason is ErrorReason.DATABASE_ERROR
        assert result.message == "An error occurred while processing the request."


class TestSeedAdmin:
    def test_creates_admin(self, auth_service: AuthService, issuer: TokenIssuer) -> None:
        result = auth_service.seed_admin("adminuser", "admin@example.com", PASSWORD)
        assert result.succeeded
        assert issuer.validate(result.token).roles == frozenset({"Admin"})

    def test_idempotent(self, auth_service: AuthService) -> None:
        auth_service.seed_admin("adminuser", "admin@example.com", PASSWORD)
        again = auth_service.seed_admin("adminuser", "admin@example.com", PASSWORD)
        assert again.is_success
        assert again.token is None
        assert again.message == "Admin user already exists."
        assert len(auth_service.store.list_identities()) == 1

    def test_weak_password_is_reported(self, auth_service: AuthService) -> None:
        result = auth_service.seed_admin("adminuser", "admin@example.com", "short")
        assert not result.is_success
        assert result.reason is ErrorReason.WEAK_PASSWORD

    def test_password_over_72_bytes_is_reported(self, auth_service: AuthService) -> None:
        result = auth_service.seed_admin("adminuser", "admin@example.com", "Abcdef12" * 10)
        assert not result.is_success
        assert result.reason is ErrorReason.WEAK_PASSWORD
        assert "72 bytes" in result.message
