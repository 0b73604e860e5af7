"""
tests/conftest.py -- Shared test fixtures for TaskDesk.

This module provides:
  - engine / identity_store / task_store / note_store: a fresh in-memory
    database per test (StaticPool, FK enforcement on)
  - issuer / auth_service / task_engine: services over those stores
  - make_identity(): create an identity with given roles in one call
  - claims_for(): mint and validate a token, returning real Claims
  - api_client: TestClient over the real app with a patched lifespan

Environment variables must be set before any project import: get_settings()
is cached on first call, and auth/passwords.py reads bcrypt rounds at import.
  DEBUG=true                -- auto-generate the signing secret
  BCRYPT_ROUNDS=4           -- keep hashing fast
  RATE_LIMIT_ENABLED=false  -- login tests hit the endpoint repeatedly
"""

from __future__ import annotations

import os
from collections.abc import Callable, Generator
from contextlib import asynccontextmanager
from dataclasses import dataclass

# CRITICAL: Set before any project import.
os.environ.setdefault("DEBUG", "true")
os.environ.setdefault("BCRYPT_ROUNDS", "4")
os.environ.setdefault("RATE_LIMIT_ENABLED", "false")

import pytest
from fastapi.testclient import TestClient

from api.main import app
from auth.models import ROLE_ADMIN, ROLE_USER, Claims, Identity
from auth.service import AuthService
from auth.store import IdentityStore
from auth.tokens import TokenIssuer
from core.db import create_db_engine
from notes.store import NoteStore
from tasks.engine import TaskEngine
from tasks.store import TaskStore

TEST_SECRET = "test-secret-key-that-is-long-enough-0123456789"
TEST_ISSUER = "taskdesk-tests"
TEST_AUDIENCE = "taskdesk-test-clients"
TEST_PASSWORD = "Passw0rd!"


# ---------------------------------------------------------------------------
# Unit-level fixtures -- one fresh database per test
# ---------------------------------------------------------------------------


@pytest.fixture
def engine():
    eng = create_db_engine("sqlite://")
    yield eng
    eng.dispose()


@pytest.fixture
def identity_store(engine) -> IdentityStore:
    return IdentityStore(engine)


@pytest.fixture
def task_store(engine, identity_store) -> TaskStore:
    return TaskStore(engine)


@pytest.fixture
def note_store(engine, identity_store) -> NoteStore:
    return NoteStore(engine)


@pytest.fixture
def issuer() -> TokenIssuer:
    return TokenIssuer(TEST_SECRET, TEST_ISSUER, TEST_AUDIENCE)


@pytest.fixture
def auth_service(identity_store, issuer) -> AuthService:
    return AuthService(identity_store, issuer)


@pytest.fixture
def task_engine(task_store, identity_store) -> TaskEngine:
    return TaskEngine(task_store, identity_store)


@pytest.fixture
def make_identity(identity_store) -> Callable[..., Identity]:
    """Return a factory: make_identity("alice", roles=["User"]) -> Identity."""

    def _make(username: str, roles: list[str] | None = None, password: str = TEST_PASSWORD) -> Identity:
        result = identity_store.create_identity(
            Identity(username=username, email=f"{username}@example.com", email_confirmed=True),
            password,
            roles=roles if roles is not None else [ROLE_USER],
        )
        assert result.succeeded, result.errors
        return result.identity

    return _make


@pytest.fixture
def claims_for(issuer, identity_store) -> Callable[[Identity], Claims]:
    """Return a function that turns an identity into validated Claims."""

    def _claims(identity: Identity) -> Claims:
        return issuer.validate(issuer.issue(identity, identity_store.roles_of(identity)))

    return _claims


# ---------------------------------------------------------------------------
# API fixtures -- one TestClient per test module for speed
# ---------------------------------------------------------------------------


@dataclass
class ApiHarness:
    client: TestClient
    issuer: TokenIssuer
    identity_store: IdentityStore
    admin: Identity
    user: Identity
    other_user: Identity
    password: str = TEST_PASSWORD

    def token_for(self, identity: Identity) -> str:
        return self.issuer.issue(identity, self.identity_store.roles_of(identity))

    def headers_for(self, identity: Identity) -> dict[str, str]:
        return {"Authorization": f"Bearer {self.token_for(identity)}"}


def _patch_lifespan(engine, identity_store: IdentityStore, issuer: TokenIssuer):
    """Return an async context manager that replaces the real lifespan.

    Wires pre-created test stores into app.state so TestClient routes see an
    isolated in-memory database rather than the configured one.
    """

    @asynccontextmanager
    async def test_lifespan(app):
        app.state.db_engine = engine
        app.state.token_issuer = issuer
        app.state.identity_store = identity_store
        app.state.auth_service = AuthService(identity_store, issuer)
        app.state.task_engine = TaskEngine(TaskStore(engine), identity_store)
        app.state.note_store = NoteStore(engine)
        yield

    return test_lifespan


@pytest.fixture(scope="module")
def api_client() -> Generator[ApiHarness, None, None]:
    """Yield an ApiHarness with an admin and two users already registered.

    base_url uses localhost because TrustedHostMiddleware rejects the
    TestClient default host ("testserver").
    """
    engine = create_db_engine("sqlite://")
    identity_store = IdentityStore(engine)
    issuer = TokenIssuer(TEST_SECRET, TEST_ISSUER, TEST_AUDIENCE)

    def _create(username: str, role: str) -> Identity:
        result = identity_store.create_identity(
            Identity(username=username, email=f"{username}@example.com", email_confirmed=True),
            TEST_PASSWORD,
            roles=[role],
        )
        assert result.succeeded, result.errors
        return result.identity

    admin = _create("apiadmin", ROLE_ADMIN)
    user = _create("apiuser", ROLE_USER)
    other = _create("apiother", ROLE_USER)

    app.router.lifespan_context = _patch_lifespan(engine, identity_store, issuer)

    with TestClient(app, base_url="http://localhost", raise_server_exceptions=True) as client:
        yield ApiHarness(client, issuer, identity_store, admin, user, other)

    engine.dispose()
