"""
tests/test_task_engine.py -- Unit tests for tasks/engine.py (TaskEngine).

Covers:
  - access rules: admin-only operations, assignee-or-admin status updates
  - Forbidden status update leaves the row untouched
  - optimistic concurrency: stale version -> ConcurrencyError, row keeps the winner
  - delete cascades to comments
  - the admin-assigns / user-completes scenario end to end
  - storage failures surface as DATABASE_ERROR
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest
from sqlalchemy.exc import OperationalError

from auth.models import Claims
from core.errors import ErrorReason
from tasks.engine import TaskEngine
from tasks.models import Task, TaskChanges, TaskStatus, UrgencyLevel


@pytest.fixture
def people(make_identity, claims_for):
    admin = make_identity("boss", roles=["Admin"])
    user = make_identity("ursula")
    other = make_identity("oscar")
    return {
        "admin": (admin, claims_for(admin)),
        "user": (user, claims_for(user)),
        "other": (other, claims_for(other)),
    }


def _ghost_claims() -> Claims:
    """Valid-looking claims for an identity that is not in the store."""
    now = datetime.now(timezone.utc)
    return Claims(
        identity_id="00000000-0000-0000-0000-000000000000",
        username="ghost",
        email="ghost@example.com",
        roles=frozenset({"User"}),
        token_id="ghost-jti",
        issued_at=now,
        expires_at=now + timedelta(hours=1),
    )


def _draft(assignee_id: str, **overrides) -> Task:
    values = {"title": "Write report", "assigned_to_user_id": assignee_id, "urgency": UrgencyLevel.HIGH}
    values.update(overrides)
    return Task(**values)


def _create(task_engine: TaskEngine, people, **overrides) -> Task:
    _, admin_claims = people["admin"]
    user, _ = people["user"]
    reason, task = task_engine.create_task(admin_claims, _draft(user.id, **overrides))
    assert reason is ErrorReason.SUCCESS
    return task


class TestCreate:
    def test_new_task_is_assigned_at_version_one(self, task_engine: TaskEngine, people) -> None:
        task = _create(task_engine, people)
        assert task.status is TaskStatus.ASSIGNED
        assert task.urgency is UrgencyLevel.HIGH
        assert task.version == 1
        assert task.assigned_to_username == "ursula"
        assert task.due_date

    def test_status_in_draft_is_ignored(self, task_engine: TaskEngine, people) -> None:
        task = _create(task_engine, people, status=TaskStatus.COMPLETED)
        assert task.status is TaskStatus.ASSIGNED

    def test_non_admin_is_forbidden_and_nothing_written(self, task_engine: TaskEngine, people) -> None:
        user, user_claims = people["user"]
        reason, task = task_engine.create_task(user_claims, _draft(user.id))
        assert reason is ErrorReason.FORBIDDEN
        assert task is None
        assert task_engine.tasks.list_tasks() == []

    def test_missing_claims(self, task_engine: TaskEngine, people) -> None:
        user, _ = people["user"]
        reason, _ = task_engine.create_task(None, _draft(user.id))
        assert reason is ErrorReason.UNAUTHENTICATED

    def test_unknown_assignee(self, task_engine: TaskEngine, people) -> None:
        _, admin_claims = people["admin"]
        reason, _ = task_engine.create_task(admin_claims, _draft("no-such-user"))
        assert reason is ErrorReason.USER_NOT_FOUND


class TestReads:
    def test_assignable_users_exclude_admins(self, task_engine: TaskEngine, people) -> None:
        _, admin_claims = people["admin"]
        reason, users = task_engine.assignable_users(admin_claims)
        assert reason is ErrorReason.SUCCESS
        assert [u.username for u in users] == ["oscar", "ursula"]

    def test_assignable_users_admin_only(self, task_engine: TaskEngine, people) -> None:
        _, user_claims = people["user"]
        assert task_engine.assignable_users(user_claims)[0] is ErrorReason.FORBIDDEN

    def test_urgency_levels(self) -> None:
        assert TaskEngine.urgency_levels() == ["Low", "Medium", "High"]

    def test_my_tasks_only_returns_own(self, task_engine: TaskEngine, people) -> None:
        _create(task_engine, people)
        _, user_claims = people["user"]
        _, other_claims = people["other"]
        assert len(task_engine.my_tasks(user_claims)[1]) == 1
        assert task_engine.my_tasks(other_claims)[1] == []

    def test_get_task_for_assignee_admin_and_stranger(self, task_engine: TaskEngine, people) -> None:
        task = _create(task_engine, people)
        assert task_engine.get_task(people["user"][1], task.id)[0] is ErrorReason.SUCCESS
        assert task_engine.get_task(people["admin"][1], task.id)[0] is ErrorReason.SUCCESS
        assert task_engine.get_task(people["other"][1], task.id)[0] is ErrorReason.FORBIDDEN
        assert task_engine.get_task(people["admin"][1], 9999)[0] is ErrorReason.NOT_FOUND

    def test_list_tasks_newest_first(self, task_engine: TaskEngine, people) -> None:
        first = _create(task_engine, people, title="first")
        second = _create(task_engine, people, title="second")
        reason, tasks = task_engine.list_tasks(people["admin"][1])
        assert reason is ErrorReason.SUCCESS
        assert [t.id for t in tasks] == [second.id, first.id]
        assert task_engine.list_tasks(people["user"][1])[0] is ErrorReason.FORBIDDEN


class TestStatusUpdate:
    def test_stranger_is_forbidden_and_row_unchanged(self, task_engine: TaskEngine, people) -> None:
        task = _create(task_engine, people)
        reason, _ = task_engine.update_status(people["other"][1], task.id, TaskStatus.COMPLETED)
        assert reason is ErrorReason.FORBIDDEN
        stored = task_engine.tasks.get_task(task.id)
        assert stored.status is TaskStatus.ASSIGNED
        assert stored.version == task.version
        assert stored.updated_at == task.updated_at

    def test_admin_may_update_any_status(self, task_engine: TaskEngine, people) -> None:
        task = _create(task_engine, people)
        reason, updated = task_engine.update_status(people["admin"][1], task.id, TaskStatus.BLOCKED)
        assert reason is ErrorReason.SUCCESS
        assert updated.status is TaskStatus.BLOCKED

    def test_any_transition_is_allowed(self, task_engine: TaskEngine, people) -> None:
        task = _create(task_engine, people)
        claims = people["user"][1]
        for status in (TaskStatus.COMPLETED, TaskStatus.ASSIGNED, TaskStatus.IN_PROGRESS):
            reason, updated = task_engine.update_status(claims, task.id, status)
            assert reason is ErrorReason.SUCCESS
            assert updated.status is status

    def test_missing_task(self, task_engine: TaskEngine, people) -> None:
        reason, _ = task_engine.update_status(people["user"][1], 9999, TaskStatus.COMPLETED)
        assert reason is ErrorReason.NOT_FOUND

    def test_stale_version(self, task_engine: TaskEngine, people) -> None:
        task = _create(task_engine, people)
        claims = people["user"][1]
        task_engine.update_status(claims, task.id, TaskStatus.IN_PROGRESS)
        reason, _ = task_engine.update_status(claims, task.id, TaskStatus.COMPLETED, expected_version=task.version)
        assert reason is ErrorReason.CONCURRENCY_ERROR
        assert task_engine.tasks.get_task(task.id).status is TaskStatus.IN_PROGRESS


class TestFullUpdate:
    def _changes(self, assignee_id: str, **overrides) -> TaskChanges:
        values = {
            "title": "Rewritten",
            "assigned_to_user_id": assignee_id,
            "urgency": UrgencyLevel.LOW,
            "status": TaskStatus.IN_PROGRESS,
            "description": "new text",
        }
        values.update(overrides)
        return TaskChanges(**values)

    def test_admin_update_bumps_version(self, task_engine: TaskEngine, people) -> None:
        task = _create(task_engine, people)
        other, _ = people["other"]
        reason, updated = task_engine.update_task(people["admin"][1], task.id, self._changes(other.id))
        assert reason is ErrorReason.SUCCESS
        assert updated.version == task.version + 1
        assert updated.title == "Rewritten"
        assert updated.assigned_to_username == "oscar"

    def test_user_cannot_full_update(self, task_engine: TaskEngine, people) -> None:
        task = _create(task_engine, people)
        user, user_claims = people["user"]
        reason, _ = task_engine.update_task(user_claims, task.id, self._changes(user.id))
        assert reason is ErrorReason.FORBIDDEN

    def test_reassign_to_unknown_user(self, task_engine: TaskEngine, people) -> None:
        task = _create(task_engine, people)
        reason, _ = task_engine.update_task(people["admin"][1], task.id, self._changes("ghost"))
        assert reason is ErrorReason.USER_NOT_FOUND

    def test_lost_update_is_detected(self, task_engine: TaskEngine, people) -> None:
        task = _create(task_engine, people)
        user, _ = people["user"]
        admin_claims = people["admin"][1]
        read_version = task.version

        # A second writer gets in first.
        reason, _ = task_engine.update_task(admin_claims, task.id, self._changes(user.id, title="second writer"))
        assert reason is ErrorReason.SUCCESS

        # The first writer commits against the version it read.
        reason, payload = task_engine.update_task(
            admin_claims, task.id, self._changes(user.id, title="first writer"), expected_version=read_version
        )
        assert reason is ErrorReason.CONCURRENCY_ERROR
        assert payload is None
        assert task_engine.tasks.get_task(task.id).title == "second writer"

    def test_missing_task(self, task_engine: TaskEngine, people) -> None:
        user, _ = people["user"]
        reason, _ = task_engine.update_task(people["admin"][1], 9999, self._changes(user.id))
        assert reason is ErrorReason.NOT_FOUND


class TestCommentsAndDelete:
    def test_add_comment(self, task_engine: TaskEngine, people) -> None:
        task = _create(task_engine, people)
        reason, comment = task_engine.add_comment(people["other"][1], task.id, "Looks good")
        assert reason is ErrorReason.SUCCESS
        assert comment.author_username == "oscar"
        assert comment.task_id == task.id

    def test_comment_on_missing_task(self, task_engine: TaskEngine, people) -> None:
        assert task_engine.add_comment(people["user"][1], 9999, "hello")[0] is ErrorReason.NOT_FOUND

    def test_comment_by_vanished_identity(self, task_engine: TaskEngine, people) -> None:
        task = _create(task_engine, people)
        assert task_engine.add_comment(_ghost_claims(), task.id, "boo")[0] is ErrorReason.USER_NOT_FOUND

    def test_delete_removes_comments(self, task_engine: TaskEngine, people) -> None:
        task = _create(task_engine, people)
        task_engine.add_comment(people["user"][1], task.id, "one")
        task_engine.add_comment(people["admin"][1], task.id, "two")
        assert len(task_engine.tasks.list_comments(task.id)) == 2

        reason, _ = task_engine.delete_task(people["admin"][1], task.id)
        assert reason is ErrorReason.SUCCESS
        assert task_engine.tasks.get_task(task.id) is None
        assert task_engine.tasks.list_comments(task.id) == []

    def test_delete_admin_only_and_missing(self, task_engine: TaskEngine, people) -> None:
        task = _create(task_engine, people)
        assert task_engine.delete_task(people["user"][1], task.id)[0] is ErrorReason.FORBIDDEN
        assert task_engine.delete_task(people["admin"][1], 9999)[0] is ErrorReason.NOT_FOUND


def test_assign_then_complete_scenario(task_engine: TaskEngine, people) -> None:
    user, user_claims = people["user"]
    admin_claims = people["admin"][1]
    tomorrow = (datetime.now(timezone.utc) + timedelta(days=1)).isoformat()

    reason, created = task_engine.create_task(
        admin_claims, _draft(user.id, urgency=UrgencyLevel.HIGH, due_date=tomorrow)
    )
    assert reason is ErrorReason.SUCCESS
    assert created.status is TaskStatus.ASSIGNED
    assert created.urgency is UrgencyLevel.HIGH
    assert created.due_date == tomorrow

    _, mine = task_engine.my_tasks(user_claims)
    assert [t.id for t in mine] == [created.id]

    reason, completed = task_engine.update_status(user_claims, created.id, TaskStatus.COMPLETED)
    assert reason is ErrorReason.SUCCESS
    assert completed.version == created.version + 1
    assert completed.updated_at >= created.updated_at

    _, seen_by_admin = task_engine.get_task(admin_claims, created.id)
    assert seen_by_admin.status is TaskStatus.COMPLETED


def test_storage_failure_is_database_error(task_engine: TaskEngine, people, monkeypatch: pytest.MonkeyPatch) -> None:
    def boom(*args, **kwargs):
        raise OperationalError("SELECT", {}, Exception("no such table: tasks"))

    monkeypatch.setattr(task_engine.tasks, "list_tasks", boom)
    reason, payload = task_engine.list_tasks(people["admin"][1])
    assert reason is ErrorReason.DATABASE_ERROR
    assert payload is None
