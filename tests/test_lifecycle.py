import pytest

from flexkazi.core.errors import ConflictError, NotAssigneeError, NotFoundError, ValidationError
from flexkazi.services.lifecycle import (
    TaskStatus,
    apply_accept,
    apply_start,
    apply_submit,
    can_transition,
    current_status,
    details_of,
    is_priority_match,
)

from tests.conftest import make_task


def test_transitions_are_forward_only():
    assert can_transition(TaskStatus.AVAILABLE, TaskStatus.IN_PROGRESS)
    assert can_transition(TaskStatus.IN_PROGRESS, TaskStatus.SUBMITTED)
    assert can_transition(TaskStatus.SUBMITTED, TaskStatus.COMPLETED)
    assert not can_transition(TaskStatus.IN_PROGRESS, TaskStatus.AVAILABLE)
    assert not can_transition(TaskStatus.AVAILABLE, TaskStatus.SUBMITTED)
    assert not can_transition(TaskStatus.COMPLETED, TaskStatus.SUBMITTED)


def test_missing_status_defaults_to_available():
    assert current_status({}) == TaskStatus.AVAILABLE
    assert current_status(None) == TaskStatus.AVAILABLE


def test_details_fall_back_to_legacy_key():
    assert details_of({"details": {"category": "social"}}) == {"category": "social"}
    assert details_of({"task_details": {"category": "data"}, "details": {"category": "social"}})["category"] == "data"


def test_priority_match_requires_main_category():
    assert is_priority_match("advert", "advert")
    assert not is_priority_match("", "advert")
    assert not is_priority_match(None, None)
    assert not is_priority_match("data", "advert")


def test_accept_binds_task_and_keeps_it_available():
    record = make_task("t1", category="advert")
    updated = apply_accept(record, "u1", "advert", 5000)

    assert updated["assignment"]["assigned_to"] == "u1"
    assert updated["assignment"]["assigned_by"] == "system"
    assert updated["assignment"]["assigned_at"] == 5000
    assert updated["assignment"]["is_priority_match"] is True
    assert updated["status"]["current"] == TaskStatus.AVAILABLE
    assert updated["status"]["accepted_at"] is None
    assert "assignment" not in record  # input untouched


def test_accept_already_assigned_task_conflicts():
    record = make_task("t1", assigned_to="u2")
    with pytest.raises(ConflictError, match="no longer available"):
        apply_accept(record, "u1", "advert", 5000)


def test_accept_missing_task():
    with pytest.raises(NotFoundError):
        apply_accept(None, "u1", "advert", 5000)


def test_start_sets_timestamps_once():
    record = make_task("t1", assigned_to="u1")
    started, changed = apply_start(record, "u1", 7000)
    assert changed
    assert started["status"]["current"] == TaskStatus.IN_PROGRESS
    assert started["status"]["accepted_at"] == 7000
    assert started["status"]["started_at"] == 7000

    again, changed = apply_start(started, "u1", 9000)
    assert not changed
    assert again["status"]["started_at"] == 7000


def test_start_by_non_assignee_is_rejected():
    record = make_task("t1", assigned_to="u2")
    with pytest.raises(NotAssigneeError):
        apply_start(record, "u1", 7000)


def test_submit_records_deliverables():
    record = make_task("t1", assigned_to="u1", status=TaskStatus.IN_PROGRESS)
    submitted = apply_submit(record, "u1", ["https://files/a.pdf"], "draft v1", 8000)

    assert submitted["status"]["current"] == TaskStatus.SUBMITTED
    assert submitted["status"]["submitted_at"] == 8000
    assert submitted["deliverables"]["files"] == ["https://files/a.pdf"]
    assert submitted["deliverables"]["submission_notes"] == "draft v1"


def test_submit_requires_in_progress():
    record = make_task("t1", assigned_to="u1", status=TaskStatus.AVAILABLE)
    with pytest.raises(ValidationError, match="Only tasks in progress"):
        apply_submit(record, "u1", [], "notes", 8000)


def test_submit_by_non_assignee_is_rejected():
    record = make_task("t1", assigned_to="u2", status=TaskStatus.IN_PROGRESS)
    with pytest.raises(NotAssigneeError):
        apply_submit(record, "u1", [], "notes", 8000)
