import pytest

from flexkazi.core.errors import ConflictError, NotFoundError, RemoteUnavailableError, ValidationError
from flexkazi.services.assignment import AssignmentCoordinator
from flexkazi.services.task_loader import TaskLoader

from tests.conftest import make_task


@pytest.fixture
def coordinator(store, clock):
    return AssignmentCoordinator(store, clock=clock)


def test_accept_matching_category_lands_in_priority(store, coordinator, clock):
    task = coordinator.accept("u1", "t1")

    assert task.assignee == "u1"
    assert task.assignment.is_priority_match is True
    assert task.assignment.assigned_at == clock()
    assert task.status.current == "available"

    dashboard = TaskLoader(store, clock=clock).load("u1")
    assert [t.id for t in dashboard.buckets.priority] == ["t1"]
    assert [t.id for t in dashboard.buckets.available] == ["t2"]


def test_accept_other_category_lands_in_assigned(store, coordinator, clock):
    coordinator.accept("u1", "t2")
    dashboard = TaskLoader(store, clock=clock).load("u1")
    assert [t.id for t in dashboard.buckets.assigned] == ["t2"]
    assert dashboard.buckets.priority == []


def test_accept_moves_task_between_indexes(store, coordinator):
    coordinator.accept("u1", "t1")

    assert store.get("user_tasks/u1/assigned_tasks/t1")["current_status"] == "available"
    assert store.get("available_tasks/advert/medium/t1") is None
    assert store.get("site_statistics/tasks_assigned") == 1


def test_losing_the_race_returns_refreshed_available_list(store, coordinator):
    def rival_claims_first(path):
        store.before_transaction = None
        store._write("tasks/t1/assignment", {"assigned_to": "u2", "is_priority_match": False})

    store.before_transaction = rival_claims_first

    with pytest.raises(ConflictError) as exc_info:
        coordinator.accept("u1", "t1")

    assert exc_info.value.message == "This task is no longer available."
    assert [t.id for t in exc_info.value.available] == ["t2"]
    assert store.get("tasks/t1/assignment/assigned_to") == "u2"
    assert store.get("user_tasks/u1/assigned_tasks") is None


def test_accept_twice_conflicts(store, coordinator):
    coordinator.accept("u1", "t1")
    with pytest.raises(ConflictError):
        AssignmentCoordinator(store).accept("u2", "t1")
    assert store.get("tasks/t1/assignment/assigned_to") == "u1"


def test_accept_missing_task(coordinator):
    with pytest.raises(NotFoundError):
        coordinator.accept("u1", "missing")


def test_accept_without_main_category_is_never_priority(store, clock):
    store.set("users/u3", {"personal": {"full_name": "No Category"}})
    task = AssignmentCoordinator(store, clock=clock).accept("u3", "t1")
    assert task.assignment.is_priority_match is False


def test_index_failure_does_not_undo_assignment(store, coordinator):
    store.fail_on["update"] = RemoteUnavailableError("down")
    task = coordinator.accept("u1", "t1")
    assert task.assignee == "u1"
    assert store.get("tasks/t1/assignment/assigned_to") == "u1"


def test_reaccepting_after_legacy_details_record(store, clock):
    record = make_task("t4", category="advert")
    record["details"] = record.pop("task_details")
    store.set("tasks/t4", record)

    task = AssignmentCoordinator(store, clock=clock).accept("u1", "t4")
    assert task.assignment.is_priority_match is True
    assert task.details.category == "advert"


def test_accept_invalid_record_writes_nothing(store, coordinator):
    store.set("tasks/t9", make_task("t9", rating=7))
    store.set("available_tasks/advert/medium/t9", True)

    with pytest.raises(ValidationError, match="invalid record"):
        coordinator.accept("u1", "t9")
    assert store.get("tasks/t9/assignment") is None
    assert store.get("available_tasks/advert/medium/t9") is True
    assert store.get("user_tasks/u1/assigned_tasks/t9") is None


def test_record_corrupted_during_accept_is_not_committed(store, coordinator):
    def corrupt(path):
        store.set("tasks/t1/deliverables/rating", 7)

    store.before_transaction = corrupt
    with pytest.raises(ValidationError):
        coordinator.accept("u1", "t1")
    assert store.get("tasks/t1/assignment") is None
