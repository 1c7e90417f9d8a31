"""
Task lifecycle: available -> in_progress -> submitted -> completed.

The apply_* functions are pure transforms over the raw record stored at tasks/{id},
so they can run inside a database transaction and be retried by it safely.
"""
import copy
import time
from typing import Any, Dict, List, Optional, Tuple

from flexkazi.core.errors import ConflictError, NotAssigneeError, NotFoundError, ValidationError


class TaskStatus:
    """Task lifecycle statuses."""
    AVAILABLE = "available"
    IN_PROGRESS = "in_progress"
    SUBMITTED = "submitted"
    COMPLETED = "completed"

    ORDER = (AVAILABLE, IN_PROGRESS, SUBMITTED, COMPLETED)


# Forward edges only; completion is written by the reviewer side
TRANSITIONS = {
    TaskStatus.AVAILABLE: TaskStatus.IN_PROGRESS,
    TaskStatus.IN_PROGRESS: TaskStatus.SUBMITTED,
    TaskStatus.SUBMITTED: TaskStatus.COMPLETED,
}


def now_ms() -> int:
    return int(time.time() * 1000)


def can_transition(current: str, target: str) -> bool:
    return TRANSITIONS.get(current) == target


def current_status(record: Optional[Dict[str, Any]]) -> str:
    status = (record or {}).get("status") or {}
    return status.get("current") or TaskStatus.AVAILABLE


def assignee_of(record: Optional[Dict[str, Any]]) -> Optional[str]:
    assignment = (record or {}).get("assignment") or {}
    return assignment.get("assigned_to") or None


def details_of(record: Optional[Dict[str, Any]]) -> Dict[str, Any]:
    record = record or {}
    return record.get("task_details") or record.get("details") or {}


def is_priority_match(main_category: Optional[str], task_category: Optional[str]) -> bool:
    return bool(main_category) and main_category == task_category


def apply_accept(record: Optional[Dict[str, Any]], user_id: str, main_category: Optional[str], now: int) -> Dict[str, Any]:
    """Bind an unassigned task to user_id. The task stays 'available' until its holder opens it."""
    if record is None:
        raise NotFoundError("Task not found")
    if assignee_of(record) or current_status(record) != TaskStatus.AVAILABLE:
        raise ConflictError("This task is no longer available.")

    updated = copy.deepcopy(record)
    updated["assignment"] = {
        "assigned_to": user_id,
        "assigned_by": "system",
        "assigned_at": now,
        "is_priority_match": is_priority_match(main_category, details_of(record).get("category")),
    }
    updated["status"] = {
        "current": TaskStatus.AVAILABLE,
        "accepted_at": None,
        "started_at": None,
        "submitted_at": None,
        "completed_at": None,
    }
    return updated


def apply_start(record: Optional[Dict[str, Any]], user_id: str, now: int) -> Tuple[Dict[str, Any], bool]:
    """
    Move an assigned task into in_progress.
    Returns (record, changed); a task already past 'available' comes back untouched.
    """
    if record is None:
        raise NotFoundError("Task not found")
    if assignee_of(record) != user_id:
        raise NotAssigneeError("You are not assigned to this task.")

    if current_status(record) != TaskStatus.AVAILABLE:
        return record, False

    updated = copy.deepcopy(record)
    status = dict(updated.get("status") or {})
    status.update({
        "current": TaskStatus.IN_PROGRESS,
        "accepted_at": now,
        "started_at": now,
    })
    updated["status"] = status
    return updated, True


def apply_submit(record: Optional[Dict[str, Any]], user_id: str, files: List[str], notes: Optional[str], now: int) -> Dict[str, Any]:
    if record is None:
        raise NotFoundError("Task not found")
    check_can_submit(record, user_id)

    updated = copy.deepcopy(record)
    deliverables = dict(updated.get("deliverables") or {})
    deliverables["files"] = list(files)
    deliverables["submission_notes"] = notes
    updated["deliverables"] = deliverables

    status = dict(updated.get("status") or {})
    status["current"] = TaskStatus.SUBMITTED
    status["submitted_at"] = now
    updated["status"] = status
    return updated


def check_can_submit(record: Dict[str, Any], user_id: str) -> None:
    if assignee_of(record) != user_id:
        raise NotAssigneeError("You are not the assigned worker for this task.")
    if not can_transition(current_status(record), TaskStatus.SUBMITTED):
        raise ValidationError("Only tasks in progress can be submitted.")
