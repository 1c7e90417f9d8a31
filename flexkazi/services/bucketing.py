"""Pure partitioning and aggregate computations over the task collection."""
from typing import Any, Dict, Iterable, List, Optional

from pydantic import ValidationError as PydanticValidationError

from flexkazi.core.errors import ValidationError
from flexkazi.core.logging import get_logger
from flexkazi.models.schemas import Buckets, Task, UserStats
from flexkazi.services.lifecycle import TaskStatus

logger = get_logger(__name__)

RECENT_LIMIT = 5


def parse_task(task_id: str, record: Any) -> Task:
    """Validate one stored record. Raises ValidationError when it cannot be read as a task."""
    if not isinstance(record, dict):
        raise ValidationError(f"Task {task_id} has a malformed record.")
    try:
        return Task.model_validate({**record, "id": task_id})
    except PydanticValidationError as e:
        raise ValidationError(f"Task {task_id} has an invalid record ({e.error_count()} error(s)).") from e


def parse_tasks(raw_tasks: Optional[Dict[str, Any]]) -> List[Task]:
    """Turn the tasks/ node into Task models, skipping records that fail validation."""
    tasks = []
    if isinstance(raw_tasks, list):
        # The database returns sequential integer keys as an array
        raw_tasks = {str(i): record for i, record in enumerate(raw_tasks) if record is not None}
    for task_id, record in (raw_tasks or {}).items():
        try:
            tasks.append(parse_task(task_id, record))
        except ValidationError as e:
            logger.warning(f"Skipping task: {e.message}")
    return tasks


def bucket_tasks(tasks: Iterable[Task], user_id: str) -> Buckets:
    buckets = Buckets()
    for task in tasks:
        assignee = task.assignee
        if not assignee:
            buckets.available.append(task)
            continue
        if assignee != user_id:
            continue

        status = task.status.current
        if status == TaskStatus.AVAILABLE:
            if task.assignment.is_priority_match:
                buckets.priority.append(task)
            else:
                buckets.assigned.append(task)
        elif status == TaskStatus.IN_PROGRESS:
            buckets.in_progress.append(task)
        elif status in (TaskStatus.SUBMITTED, TaskStatus.COMPLETED):
            buckets.completed.append(task)
        else:
            logger.warning(f"Task {task.id} has unknown status '{status}'")
    return buckets


def filter_available(tasks: Iterable[Task], category: Optional[str] = None, priority: Optional[str] = None) -> List[Task]:
    result = []
    for task in tasks:
        if category and task.details.category != category:
            continue
        if priority and task.details.priority != priority:
            continue
        result.append(task)
    return result


def compute_stats(completed_tasks: Iterable[Task]) -> Dict[str, Any]:
    """
    Aggregate the completed bucket.

    Unrated tasks are left out of the rating denominator rather than counted as zero.
    """
    completed_tasks = list(completed_tasks)
    ratings = [t.deliverables.rating for t in completed_tasks if t.deliverables.rating is not None]
    return {
        "count": len(completed_tasks),
        "total_earned": sum(t.details.budget for t in completed_tasks),
        "average_rating": sum(ratings) / len(ratings) if ratings else 0.0,
    }


def build_user_stats(buckets: Buckets, now: Optional[int] = None) -> UserStats:
    aggregate = compute_stats(buckets.completed)
    return UserStats(
        tasks_in_progress=len(buckets.in_progress),
        tasks_available=len(buckets.available),
        tasks_assigned=len(buckets.priority) + len(buckets.assigned),
        tasks_completed=aggregate["count"],
        tasks_awaiting_review=sum(1 for t in buckets.completed if t.status.current == TaskStatus.SUBMITTED),
        total_earned=aggregate["total_earned"],
        average_rating=aggregate["average_rating"],
        last_recomputed=now,
    )


def recent_tasks(buckets: Buckets, limit: int = RECENT_LIMIT) -> List[Task]:
    def finished_at(task: Task) -> int:
        return task.status.completed_at or task.status.submitted_at or 0

    return sorted(buckets.completed, key=finished_at, reverse=True)[:limit]
