from typing import Any, Callable, Dict, List, Optional

from flexkazi.core.errors import NotAssigneeError, NotFoundError, RemoteUnavailableError
from flexkazi.core.logging import get_logger
from flexkazi.models.schemas import Dashboard, IndexEntry, Task
from flexkazi.services.bucketing import (
    build_user_stats,
    bucket_tasks,
    filter_available,
    parse_task,
    parse_tasks,
    recent_tasks,
)
from flexkazi.services.lifecycle import now_ms

logger = get_logger(__name__)


def user_tasks_path(user_id: str) -> str:
    return f"user_tasks/{user_id}"


def available_index_path(task: Task) -> str:
    return f"available_tasks/{task.details.category or 'uncategorized'}/{task.details.priority}/{task.id}"


def index_entry(task: Task) -> IndexEntry:
    return IndexEntry(
        assigned_at=task.assignment.assigned_at,
        priority_match=task.assignment.is_priority_match,
        current_status=task.status.current,
    )


class TaskLoader:
    """
    Reads the task store and derives the per-user view of it.

    Every dashboard load ends with one multi-location write that rewrites the
    user's index from the task store, so drift from an interrupted accept is
    repaired on the next load.
    """

    def __init__(self, db_ops, clock: Callable[[], int] = now_ms):
        self.db_ops = db_ops
        self.clock = clock

    def fetch_tasks(self) -> List[Task]:
        return parse_tasks(self.db_ops.get("tasks"))

    def get_task(self, task_id: str) -> Task:
        record = self.db_ops.get(f"tasks/{task_id}")
        if record is None:
            raise NotFoundError("Task not found")
        return parse_task(task_id, record)

    def get_visible_task(self, task_id: str, user_id: str) -> Task:
        """A task as seen by user_id: open tasks and the user's own tasks only."""
        task = self.get_task(task_id)
        if task.assignee and task.assignee != user_id:
            raise NotAssigneeError("You are not assigned to this task.")
        return task

    def load_available(self, category: Optional[str] = None, priority: Optional[str] = None) -> List[Task]:
        available = [task for task in self.fetch_tasks() if not task.assignee]
        return filter_available(available, category=category, priority=priority)

    def load(self, user_id: str) -> Dashboard:
        tasks = self.fetch_tasks()
        buckets = bucket_tasks(tasks, user_id)
        stats = build_user_stats(buckets, now=self.clock())
        logger.info(
            f"Loaded {len(tasks)} tasks for {user_id}: priority={len(buckets.priority)} "
            f"assigned={len(buckets.assigned)} in_progress={len(buckets.in_progress)} "
            f"completed={len(buckets.completed)} available={len(buckets.available)}"
        )

        self.persist_index(user_id, tasks, stats.model_dump())

        return Dashboard(
            buckets=buckets,
            stats=stats,
            recent=recent_tasks(buckets),
            unread_notifications=self.unread_notifications(user_id),
        )

    def persist_index(self, user_id: str, tasks: List[Task], stats: Dict[str, Any]) -> None:
        held = [task for task in tasks if task.assignee == user_id]
        updates: Dict[str, Any] = {
            f"{user_tasks_path(user_id)}/assigned_tasks": {
                task.id: index_entry(task).model_dump() for task in held
            },
            f"{user_tasks_path(user_id)}/stats": stats,
        }
        for task in held:
            updates[available_index_path(task)] = None

        try:
            self.db_ops.update("/", updates)
        except RemoteUnavailableError as e:
            # The next load rewrites the same paths
            logger.warning(f"Could not persist task index for {user_id}: {e}")

    def unread_notifications(self, user_id: str) -> int:
        try:
            notifications = self.db_ops.get(f"task_notifications/{user_id}") or {}
        except RemoteUnavailableError as e:
            logger.warning(f"Could not read notifications for {user_id}: {e}")
            return 0
        if isinstance(notifications, list):
            notifications = {str(i): n for i, n in enumerate(notifications) if n is not None}
        return sum(1 for n in notifications.values() if isinstance(n, dict) and not n.get("read"))
