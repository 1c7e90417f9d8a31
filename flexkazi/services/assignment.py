from typing import Callable, Optional

from flexkazi.core.errors import ConflictError, RemoteUnavailableError
from flexkazi.core.logging import get_logger
from flexkazi.models.schemas import Task
from flexkazi.services.bucketing import parse_task
from flexkazi.services.lifecycle import apply_accept, now_ms
from flexkazi.services.task_loader import TaskLoader, available_index_path, index_entry, user_tasks_path

logger = get_logger(__name__)


class AssignmentCoordinator:
    """
    Accept transition: binds an available task to one worker.

    The claim is a transaction on tasks/{id}, so two workers racing for the same
    task resolve to exactly one assignee. Index bookkeeping follows as a single
    multi-location update.
    """

    def __init__(self, db_ops, loader: Optional[TaskLoader] = None, clock: Callable[[], int] = now_ms):
        self.db_ops = db_ops
        self.loader = loader or TaskLoader(db_ops, clock=clock)
        self.clock = clock

    def accept(self, user_id: str, task_id: str, main_category: Optional[str] = None) -> Task:
        if main_category is None:
            main_category = self.db_ops.get(f"users/{user_id}/professional/main_category") or ""

        self.loader.get_task(task_id)

        now = self.clock()

        def claim(current):
            if current is not None:
                parse_task(task_id, current)
            return apply_accept(current, user_id, main_category, now)

        try:
            record = self.db_ops.transaction(f"tasks/{task_id}", claim)
        except ConflictError as e:
            logger.info(f"User {user_id} lost the race for task {task_id}")
            e.available = self.loader.load_available()
            raise

        task = parse_task(task_id, record)
        logger.info(f"Task {task_id} assigned to {user_id} (priority match: {task.assignment.is_priority_match})")

        self._update_indexes(user_id, task)
        self._count_assignment()
        return task

    def _update_indexes(self, user_id: str, task: Task) -> None:
        updates = {
            f"{user_tasks_path(user_id)}/assigned_tasks/{task.id}": index_entry(task).model_dump(),
            available_index_path(task): None,
        }
        try:
            self.db_ops.update("/", updates)
        except RemoteUnavailableError as e:
            # The assignment itself is committed; TaskLoader.persist_index repairs the index
            logger.warning(f"Index update after accepting {task.id} failed, repair deferred to next load: {e}")

    def _count_assignment(self) -> None:
        try:
            self.db_ops.increment("site_statistics/tasks_assigned")
            self.db_ops.set("site_statistics/last_update_time", self.clock())
        except RemoteUnavailableError as e:
            logger.warning(f"Could not update site statistics: {e}")
