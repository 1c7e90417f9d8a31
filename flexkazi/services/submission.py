import re
from dataclasses import dataclass
from typing import Callable, List, Optional, Tuple

from flexkazi.core.errors import FlexKaziError, NotAssigneeError, NotFoundError, RemoteUnavailableError, ValidationError
from flexkazi.core.logging import get_logger
from flexkazi.models.schemas import Task
from flexkazi.services.bucketing import parse_task
from flexkazi.services.lifecycle import (
    TaskStatus,
    apply_start,
    apply_submit,
    assignee_of,
    check_can_submit,
    current_status,
    now_ms,
)
from flexkazi.services.task_loader import user_tasks_path

logger = get_logger(__name__)

UNSAFE_FILENAME_CHARS = re.compile(r"[^A-Za-z0-9._-]+")


@dataclass
class Attachment:
    filename: str
    content: bytes
    content_type: Optional[str] = None


def safe_filename(name: str) -> str:
    cleaned = UNSAFE_FILENAME_CHARS.sub("_", (name or "").strip()).strip("._")
    return cleaned or "attachment"


class SubmissionCoordinator:
    """Workspace transitions for the task holder: open (start) and submit."""

    def __init__(self, db_ops, storage_ops=None, clock: Callable[[], int] = now_ms):
        self.db_ops = db_ops
        self.storage_ops = storage_ops
        self.clock = clock

    def _read(self, task_id: str) -> dict:
        record = self.db_ops.get(f"tasks/{task_id}")
        if record is None:
            raise NotFoundError("Task not found")
        parse_task(task_id, record)
        return record

    def open_workspace(self, user_id: str, task_id: str) -> Tuple[Task, bool]:
        """
        Start work on an assigned task.
        Opening a task that is already underway leaves its timestamps alone.
        """
        record = self._read(task_id)
        if assignee_of(record) != user_id:
            raise NotAssigneeError("You are not assigned to this task.")
        if current_status(record) != TaskStatus.AVAILABLE:
            return parse_task(task_id, record), False

        now = self.clock()
        outcome = {}

        def begin(current):
            if current is not None:
                parse_task(task_id, current)
            updated, changed = apply_start(current, user_id, now)
            outcome["changed"] = changed
            return updated

        record = self.db_ops.transaction(f"tasks/{task_id}", begin)
        changed = outcome.get("changed", False)
        if changed:
            logger.info(f"Task {task_id} started by {user_id}")
            self._sync_index_status(user_id, task_id, TaskStatus.IN_PROGRESS)
        return parse_task(task_id, record), changed

    def submit(self, user_id: str, task_id: str, attachments: Optional[List[Attachment]] = None, notes: Optional[str] = None) -> Task:
        attachments = [a for a in (attachments or []) if a.content]
        notes = (notes or "").strip() or None
        if not attachments and not notes:
            raise ValidationError("Attach a file or add submission notes before submitting.")
        if attachments and self.storage_ops is None:
            raise ValidationError("File uploads are not available.")

        record = self._read(task_id)
        check_can_submit(record, user_id)

        files: List[str] = []
        uploaded: List[str] = []
        now = self.clock()

        def finish(current):
            if current is not None:
                parse_task(task_id, current)
            return apply_submit(current, user_id, files, notes, now)

        try:
            for index, attachment in enumerate(attachments):
                object_path = self._object_path(user_id, task_id, index, attachment)
                files.append(self.storage_ops.upload(object_path, attachment.content, attachment.content_type))
                uploaded.append(object_path)
            record = self.db_ops.transaction(f"tasks/{task_id}", finish)
        except FlexKaziError:
            self._discard(task_id, uploaded)
            raise

        logger.info(f"Task {task_id} submitted by {user_id} with {len(files)} file(s)")
        self._sync_index_status(user_id, task_id, TaskStatus.SUBMITTED)
        return parse_task(task_id, record)

    def _object_path(self, user_id: str, task_id: str, index: int, attachment: Attachment) -> str:
        return f"deliverables/{task_id}/{user_id}/{self.clock()}_{index}_{safe_filename(attachment.filename)}"

    def _discard(self, task_id: str, object_paths: List[str]) -> None:
        """Remove uploads whose submission never committed."""
        for object_path in object_paths:
            try:
                self.storage_ops.delete(object_path)
            except RemoteUnavailableError as e:
                logger.warning(f"Orphaned upload for {task_id} left at '{object_path}': {e}")
        if object_paths:
            logger.info(f"Discarded {len(object_paths)} upload(s) for {task_id} after a failed submit")

    def _sync_index_status(self, user_id: str, task_id: str, status: str) -> None:
        try:
            self.db_ops.update(f"{user_tasks_path(user_id)}/assigned_tasks/{task_id}", {"current_status": status})
        except RemoteUnavailableError as e:
            logger.warning(f"Could not update index status for {task_id}: {e}")
