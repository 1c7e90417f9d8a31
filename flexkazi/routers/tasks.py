from typing import List, Optional

from fastapi import APIRouter, Depends, File, Form, UploadFile
from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse

from flexkazi.core.errors import ConflictError
from flexkazi.core.security import Identity
from flexkazi.db.firebase_ops import get_db_ops_instance, get_storage_ops_instance
from flexkazi.models.schemas import Dashboard, Task, TransitionResponse
from flexkazi.routers.auth import get_current_identity
from flexkazi.services.assignment import AssignmentCoordinator
from flexkazi.services.submission import Attachment, SubmissionCoordinator
from flexkazi.services.task_loader import TaskLoader

router = APIRouter(prefix="/tasks", tags=["Tasks"])


@router.get("/dashboard", response_model=Dashboard)
def read_dashboard(identity: Identity = Depends(get_current_identity)):
    return TaskLoader(get_db_ops_instance()).load(identity.uid)


@router.get("/available", response_model=List[Task])
def list_available_tasks(
    category: Optional[str] = None,
    priority: Optional[str] = None,
    identity: Identity = Depends(get_current_identity),
):
    return TaskLoader(get_db_ops_instance()).load_available(category=category, priority=priority)


@router.get("/{task_id}", response_model=Task)
def read_task(task_id: str, identity: Identity = Depends(get_current_identity)):
    return TaskLoader(get_db_ops_instance()).get_visible_task(task_id, identity.uid)


@router.post("/{task_id}/accept", response_model=TransitionResponse)
def accept_task(task_id: str, identity: Identity = Depends(get_current_identity)):
    coordinator = AssignmentCoordinator(get_db_ops_instance())
    try:
        task = coordinator.accept(identity.uid, task_id)
    except ConflictError as e:
        # Hand the resynchronized list back so the client can repaint it
        return JSONResponse(
            status_code=e.status_code,
            content={"detail": e.message, "available": jsonable_encoder(e.available or [], by_alias=True)},
        )
    return TransitionResponse(task=task, message="Task accepted!")


@router.post("/{task_id}/start", response_model=TransitionResponse)
def start_task(task_id: str, identity: Identity = Depends(get_current_identity)):
    task, changed = SubmissionCoordinator(get_db_ops_instance()).open_workspace(identity.uid, task_id)
    message = "Task started." if changed else "Task already underway."
    return TransitionResponse(task=task, changed=changed, message=message)


@router.post("/{task_id}/submit", response_model=TransitionResponse)
def submit_task(
    task_id: str,
    notes: Optional[str] = Form(default=None),
    files: List[UploadFile] = File(default=[]),
    identity: Identity = Depends(get_current_identity),
):
    attachments = [
        Attachment(filename=upload.filename or "attachment", content=upload.file.read(), content_type=upload.content_type)
        for upload in files
    ]
    storage_ops = get_storage_ops_instance() if attachments else None
    task = SubmissionCoordinator(get_db_ops_instance(), storage_ops).submit(identity.uid, task_id, attachments, notes)
    return TransitionResponse(task=task, message="Work submitted for review.")
