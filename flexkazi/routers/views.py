from fastapi import APIRouter, Depends, HTTPException, status
from fastapi.responses import HTMLResponse

from flexkazi.core.security import Identity
from flexkazi.db.firebase_ops import get_db_ops_instance
from flexkazi.models.schemas import UserProfile
from flexkazi.routers.auth import get_current_identity
from flexkazi.services.profiles import ProfileService
from flexkazi.services.session import AppSession
from flexkazi.services.task_loader import TaskLoader
from flexkazi.views import renderer

router = APIRouter(prefix="/views", tags=["Views"])

FRAGMENT_SECTIONS = set(renderer.SECTIONS) | {"stats", "profile", "recent"}


@router.get("/tasks/{task_id}/workspace", response_class=HTMLResponse)
def workspace_page(task_id: str, identity: Identity = Depends(get_current_identity)):
    task = TaskLoader(get_db_ops_instance()).get_visible_task(task_id, identity.uid)
    return renderer.render_workspace(task)


@router.get("/tasks/{task_id}/details", response_class=HTMLResponse)
def task_details_fragment(task_id: str, identity: Identity = Depends(get_current_identity)):
    task = TaskLoader(get_db_ops_instance()).get_visible_task(task_id, identity.uid)
    return renderer.render_task_details(task)


@router.get("/{section}", response_class=HTMLResponse)
def section_fragment(section: str, identity: Identity = Depends(get_current_identity)):
    if section not in FRAGMENT_SECTIONS:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Unknown section")

    db_ops = get_db_ops_instance()
    session = AppSession(identity=identity, profile=ProfileService(db_ops).get_profile(identity.uid) or UserProfile())
    session.refresh(TaskLoader(db_ops))
    return renderer.render_section(section, session)
