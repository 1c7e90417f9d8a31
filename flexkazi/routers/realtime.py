from fastapi import APIRouter, WebSocket, WebSocketDisconnect, status
from fastapi.encoders import jsonable_encoder
from starlette.concurrency import run_in_threadpool

from flexkazi.core.errors import FlexKaziError
from flexkazi.core.logging import get_logger
from flexkazi.core.security import get_identity_provider
from flexkazi.db.firebase_ops import get_db_ops_instance
from flexkazi.services.realtime import RealtimeSync, change_notices
from flexkazi.services.session import AppSession
from flexkazi.services.task_loader import TaskLoader

router = APIRouter(tags=["Realtime"])
logger = get_logger(__name__)


@router.websocket("/ws/dashboard")
async def dashboard_updates(websocket: WebSocket, token: str = ""):
    """Push a fresh dashboard whenever the task store changes, for as long as the socket is open."""
    try:
        identity = await run_in_threadpool(get_identity_provider().verify_token, token)
    except FlexKaziError as e:
        await websocket.close(code=status.WS_1008_POLICY_VIOLATION, reason=e.message)
        return

    await websocket.accept()
    db_ops = get_db_ops_instance()
    loader = TaskLoader(db_ops)
    session = AppSession(identity=identity)

    async def push_dashboard(events):
        previous = session.dashboard
        dashboard = await run_in_threadpool(session.refresh, loader)
        await websocket.send_json({
            "type": "dashboard",
            "changes": len(events),
            "notices": change_notices(previous, dashboard),
            "dashboard": jsonable_encoder(dashboard),
        })

    sync = RealtimeSync(db_ops, push_dashboard)
    try:
        sync.start()
        sync.trigger("initial")
        # Client messages are ignored; receiving keeps the disconnect observable
        while True:
            await websocket.receive_text()
    except WebSocketDisconnect:
        logger.info(f"Dashboard socket closed for {identity.uid}")
    finally:
        sync.stop()
