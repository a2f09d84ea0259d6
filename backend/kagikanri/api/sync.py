"""API endpoints for git synchronization."""

from fastapi import APIRouter, Depends

from ..state import AppState
from ..sync import SyncStatus
from .deps import get_state, require_session

router = APIRouter(
    prefix="/sync",
    tags=["sync"],
    dependencies=[Depends(require_session)],
)


@router.post("", response_model=SyncStatus)
async def trigger_sync(state: AppState = Depends(get_state)):
    """Run a sync now, or wait for the one already running."""
    return await state.trigger_sync()


@router.get("/status", response_model=SyncStatus)
async def sync_status(state: AppState = Depends(get_state)):
    """Last recorded sync outcome. Never starts a sync."""
    return state.get_sync_status()
