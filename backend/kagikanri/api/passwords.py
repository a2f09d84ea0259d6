"""API endpoints for password-store entries. Writes are followed by a git sync."""

from fastapi import APIRouter, Depends
from starlette.concurrency import run_in_threadpool

from ..logging import get_logger
from ..state import AppState
from ..store import SecretEntry, SecretList
from .deps import get_state, require_session

logger = get_logger("api")

router = APIRouter(
    prefix="/passwords",
    tags=["passwords"],
    dependencies=[Depends(require_session)],
)


@router.get("", response_model=SecretList)
async def list_passwords(state: AppState = Depends(get_state)):
    """List entry names in the store."""
    entries = await run_in_threadpool(state.secret_store.list)
    return SecretList(entries=entries)


@router.get("/{path:path}", response_model=SecretEntry)
async def get_password(path: str, state: AppState = Depends(get_state)):
    """Get one entry with its parsed metadata."""
    return await run_in_threadpool(state.secret_store.get, path)


@router.post("/{path:path}")
async def create_or_update_password(
    path: str,
    entry: SecretEntry,
    state: AppState = Depends(get_state),
):
    """Create or overwrite an entry, then sync."""
    entry = entry.model_copy(update={"path": path})
    await run_in_threadpool(state.secret_store.put, path, entry)
    await state.sync_after_mutation("password update")
    return {"success": True, "path": path}


@router.delete("/{path:path}")
async def delete_password(path: str, state: AppState = Depends(get_state)):
    """Delete an entry, then sync."""
    await run_in_threadpool(state.secret_store.delete, path)
    await state.sync_after_mutation("password deletion")
    return {"success": True, "deleted": path}
