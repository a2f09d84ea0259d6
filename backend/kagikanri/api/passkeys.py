"""API endpoints for the passkey registry."""

from fastapi import APIRouter, Depends
from starlette.concurrency import run_in_threadpool

from ..passkeys import (
    RegistrationFinish,
    RegistrationStart,
    RegistrationStartRequest,
    StoredPasskey,
)
from ..state import AppState
from .deps import get_state, require_session

router = APIRouter(
    prefix="/passkeys",
    tags=["passkeys"],
    dependencies=[Depends(require_session)],
)


@router.get("", response_model=list[StoredPasskey])
async def list_passkeys(state: AppState = Depends(get_state)):
    return await run_in_threadpool(state.passkeys.list)


@router.post("/register/start", response_model=RegistrationStart)
async def register_start(
    request: RegistrationStartRequest,
    state: AppState = Depends(get_state),
):
    return state.passkeys.start_registration(request.domain, request.user_id)


@router.post("/register/finish", response_model=StoredPasskey)
async def register_finish(
    request: RegistrationFinish,
    state: AppState = Depends(get_state),
):
    return await run_in_threadpool(state.passkeys.finish_registration, request)


@router.delete("/{passkey_id}")
async def delete_passkey(passkey_id: str, state: AppState = Depends(get_state)):
    await run_in_threadpool(state.passkeys.delete, passkey_id)
    return {"success": True, "deleted": passkey_id}
