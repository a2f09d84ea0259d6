"""API endpoints for one-time codes stored alongside entries."""

from datetime import datetime, timezone

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field
from starlette.concurrency import run_in_threadpool

from ..auth.totp import seconds_remaining
from ..state import AppState
from .deps import get_state, require_session

router = APIRouter(
    prefix="/otp",
    tags=["otp"],
    dependencies=[Depends(require_session)],
)


class OtpResponse(BaseModel):
    code: str
    expires_in: int  # seconds until the next code


class OtpCreateRequest(BaseModel):
    secret: str = Field(..., min_length=1, description="Base32 secret or otpauth:// URI")


@router.get("/{path:path}", response_model=OtpResponse)
async def get_otp(path: str, state: AppState = Depends(get_state)):
    """Current code for an entry."""
    code = await run_in_threadpool(state.secret_store.get_one_time_code, path)
    return OtpResponse(
        code=code,
        expires_in=seconds_remaining(datetime.now(timezone.utc)),
    )


@router.post("/{path:path}")
async def create_otp(
    path: str,
    request: OtpCreateRequest,
    state: AppState = Depends(get_state),
):
    """Attach an OTP secret to an entry, then sync."""
    await run_in_threadpool(state.secret_store.put_one_time_code, path, request.secret)
    await state.sync_after_mutation("OTP creation")
    return {
        "success": True,
        "path": path,
        "message": "OTP secret added successfully",
    }
