"""API endpoints for login, session status and logout."""

from typing import Optional

from fastapi import APIRouter, Depends, Response
from starlette.concurrency import run_in_threadpool

from ..auth import AuthStatus, LoginRequest, LoginResult
from ..auth.service import SESSION_COOKIE
from ..state import AppState
from .deps import get_state, session_token

router = APIRouter(prefix="/auth", tags=["auth"])


@router.post("/login", response_model=LoginResult)
async def login(
    request: LoginRequest,
    response: Response,
    state: AppState = Depends(get_state),
):
    """
    Verify master password and one-time code, then issue a session.

    The session id is returned in the body and set as an HttpOnly cookie.
    """
    result = await run_in_threadpool(
        state.auth.authenticate, request.master_password, request.totp_code
    )
    response.set_cookie(
        SESSION_COOKIE,
        result.session_id,
        max_age=state.auth.session_max_age,
        httponly=True,
        secure=True,
        samesite="strict",
    )
    return result


@router.get("/status", response_model=AuthStatus)
async def auth_status(
    token: Optional[str] = Depends(session_token),
    state: AppState = Depends(get_state),
):
    """Whether the caller holds a valid session."""
    return state.auth.status(token)


@router.post("/logout")
async def logout(
    response: Response,
    token: Optional[str] = Depends(session_token),
    state: AppState = Depends(get_state),
):
    """Drop the session (if any) and clear the cookie."""
    state.auth.logout(token)
    response.delete_cookie(
        SESSION_COOKIE,
        httponly=True,
        secure=True,
        samesite="strict",
    )
    return {"success": True}
