"""Request dependencies shared by the routers."""

from typing import Optional

from fastapi import Depends, Request

from ..auth import extract_session_token
from ..errors import AuthenticationFailed
from ..state import AppState


def get_state(request: Request) -> AppState:
    return request.app.state.kagikanri


def session_token(request: Request) -> Optional[str]:
    """Session id from the ``session`` cookie or a bearer header, if any."""
    return extract_session_token(
        request.headers.get("cookie"),
        request.headers.get("authorization"),
    )


def require_session(
    token: Optional[str] = Depends(session_token),
    state: AppState = Depends(get_state),
) -> str:
    """Gate for every route except login, status, logout and health."""
    if not state.is_authenticated(token):
        raise AuthenticationFailed("Session missing or expired")
    return token
