"""Login, status and logout on top of the verifier and the session table."""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel

from ..logging import get_logger, session_hint
from .sessions import SessionRegistry
from .verifier import CredentialVerifier

logger = get_logger("auth")

# Single implicit identity: the store has one owner.
DEFAULT_USER_ID = "user"

SESSION_COOKIE = "session"


class LoginRequest(BaseModel):
    master_password: str
    totp_code: str


class LoginResult(BaseModel):
    session_id: str
    expires_at: datetime


class AuthStatus(BaseModel):
    authenticated: bool
    user_id: Optional[str] = None
    expires_at: Optional[datetime] = None


def extract_session_token(
    cookie_header: Optional[str],
    authorization_header: Optional[str],
) -> Optional[str]:
    """
    Pull the session id out of request headers.

    The ``session`` cookie wins over an ``Authorization: Bearer`` header.
    Anything missing or malformed yields None.
    """
    if cookie_header:
        for cookie in cookie_header.split(";"):
            name, sep, value = cookie.strip().partition("=")
            if sep and name.strip() == SESSION_COOKIE and value.strip():
                return value.strip()

    if authorization_header:
        scheme, _, token = authorization_header.strip().partition(" ")
        if scheme == "Bearer" and token.strip():
            return token.strip()

    return None


class AuthService:
    """Turns a verified login into a session; answers status and logout."""

    def __init__(
        self,
        verifier: CredentialVerifier,
        sessions: SessionRegistry,
        user_id: str = DEFAULT_USER_ID,
    ):
        self.verifier = verifier
        self.sessions = sessions
        self.user_id = user_id

    def authenticate(self, master_password: str, totp_code: str) -> LoginResult:
        """
        Verify both factors and issue a session.

        Raises:
            AuthenticationFailed: Nothing is created.
            CredentialStoreUnavailable: Nothing is created.
        """
        try:
            self.verifier.verify(master_password, totp_code)
        except Exception:
            logger.warning("Failed login attempt")
            raise

        session = self.sessions.create(self.user_id)
        logger.info(f"Login succeeded, session {session_hint(session.session_id)}")
        return LoginResult(session_id=session.session_id, expires_at=session.expires_at)

    def is_authenticated(self, session_id: Optional[str]) -> bool:
        return self.sessions.is_valid(session_id)

    def status(self, session_id: Optional[str]) -> AuthStatus:
        if not self.sessions.is_valid(session_id):
            return AuthStatus(authenticated=False)

        session = self.sessions.get(session_id)
        if session is None:
            # Removed between the two lookups
            return AuthStatus(authenticated=False)
        return AuthStatus(
            authenticated=True,
            user_id=session.user_id,
            expires_at=session.expires_at,
        )

    def logout(self, session_id: Optional[str]) -> None:
        self.sessions.remove(session_id)

    @property
    def session_max_age(self) -> int:
        """Cookie Max-Age in seconds."""
        return int(self.sessions.timeout.total_seconds())
