"""Authentication: one-time codes, credential checks and sessions."""

from .totp import TimeWindowCodeValidator, decode_secret, generate_code, time_window
from .verifier import CredentialVerifier
from .sessions import ReadWriteLock, Session, SessionRegistry
from .service import (
    AuthService,
    AuthStatus,
    LoginRequest,
    LoginResult,
    extract_session_token,
)

__all__ = [
    'TimeWindowCodeValidator',
    'decode_secret',
    'generate_code',
    'time_window',
    'CredentialVerifier',
    'ReadWriteLock',
    'Session',
    'SessionRegistry',
    'AuthService',
    'AuthStatus',
    'LoginRequest',
    'LoginResult',
    'extract_session_token',
]
