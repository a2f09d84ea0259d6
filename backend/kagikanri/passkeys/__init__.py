"""Passkey registry with encrypted at-rest storage."""

from .crypto import decrypt_object, encrypt_object, load_key
from .store import (
    PasskeyStore,
    RegistrationFinish,
    RegistrationStart,
    RegistrationStartRequest,
    StoredPasskey,
)

__all__ = [
    'decrypt_object',
    'encrypt_object',
    'load_key',
    'PasskeyStore',
    'RegistrationFinish',
    'RegistrationStart',
    'RegistrationStartRequest',
    'StoredPasskey',
]
