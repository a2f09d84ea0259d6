"""
At-rest encryption for the passkey registry using AES-256-GCM.

The key is configured as 64 hex characters (32 bytes). Each write uses a
fresh random 96-bit nonce.
"""

import base64
import binascii
import json
import os
from typing import Any

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives.ciphers.aead import AESGCM

from ..errors import ConfigError, PasskeyError

KEY_LENGTH_BYTES = 32  # 256 bits
IV_LENGTH_BYTES = 12  # 96 bits, recommended for AES-GCM

# Bound to every ciphertext so a blob from another file type cannot be swapped in
ASSOCIATED_DATA = b"kagikanri-passkeys-v1"


def load_key(hex_key: str) -> bytes:
    """
    Parse the configured hex key.

    Raises:
        ConfigError: If it is not exactly 32 bytes of hex.
    """
    try:
        key = bytes.fromhex(hex_key)
    except ValueError as exc:
        raise ConfigError(f"Invalid encryption key: {exc}")
    if len(key) != KEY_LENGTH_BYTES:
        raise ConfigError("Encryption key must be exactly 32 bytes")
    return key


def encrypt(key: bytes, plaintext: str) -> tuple[str, str]:
    """
    Encrypt plaintext using AES-256-GCM.

    Returns:
        Tuple of (encrypted_base64, iv_base64)
    """
    iv = os.urandom(IV_LENGTH_BYTES)
    ciphertext = AESGCM(key).encrypt(iv, plaintext.encode('utf-8'), ASSOCIATED_DATA)
    return (
        base64.b64encode(ciphertext).decode('ascii'),
        base64.b64encode(iv).decode('ascii'),
    )


def decrypt(key: bytes, encrypted_base64: str, iv_base64: str) -> str:
    """
    Decrypt ciphertext produced by ``encrypt``.

    Raises:
        PasskeyError: Wrong key, tampered data or malformed base64.
    """
    try:
        ciphertext = base64.b64decode(encrypted_base64, validate=True)
        iv = base64.b64decode(iv_base64, validate=True)
    except (binascii.Error, ValueError, TypeError):
        raise PasskeyError("Passkey registry is not valid base64")
    try:
        plaintext = AESGCM(key).decrypt(iv, ciphertext, ASSOCIATED_DATA)
    except (InvalidTag, ValueError):
        raise PasskeyError("Passkey registry could not be decrypted")
    return plaintext.decode('utf-8')


def encrypt_object(key: bytes, data: Any) -> dict:
    """Encrypt a JSON-serializable object into a storable envelope."""
    encrypted, iv = encrypt(key, json.dumps(data))
    return {"iv": iv, "data": encrypted}


def decrypt_object(key: bytes, envelope: dict) -> Any:
    """Decrypt an envelope written by ``encrypt_object``."""
    try:
        encrypted, iv = envelope["data"], envelope["iv"]
    except (KeyError, TypeError):
        raise PasskeyError("Passkey registry envelope is malformed")
    try:
        return json.loads(decrypt(key, encrypted, iv))
    except json.JSONDecodeError:
        raise PasskeyError("Passkey registry does not hold valid JSON")
