"""
Passkey registry -- WebAuthn credentials kept in an encrypted file.

Registration is two-step: ``start_registration`` hands out a one-use random
challenge, ``finish_registration`` consumes it and records the credential.
Attestation is not verified; the registry only stores what the
authenticator returned.
"""

from __future__ import annotations

import base64
import json
import os
import re
import secrets
import threading
import uuid
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Callable, Optional

from pydantic import BaseModel, Field

from ..errors import NotFound, PasskeyError, ValidationError
from ..logging import get_logger
from .crypto import decrypt_object, encrypt_object

logger = get_logger("passkeys")

CHALLENGE_BYTES = 32
CHALLENGE_TTL = timedelta(minutes=5)

_BASE64URL = re.compile(r"^[A-Za-z0-9_-]+={0,2}$")


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


class StoredPasskey(BaseModel):
    id: str
    domain: str
    user_handle: Optional[str] = None
    credential_id: str
    public_key: str
    counter: int = 0
    created_at: datetime


class RegistrationStartRequest(BaseModel):
    domain: str = Field(..., min_length=1)
    user_id: str = Field(..., min_length=1)


class RegistrationStart(BaseModel):
    challenge: str
    user_id: str
    domain: str
    rp_id: str


class RegistrationFinish(BaseModel):
    challenge: str
    credential_id: str = Field(..., min_length=1, description="base64url credential id")
    public_key: str = Field(..., min_length=1, description="base64url COSE public key")
    user_handle: Optional[str] = None


class _PendingChallenge(BaseModel):
    domain: str
    user_id: str
    expires_at: datetime


def _check_base64url(value: str, name: str) -> None:
    if not _BASE64URL.match(value):
        raise ValidationError(f"{name} must be base64url encoded")
    try:
        base64.urlsafe_b64decode(value + "=" * (-len(value) % 4))
    except ValueError:
        raise ValidationError(f"{name} must be base64url encoded")


class PasskeyStore:
    """Encrypted-file registry of WebAuthn credentials."""

    def __init__(
        self,
        path: Path,
        key: bytes,
        rp_id: str = "kagikanri.local",
        clock: Callable[[], datetime] = _utc_now,
    ):
        self.path = Path(path)
        self.key = key
        self.rp_id = rp_id
        self.clock = clock
        self._lock = threading.Lock()
        self._pending: dict[str, _PendingChallenge] = {}

    def _load(self) -> list[StoredPasskey]:
        if not self.path.exists():
            return []
        try:
            envelope = json.loads(self.path.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as exc:
            raise PasskeyError(f"Passkey registry is unreadable: {exc}")
        data = decrypt_object(self.key, envelope)
        return [StoredPasskey(**item) for item in data.get("passkeys", [])]

    def _save(self, passkeys: list[StoredPasskey]) -> None:
        payload = {
            "version": 1,
            "passkeys": [p.model_dump(mode="json") for p in passkeys],
        }
        envelope = encrypt_object(self.key, payload)
        self.path.parent.mkdir(parents=True, exist_ok=True)
        tmp_path = self.path.with_name(self.path.name + ".tmp")
        tmp_path.write_text(json.dumps(envelope), encoding="utf-8")
        os.replace(tmp_path, self.path)

    def start_registration(self, domain: str, user_id: str) -> RegistrationStart:
        now = self.clock()
        challenge = base64.urlsafe_b64encode(
            secrets.token_bytes(CHALLENGE_BYTES)
        ).decode("ascii").rstrip("=")

        with self._lock:
            self._pending = {
                c: p for c, p in self._pending.items() if p.expires_at > now
            }
            self._pending[challenge] = _PendingChallenge(
                domain=domain,
                user_id=user_id,
                expires_at=now + CHALLENGE_TTL,
            )

        logger.info(f"Passkey registration started for {domain}")
        return RegistrationStart(
            challenge=challenge,
            user_id=user_id,
            domain=domain,
            rp_id=self.rp_id,
        )

    def finish_registration(self, request: RegistrationFinish) -> StoredPasskey:
        """
        Raises:
            PasskeyError: Unknown, reused or expired challenge.
            ValidationError: Credential fields are not base64url.
        """
        _check_base64url(request.credential_id, "credential_id")
        _check_base64url(request.public_key, "public_key")
        if request.user_handle:
            _check_base64url(request.user_handle, "user_handle")

        now = self.clock()
        with self._lock:
            pending = self._pending.pop(request.challenge, None)
            if pending is None or pending.expires_at <= now:
                raise PasskeyError("Unknown or expired registration challenge")

            passkeys = self._load()
            if any(p.credential_id == request.credential_id for p in passkeys):
                raise PasskeyError("Credential is already registered")

            passkey = StoredPasskey(
                id=str(uuid.uuid4()),
                domain=pending.domain,
                user_handle=request.user_handle,
                credential_id=request.credential_id,
                public_key=request.public_key,
                counter=0,
                created_at=now,
            )
            passkeys.append(passkey)
            self._save(passkeys)

        logger.info(f"Passkey {passkey.id} registered for {passkey.domain}")
        return passkey

    def list(self) -> list[StoredPasskey]:
        with self._lock:
            passkeys = self._load()
        return sorted(passkeys, key=lambda p: p.created_at, reverse=True)

    def delete(self, passkey_id: str) -> None:
        with self._lock:
            passkeys = self._load()
            remaining = [p for p in passkeys if p.id != passkey_id]
            if len(remaining) == len(passkeys):
                raise NotFound(f"Passkey not found: {passkey_id}")
            self._save(remaining)
        logger.info(f"Passkey {passkey_id} deleted")
