"""Two-factor credential check against values held in the secret store."""

import hmac
from datetime import datetime, timezone
from typing import Callable, Optional

from ..config import AuthSettings
from ..errors import (
    AuthenticationFailed,
    CredentialStoreUnavailable,
    InvalidSecretFormat,
    KagikanriError,
)
from ..logging import get_logger
from ..store import SecretStore
from .totp import TimeWindowCodeValidator, decode_secret

logger = get_logger("auth")

Clock = Callable[[], datetime]


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class CredentialVerifier:
    """
    Checks a master password and a one-time code.

    Both factors must pass. The first failure is raised and nothing is
    mutated either way. Callers see ``AuthenticationFailed`` for any wrong
    or malformed credential, so the response never tells which factor failed.
    """

    def __init__(
        self,
        settings: AuthSettings,
        store: SecretStore,
        validator: Optional[TimeWindowCodeValidator] = None,
        clock: Clock = utc_now,
    ):
        self.settings = settings
        self.store = store
        self.validator = validator or TimeWindowCodeValidator()
        self.clock = clock

    def _stored_value(self, path: str) -> str:
        try:
            return self.store.get(path).password
        except KagikanriError as exc:
            logger.error(f"Credential lookup failed for {path}: {exc.message}")
            raise CredentialStoreUnavailable(f"Cannot read {path}: {exc.message}")

    def verify(self, master_password: str, one_time_code: str) -> None:
        """
        Raises:
            AuthenticationFailed: Wrong password, wrong code or malformed secret.
            CredentialStoreUnavailable: The store could not be read.
        """
        self.verify_master_password(master_password)
        self.verify_one_time_code(one_time_code)

    def verify_master_password(self, provided: str) -> None:
        stored = self._stored_value(self.settings.master_password_path)
        if not hmac.compare_digest(provided.encode("utf-8"), stored.encode("utf-8")):
            raise AuthenticationFailed("Invalid master password")

    def verify_one_time_code(self, provided: str) -> None:
        encoded = self._stored_value(self.settings.totp_path)
        try:
            secret = decode_secret(encoded)
        except InvalidSecretFormat as exc:
            logger.error(f"Stored one-time-code secret is malformed: {exc.message}")
            raise AuthenticationFailed("Invalid one-time-code secret")

        if not self.validator.is_valid(provided, secret, self.clock()):
            raise AuthenticationFailed("Invalid one-time code")
