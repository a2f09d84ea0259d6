"""Narrow interface over the external secret store."""

from abc import ABC, abstractmethod

from ..errors import ValidationError
from .models import SecretEntry


class SecretStore(ABC):
    """Capability interface consumed by the auth core and the HTTP layer.

    All calls are blocking. Async callers must offload them to a thread.
    """

    @abstractmethod
    def list(self) -> list[str]:
        """Names of all entries."""

    @abstractmethod
    def get(self, path: str) -> SecretEntry:
        """Return the entry at ``path``.

        Raises:
            SecretNotFound: No such entry.
            SecretStoreError: The store failed.
        """

    @abstractmethod
    def put(self, path: str, entry: SecretEntry) -> None:
        """Create or overwrite the entry at ``path``."""

    @abstractmethod
    def delete(self, path: str) -> None:
        """Remove the entry at ``path``. Raises SecretNotFound if absent."""

    @abstractmethod
    def get_one_time_code(self, path: str) -> str:
        """Current one-time code for the OTP entry at ``path``."""

    @abstractmethod
    def put_one_time_code(self, path: str, secret: str) -> None:
        """Attach an OTP secret (base32 or otpauth URI) to ``path``."""


def validate_entry_path(path: str) -> str:
    """Reject paths that could escape the store directory."""
    if not path or not path.strip():
        raise ValidationError("Entry path must not be empty")
    if "\x00" in path:
        raise ValidationError("Entry path must not contain NUL")
    if path.startswith("/"):
        raise ValidationError("Entry path must be relative")
    if any(part == ".." for part in path.split("/")):
        raise ValidationError("Entry path must not contain '..'")
    return path
