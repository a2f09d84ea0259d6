"""Error taxonomy for Kagikanri.

Each error carries the HTTP status it maps to and the message that is safe
to show to a client. Server-side failures never expose their detail.
"""

from typing import Optional


class KagikanriError(Exception):
    """Base class for all application errors."""

    status_code: int = 500
    public_message: Optional[str] = None

    def __init__(self, message: str = ""):
        super().__init__(message)
        self.message = message

    @property
    def client_message(self) -> str:
        """Message rendered in the HTTP error body."""
        if self.public_message is not None:
            return self.public_message
        if self.status_code >= 500:
            return "Internal server error"
        return self.message


# --- Authentication ---

class AuthenticationFailed(KagikanriError):
    """Wrong password or one-time code. Never says which factor failed."""
    status_code = 401
    public_message = "Authentication failed"


class InvalidSecretFormat(KagikanriError):
    """The one-time-code shared secret is not valid RFC 4648 base32."""
    status_code = 401
    public_message = "Authentication failed"


class CredentialStoreUnavailable(KagikanriError):
    """The secret store could not provide a stored credential."""
    status_code = 500


# --- Secret store ---

class SecretStoreError(KagikanriError):
    """The password-store CLI failed."""
    status_code = 500


class SecretNotFound(KagikanriError):
    """No entry at the requested path."""
    status_code = 404


# --- Sync ---

class SyncError(KagikanriError):
    """Base for repository synchronization failures."""
    status_code = 500


class RepositoryUnavailable(SyncError):
    """The working copy could not be cloned or opened."""


class RemoteFetchFailed(SyncError):
    """Fetching remote branch tips failed."""


class ReconciliationFailed(SyncError):
    """The local branch could not be moved to the remote tip."""


class CommitFailed(SyncError):
    """Local changes could not be staged or committed."""


class RemotePushFailed(SyncError):
    """Pushing the current branch failed."""


# --- Generic ---

class ValidationError(KagikanriError):
    status_code = 400


class NotFound(KagikanriError):
    status_code = 404


class PasskeyError(KagikanriError):
    status_code = 400


class ConfigError(KagikanriError):
    """Invalid or missing configuration. Raised at startup only."""
