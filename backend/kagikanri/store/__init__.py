"""Access to the external password store."""

from .base import SecretStore, validate_entry_path
from .models import SecretEntry, SecretList, SecretMetadata
from .pass_store import PassStore

__all__ = [
    'SecretStore',
    'validate_entry_path',
    'SecretEntry',
    'SecretList',
    'SecretMetadata',
    'PassStore',
]
