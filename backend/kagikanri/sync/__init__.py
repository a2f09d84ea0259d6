"""
Git Sync -- the password store travels through a git remote.

The engine clones, fetches, reconciles, commits and pushes the working copy;
the guard makes sure only one of those sequences runs at a time.
"""

from .engine import GitSyncEngine
from .git import GitCliRepository, GitCommandError, GitRepository
from .guard import SyncGuard
from .models import SyncPhase, SyncStatus

__all__ = [
    "GitSyncEngine",
    "GitCliRepository",
    "GitCommandError",
    "GitRepository",
    "SyncGuard",
    "SyncPhase",
    "SyncStatus",
]
