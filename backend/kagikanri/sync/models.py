"""
Sync data models.
"""

from datetime import datetime
from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict


class SyncPhase(str, Enum):
    """Where the engine is in the sync sequence."""

    UNINITIALIZED = "uninitialized"
    OPEN = "open"
    FETCHING = "fetching"
    MERGING = "merging"
    COMMITTING = "committing"
    PUSHING = "pushing"
    IDLE = "idle"
    ERROR = "error"


class SyncStatus(BaseModel):
    """Outcome of the most recent sync attempt.

    Instances are immutable; the engine publishes a new one per transition
    so a reader always sees a consistent snapshot.
    """

    model_config = ConfigDict(frozen=True)

    last_sync: Optional[datetime] = None
    last_commit: Optional[str] = None
    is_syncing: bool = False
    error: Optional[str] = None
