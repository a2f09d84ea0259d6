"""
Single-flight wrapper around the sync engine.

Only one sync runs at a time. A caller that arrives while a sync is running
waits for it and receives the same result or the same error instead of
starting a second run. Status reads go straight to the engine's snapshot.
"""

import threading
from concurrent.futures import Future
from typing import Optional

from ..logging import get_logger
from .engine import GitSyncEngine
from .models import SyncStatus

logger = get_logger("sync")


class SyncGuard:
    def __init__(self, engine: GitSyncEngine):
        self.engine = engine
        self._lock = threading.Lock()
        self._inflight: Optional[Future] = None

    @property
    def in_progress(self) -> bool:
        with self._lock:
            return self._inflight is not None

    def sync(self) -> SyncStatus:
        """Run a sync, or share the one already running."""
        with self._lock:
            future = self._inflight
            leader = future is None
            if leader:
                future = Future()
                self._inflight = future

        if not leader:
            logger.debug("Sync already running; waiting for its result")
            return future.result()

        try:
            status = self.engine.sync()
        except BaseException as exc:
            self._finish()
            future.set_exception(exc)
            raise

        self._finish()
        future.set_result(status)
        return status

    def status(self) -> SyncStatus:
        """Last recorded status; never blocks on a running sync."""
        return self.engine.status()

    def _finish(self) -> None:
        with self._lock:
            self._inflight = None
