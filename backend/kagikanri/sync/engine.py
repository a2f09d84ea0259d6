"""
Git Sync Engine -- keeps the password-store working copy in step with its remote.

One sync runs these steps in order, and the first failure aborts the rest:

    ensure repository -> fetch -> reconcile -> commit local changes -> push

Reconciliation is last-writer-wins with the remote as the writer: when the
local branch is behind or has diverged, it is reset to the remote tip and
any local-only commits are dropped. Two people editing the same store from
different servers can lose each other's changes.
"""

from __future__ import annotations

import threading
from datetime import datetime, timezone
from typing import Callable, Optional

from ..errors import (
    CommitFailed,
    ReconciliationFailed,
    RemoteFetchFailed,
    RemotePushFailed,
    RepositoryUnavailable,
    SyncError,
)
from ..logging import get_logger
from .git import GitCommandError, GitRepository
from .models import SyncPhase, SyncStatus

logger = get_logger("sync")

COMMIT_AUTHOR_NAME = "Kagikanri"
COMMIT_AUTHOR_EMAIL = "kagikanri@localhost"
COMMIT_MESSAGE = "Auto-commit from Kagikanri"


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


class GitSyncEngine:
    """Runs the sync sequence against one working copy.

    ``sync()`` holds an exclusive lock for the whole sequence. ``status()``
    reads the last published snapshot and never waits for a running sync.
    """

    def __init__(
        self,
        repository: GitRepository,
        clock: Callable[[], datetime] = _utc_now,
    ):
        self.repository = repository
        self.clock = clock
        self._sync_lock = threading.Lock()
        self._status_lock = threading.Lock()
        self._status = SyncStatus()
        self._phase = SyncPhase.UNINITIALIZED

    @property
    def phase(self) -> SyncPhase:
        return self._phase

    def status(self) -> SyncStatus:
        with self._status_lock:
            return self._status

    def _publish(self, **changes) -> SyncStatus:
        with self._status_lock:
            self._status = self._status.model_copy(update=changes)
            return self._status

    def sync(self) -> SyncStatus:
        """
        Run one full sync.

        Returns:
            The published status after success.

        Raises:
            SyncError: One of its subclasses, naming the step that failed.
                The failure is also recorded in ``status().error``.
        """
        with self._sync_lock:
            logger.info("Starting Git sync")
            self._publish(is_syncing=True)
            try:
                self._ensure_repository()
                self._fetch()
                branch = self._reconcile()
                self._commit_local_changes()
                self._push(branch)
                last_commit = self.repository.head_commit()
            except SyncError as exc:
                self._phase = SyncPhase.ERROR
                logger.error(f"Git sync failed: {exc.message}")
                self._publish(is_syncing=False, error=exc.message)
                raise
            except Exception as exc:
                self._phase = SyncPhase.ERROR
                logger.exception("Git sync failed unexpectedly")
                self._publish(is_syncing=False, error=f"Unexpected sync failure: {exc}")
                raise

            self._phase = SyncPhase.IDLE
            status = self._publish(
                last_sync=self.clock(),
                last_commit=last_commit,
                is_syncing=False,
                error=None,
            )
            logger.info(f"Git sync complete at {last_commit or '(no commits)'}")
            return status

    def _ensure_repository(self) -> None:
        repo = self.repository
        try:
            if repo.exists():
                repo.verify()
            else:
                logger.info(f"Cloning repository into {repo.path}")
                repo.clone()
                logger.info("Repository cloned successfully")
        except GitCommandError as exc:
            raise RepositoryUnavailable(f"Failed to open repository: {exc}")
        self._phase = SyncPhase.OPEN

    def _fetch(self) -> None:
        self._phase = SyncPhase.FETCHING
        try:
            self.repository.fetch()
        except GitCommandError as exc:
            raise RemoteFetchFailed(f"Failed to fetch: {exc}")

    def _reconcile(self) -> str:
        """Bring the local branch to the remote tip unless it is strictly ahead."""
        self._phase = SyncPhase.MERGING
        repo = self.repository
        try:
            branch = repo.current_branch()
            remote_tip = repo.resolve(repo.remote_ref(branch))
            local_tip = repo.head_commit()

            if remote_tip is None:
                logger.info(f"Remote has no branch {branch}; nothing to reconcile")
            elif local_tip == remote_tip:
                logger.info("Local branch is up to date with remote")
            elif local_tip is not None and repo.is_ancestor(remote_tip, local_tip):
                logger.info("Local branch is ahead of remote")
            else:
                logger.warning(f"Resetting {branch} to remote tip {remote_tip[:12]}")
                repo.reset_hard(remote_tip)
        except GitCommandError as exc:
            raise ReconciliationFailed(f"Failed to reconcile with remote: {exc}")
        return branch

    def _commit_local_changes(self) -> None:
        self._phase = SyncPhase.COMMITTING
        repo = self.repository
        try:
            if not repo.has_changes():
                return
            commit = repo.commit_all(COMMIT_MESSAGE, COMMIT_AUTHOR_NAME, COMMIT_AUTHOR_EMAIL)
        except GitCommandError as exc:
            raise CommitFailed(f"Failed to commit local changes: {exc}")
        if commit:
            logger.info(f"Created commit: {commit}")

    def _push(self, branch: str) -> None:
        self._phase = SyncPhase.PUSHING
        repo = self.repository
        try:
            if repo.head_commit() is None:
                logger.info(f"Branch {branch} has no commits; skipping push")
                return
            repo.push(branch)
        except GitCommandError as exc:
            raise RemotePushFailed(f"Failed to push: {exc}")
        logger.info("Successfully pushed changes to remote")
