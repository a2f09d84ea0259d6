"""
Application context -- the process-wide services, built once and handed to
the HTTP layer through ``app.state``.
"""

from dataclasses import dataclass
from datetime import timedelta
from typing import Optional

from starlette.concurrency import run_in_threadpool

from .auth import AuthService, CredentialVerifier, SessionRegistry
from .config import Settings
from .errors import SyncError
from .logging import get_logger
from .passkeys import PasskeyStore, load_key
from .store import PassStore, SecretStore
from .sync import GitCliRepository, GitRepository, GitSyncEngine, SyncGuard, SyncStatus

logger = get_logger("main")


@dataclass
class AppState:
    settings: Settings
    secret_store: SecretStore
    sessions: SessionRegistry
    auth: AuthService
    sync: SyncGuard
    passkeys: PasskeyStore

    @classmethod
    def build(
        cls,
        settings: Settings,
        secret_store: Optional[SecretStore] = None,
        repository: Optional[GitRepository] = None,
        passkeys: Optional[PasskeyStore] = None,
    ) -> "AppState":
        """Wire up the services. Collaborators may be swapped for fakes."""
        if secret_store is None:
            secret_store = PassStore(settings.pass_store)

        if repository is None:
            repository = GitCliRepository(
                path=settings.pass_store.store_dir,
                repo_url=settings.git.repo_url,
                access_token=settings.git.access_token,
                branch=settings.git.branch,
            )

        if passkeys is None:
            passkeys = PasskeyStore(
                path=settings.passkeys.db_path,
                key=load_key(settings.passkeys.encryption_key),
                rp_id=settings.passkeys.rp_id,
            )

        sessions = SessionRegistry(
            timeout=timedelta(hours=settings.auth.session_timeout_hours),
        )
        verifier = CredentialVerifier(settings.auth, secret_store)

        return cls(
            settings=settings,
            secret_store=secret_store,
            sessions=sessions,
            auth=AuthService(verifier, sessions),
            sync=SyncGuard(GitSyncEngine(repository)),
            passkeys=passkeys,
        )

    def is_authenticated(self, session_id: Optional[str]) -> bool:
        return self.auth.is_authenticated(session_id)

    async def trigger_sync(self) -> SyncStatus:
        """Run a sync on a worker thread. Raises SyncError on failure."""
        return await run_in_threadpool(self.sync.sync)

    def get_sync_status(self) -> SyncStatus:
        return self.sync.status()

    async def sync_after_mutation(self, what: str) -> None:
        """Sync after a successful write; a failure is logged, not raised."""
        try:
            await self.trigger_sync()
        except SyncError as exc:
            logger.warning(f"Failed to sync git after {what}: {exc.message}")
        except Exception:
            logger.exception(f"Unexpected failure syncing git after {what}")
