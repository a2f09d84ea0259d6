"""Shared test fixtures for kagikanri."""

from __future__ import annotations

import base64
import threading
import time
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Callable, Optional

import pytest

from kagikanri.config import (
    AuthSettings,
    GitSettings,
    PasskeySettings,
    PassSettings,
    ServerSettings,
    Settings,
)
from kagikanri.errors import SecretNotFound, SecretStoreError
from kagikanri.store import SecretEntry, SecretStore
from kagikanri.sync.git import GitCommandError, GitRepository

# RFC 4226 / RFC 6238 reference secret
RFC_SECRET = b"12345678901234567890"
RFC_SECRET_B32 = base64.b32encode(RFC_SECRET).decode("ascii")

MASTER_PASSWORD = "correct horse battery staple"
TEST_KEY_HEX = "00112233445566778899aabbccddeeff00112233445566778899aabbccddeeff"


class FakeClock:
    """Mutable clock; call it to read, ``advance`` to move forward."""

    def __init__(self, start: Optional[datetime] = None):
        self.now = start or datetime(2026, 1, 1, 12, 0, 0, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now = self.now + timedelta(**kwargs)


class InMemorySecretStore(SecretStore):
    """Dict-backed SecretStore. Set ``fail`` to simulate a broken CLI."""

    def __init__(self, entries: Optional[dict[str, str]] = None):
        self.entries: dict[str, SecretEntry] = {}
        self.otp_secrets: dict[str, str] = {}
        self.fail = False
        self.reads: list[str] = []
        for path, value in (entries or {}).items():
            self.entries[path] = SecretEntry(path=path, password=value)

    def _check(self) -> None:
        if self.fail:
            raise SecretStoreError("pass exploded")

    def list(self) -> list[str]:
        self._check()
        return sorted(self.entries)

    def get(self, path: str) -> SecretEntry:
        self._check()
        self.reads.append(path)
        if path not in self.entries:
            raise SecretNotFound(f"Password not found: {path}")
        return self.entries[path]

    def put(self, path: str, entry: SecretEntry) -> None:
        self._check()
        self.entries[path] = entry

    def delete(self, path: str) -> None:
        self._check()
        if path not in self.entries:
            raise SecretNotFound(f"Password not found: {path}")
        del self.entries[path]

    def get_one_time_code(self, path: str) -> str:
        self._check()
        if path not in self.otp_secrets:
            raise SecretNotFound(f"OTP not found: {path}")
        return "123456"

    def put_one_time_code(self, path: str, secret: str) -> None:
        self._check()
        self.otp_secrets[path] = secret


class RecordingRepository(GitRepository):
    """
    In-memory stand-in for a working copy and its remote.

    Every operation appends ``(thread name, step)`` to ``steps``. Set a step
    name in ``failures`` to make it raise, or in ``hooks`` to run a callable
    at that point (e.g. to block on an event).
    """

    def __init__(self, path: Path = Path("/tmp/store"), present: bool = False):
        self._path = path
        self.present = present
        self.branch = "main"
        self.local_tip: Optional[str] = "c0"
        self.remote_tip: Optional[str] = "c0"
        self.ancestry: set[tuple[str, str]] = set()
        self.dirty = False
        self.commit_counter = 0
        self.failures: dict[str, str] = {}
        self.hooks: dict[str, Callable[[], None]] = {}
        self.steps: list[tuple[str, str]] = []
        self.delay = 0.0
        self._lock = threading.Lock()

    @property
    def path(self) -> Path:
        return self._path

    def _step(self, name: str) -> None:
        with self._lock:
            self.steps.append((threading.current_thread().name, name))
        if self.delay:
            time.sleep(self.delay)
        hook = self.hooks.get(name)
        if hook is not None:
            hook()
        if name in self.failures:
            raise GitCommandError(f"git {name} failed", self.failures[name])

    def step_names(self) -> list[str]:
        return [name for _, name in self.steps]

    def exists(self) -> bool:
        return self.present

    def clone(self) -> None:
        self._step("clone")
        self.present = True
        self.local_tip = self.remote_tip

    def verify(self) -> None:
        self._step("verify")

    def fetch(self) -> None:
        self._step("fetch")

    def current_branch(self) -> str:
        return self.branch

    def resolve(self, ref: str) -> Optional[str]:
        if ref == "HEAD":
            return self.local_tip
        if ref == self.remote_ref(self.branch):
            return self.remote_tip
        return None

    def is_ancestor(self, ancestor: str, descendant: str) -> bool:
        return ancestor == descendant or (ancestor, descendant) in self.ancestry

    def reset_hard(self, commit: str) -> None:
        self._step("reset")
        self.local_tip = commit
        self.dirty = False

    def has_changes(self) -> bool:
        return self.dirty

    def commit_all(self, message: str, author_name: str, author_email: str) -> Optional[str]:
        self._step("commit")
        self.commit_counter += 1
        parent = self.local_tip
        self.local_tip = f"local{self.commit_counter}"
        if parent is not None:
            self.ancestry.add((parent, self.local_tip))
        self.dirty = False
        self.last_commit_message = message
        self.last_author = (author_name, author_email)
        return self.local_tip

    def push(self, branch: str) -> None:
        self._step("push")
        self.remote_tip = self.local_tip


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def secret_store() -> InMemorySecretStore:
    return InMemorySecretStore({
        "kagikanri/master-password": MASTER_PASSWORD,
        "kagikanri/totp": RFC_SECRET_B32,
    })


@pytest.fixture
def repository(tmp_path: Path) -> RecordingRepository:
    return RecordingRepository(path=tmp_path / "password-store")


@pytest.fixture
def settings(tmp_path: Path) -> Settings:
    return Settings(
        server=ServerSettings(),
        git=GitSettings(
            repo_url="https://git.example.com/me/store.git",
            access_token="token-123",
            sync_interval_minutes=0,
        ),
        auth=AuthSettings(session_timeout_hours=24),
        pass_store=PassSettings(store_dir=tmp_path / "password-store"),
        passkeys=PasskeySettings(
            db_path=tmp_path / "passkeys.db",
            encryption_key=TEST_KEY_HEX,
        ),
    )
