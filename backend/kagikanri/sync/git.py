"""
Git working-copy access for the sync engine.

``GitRepository`` is the narrow interface the engine drives; ``GitCliRepository``
implements it with the ``git`` binary. Token credentials are handed to git
through ``GIT_CONFIG_*`` environment variables as an HTTP Basic header, so
they never land in argv, in ``.git/config`` or in a log line.
"""

from __future__ import annotations

import base64
import os
import subprocess
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Optional
from urllib.parse import urlsplit

from ..logging import get_logger

logger = get_logger("sync")

REMOTE_NAME = "origin"


class GitCommandError(Exception):
    """A git operation failed."""

    def __init__(self, message: str, stderr: str = ""):
        super().__init__(message)
        self.message = message
        self.stderr = stderr

    def __str__(self) -> str:
        if self.stderr:
            return f"{self.message}: {self.stderr}"
        return self.message


class GitRepository(ABC):
    """Operations the sync engine needs from a working copy and its remote."""

    @property
    @abstractmethod
    def path(self) -> Path:
        """Working copy location."""

    @abstractmethod
    def exists(self) -> bool:
        """True if a working copy is present at ``path``."""

    @abstractmethod
    def clone(self) -> None:
        """Full clone of the remote into ``path``."""

    @abstractmethod
    def verify(self) -> None:
        """Check the existing working copy opens and has the remote configured."""

    @abstractmethod
    def fetch(self) -> None:
        """Retrieve all remote branch tips."""

    @abstractmethod
    def current_branch(self) -> str:
        """Name of the checked-out branch."""

    @abstractmethod
    def resolve(self, ref: str) -> Optional[str]:
        """Commit hash ``ref`` points at, or None if it does not exist."""

    @abstractmethod
    def is_ancestor(self, ancestor: str, descendant: str) -> bool:
        """True if ``ancestor`` is reachable from ``descendant``."""

    @abstractmethod
    def reset_hard(self, commit: str) -> None:
        """Point the current branch, index and working tree at ``commit``."""

    @abstractmethod
    def has_changes(self) -> bool:
        """True if the working tree has added, changed or removed files."""

    @abstractmethod
    def commit_all(self, message: str, author_name: str, author_email: str) -> Optional[str]:
        """Stage everything and commit. Returns the new hash, or None if nothing changed."""

    @abstractmethod
    def push(self, branch: str) -> None:
        """Push ``branch`` to the same branch on the remote."""

    def head_commit(self) -> Optional[str]:
        return self.resolve("HEAD")

    def remote_ref(self, branch: str) -> str:
        return f"refs/remotes/{REMOTE_NAME}/{branch}"


def basic_auth_header(repo_url: str, token: str) -> str:
    """HTTP Basic header carrying the access token as the password."""
    username = urlsplit(repo_url).username or "git"
    raw = f"{username}:{token}".encode("utf-8")
    return "Authorization: Basic " + base64.b64encode(raw).decode("ascii")


class GitCliRepository(GitRepository):
    """GitRepository implemented by running ``git``."""

    def __init__(
        self,
        path: Path,
        repo_url: str,
        access_token: str = "",
        branch: Optional[str] = None,
        binary: str = "git",
    ):
        self._path = Path(path)
        self.repo_url = repo_url
        self.access_token = access_token
        self.branch = branch
        self.binary = binary

    @property
    def path(self) -> Path:
        return self._path

    def _env(self) -> dict[str, str]:
        env = os.environ.copy()
        env["GIT_TERMINAL_PROMPT"] = "0"
        if self.access_token and self.repo_url.startswith(("http://", "https://")):
            env["GIT_CONFIG_COUNT"] = "1"
            env["GIT_CONFIG_KEY_0"] = "http.extraHeader"
            env["GIT_CONFIG_VALUE_0"] = basic_auth_header(self.repo_url, self.access_token)
        return env

    def _run(
        self,
        args: list[str],
        cwd: Optional[Path] = None,
        ok_codes: tuple[int, ...] = (0,),
    ) -> subprocess.CompletedProcess:
        cmd = [self.binary, *args]
        try:
            result = subprocess.run(
                cmd,
                cwd=str(cwd or self._path),
                capture_output=True,
                text=True,
                check=False,
                env=self._env(),
            )
        except OSError as exc:
            raise GitCommandError(f"Failed to run git {args[0]}", str(exc))

        if result.returncode not in ok_codes:
            logger.debug(f"git {' '.join(args)} exited {result.returncode}")
            raise GitCommandError(f"git {args[0]} failed", result.stderr.strip())
        return result

    def exists(self) -> bool:
        return (self._path / ".git").exists()

    def clone(self) -> None:
        try:
            self._path.parent.mkdir(parents=True, exist_ok=True)
        except OSError as exc:
            raise GitCommandError(f"Cannot create {self._path.parent}", str(exc))
        args = ["clone"]
        if self.branch:
            args += ["--branch", self.branch]
        args += [self.repo_url, str(self._path)]
        self._run(args, cwd=self._path.parent)

    def verify(self) -> None:
        self._run(["rev-parse", "--git-dir"])
        self._run(["remote", "get-url", REMOTE_NAME])

    def fetch(self) -> None:
        self._run([
            "fetch", "--prune", REMOTE_NAME,
            f"+refs/heads/*:refs/remotes/{REMOTE_NAME}/*",
        ])

    def current_branch(self) -> str:
        result = self._run(["symbolic-ref", "--short", "-q", "HEAD"], ok_codes=(0, 1))
        branch = result.stdout.strip()
        if result.returncode != 0 or not branch:
            raise GitCommandError("HEAD is detached; no current branch")
        return branch

    def resolve(self, ref: str) -> Optional[str]:
        result = self._run(
            ["rev-parse", "--verify", "-q", f"{ref}^{{commit}}"],
            ok_codes=(0, 1, 128),
        )
        if result.returncode != 0:
            return None
        return result.stdout.strip() or None

    def is_ancestor(self, ancestor: str, descendant: str) -> bool:
        result = self._run(
            ["merge-base", "--is-ancestor", ancestor, descendant],
            ok_codes=(0, 1),
        )
        return result.returncode == 0

    def reset_hard(self, commit: str) -> None:
        self._run(["reset", "--hard", commit])

    def has_changes(self) -> bool:
        result = self._run(["status", "--porcelain"])
        return bool(result.stdout.strip())

    def commit_all(self, message: str, author_name: str, author_email: str) -> Optional[str]:
        self._run(["add", "-A"])
        staged = self._run(["diff", "--cached", "--quiet"], ok_codes=(0, 1))
        if staged.returncode == 0:
            return None

        self._run([
            "-c", f"user.name={author_name}",
            "-c", f"user.email={author_email}",
            "-c", "commit.gpgsign=false",
            "commit", "--no-verify", "-m", message,
        ])
        return self.head_commit()

    def push(self, branch: str) -> None:
        self._run(["push", REMOTE_NAME, f"refs/heads/{branch}:refs/heads/{branch}"])
