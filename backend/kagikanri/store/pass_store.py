"""
SecretStore adapter over the ``pass`` command-line password manager.

Every call runs ``pass`` synchronously with ``PASSWORD_STORE_DIR`` (and
``PASSWORD_STORE_KEY`` when a GPG key is configured) in its environment.
Content is handed to ``pass`` on stdin, never through a shell.
"""

import os
import re
import subprocess
from pathlib import Path
from typing import Optional
from urllib.parse import quote

from ..config import PassSettings
from ..errors import SecretNotFound, SecretStoreError
from ..logging import get_logger
from .base import SecretStore, validate_entry_path
from .models import SecretEntry, SecretMetadata

logger = get_logger("store")

_ANSI_ESCAPE = re.compile(r"\x1b\[[0-9;]*m")
_TREE_BRANCH = re.compile(r"^((?:[│ ] {3})*)[├└]── (.*)$")
_NOT_IN_STORE = "is not in the password store"


def parse_metadata(lines: list[str]) -> Optional[SecretMetadata]:
    """
    Parse the lines after the first one into structured metadata.

    ``key: value`` lines become fields until the first blank line; everything
    after it is free-form notes.
    """
    if not lines:
        return None

    username = None
    url = None
    notes = []
    custom_fields = {}
    in_notes = False

    for raw in lines:
        if in_notes:
            notes.append(raw.rstrip())
            continue
        line = raw.strip()
        if not line:
            in_notes = True
            continue

        key, sep, value = line.partition(": ")
        if sep and key in ("username", "user"):
            username = value
        elif sep and key in ("url", "website"):
            url = value
        elif sep:
            custom_fields[key] = value
        else:
            notes.append(line)

    text = "\n".join(notes).strip("\n")
    return SecretMetadata(
        username=username,
        url=url,
        notes=text or None,
        custom_fields=custom_fields,
    )


def format_entry(entry: SecretEntry) -> str:
    """Render an entry in the multi-line layout ``pass insert -m`` expects."""
    content = [entry.password]
    metadata = entry.metadata
    if metadata is not None:
        if metadata.username:
            content.append(f"username: {metadata.username}")
        if metadata.url:
            content.append(f"url: {metadata.url}")
        for key, value in metadata.custom_fields.items():
            content.append(f"{key}: {value}")
        if metadata.notes:
            content.append("")
            content.append(metadata.notes)
    return "\n".join(content) + "\n"


def parse_listing(output: str) -> list[str]:
    """Turn ``pass ls`` tree output into full entry paths (directories dropped)."""
    nodes: list[tuple[int, str]] = []
    for raw in output.splitlines():
        line = _ANSI_ESCAPE.sub("", raw).replace("\u00a0", " ").rstrip()
        match = _TREE_BRANCH.match(line)
        if not match:
            continue  # "Password Store" header or blank line
        depth = len(match.group(1)) // 4
        name = match.group(2).split(" -> ")[0]
        if name.endswith(".gpg"):
            name = name[:-4]
        nodes.append((depth, name))

    entries = []
    stack: list[str] = []
    for index, (depth, name) in enumerate(nodes):
        del stack[depth:]
        stack.append(name)
        next_depth = nodes[index + 1][0] if index + 1 < len(nodes) else -1
        if next_depth <= depth:
            entries.append("/".join(stack))
    return entries


class PassStore(SecretStore):
    """Secret store backed by the ``pass`` CLI."""

    def __init__(self, settings: PassSettings):
        self.settings = settings
        self.store_dir = Path(settings.store_dir)

    def _env(self) -> dict[str, str]:
        env = os.environ.copy()
        env["PASSWORD_STORE_DIR"] = str(self.store_dir)
        if self.settings.gpg_key_id:
            env["PASSWORD_STORE_KEY"] = self.settings.gpg_key_id
        return env

    def _run(self, args: list[str], stdin: Optional[str] = None) -> subprocess.CompletedProcess:
        try:
            return subprocess.run(
                [self.settings.binary, *args],
                input=stdin,
                capture_output=True,
                text=True,
                check=False,
                env=self._env(),
            )
        except OSError as exc:
            raise SecretStoreError(f"Failed to run {self.settings.binary}: {exc}")

    def _check(self, result: subprocess.CompletedProcess, path: str, action: str) -> str:
        if _NOT_IN_STORE in result.stderr or _NOT_IN_STORE in result.stdout:
            raise SecretNotFound(f"Password not found: {path}")
        if result.returncode != 0:
            logger.error(f"pass {action} failed for {path}: exit {result.returncode}")
            raise SecretStoreError(f"Pass command failed: {result.stderr.strip()}")
        return result.stdout

    def list(self) -> list[str]:
        result = self._run(["ls"])
        if result.returncode != 0:
            raise SecretStoreError(f"Pass command failed: {result.stderr.strip()}")
        return parse_listing(result.stdout)

    def get(self, path: str) -> SecretEntry:
        validate_entry_path(path)
        output = self._check(self._run(["show", path]), path, "show")

        lines = output.splitlines()
        if not lines:
            raise SecretNotFound(f"Password not found: {path}")

        return SecretEntry(
            path=path,
            password=lines[0],
            metadata=parse_metadata(lines[1:]),
        )

    def put(self, path: str, entry: SecretEntry) -> None:
        validate_entry_path(path)
        result = self._run(
            ["insert", "--multiline", "--force", path],
            stdin=format_entry(entry),
        )
        if result.returncode != 0:
            logger.error(f"pass insert failed for {path}: exit {result.returncode}")
            raise SecretStoreError(f"Failed to insert password: {result.stderr.strip()}")
        logger.info(f"Stored entry {path}")

    def delete(self, path: str) -> None:
        validate_entry_path(path)
        self._check(self._run(["rm", "--force", path]), path, "rm")
        logger.info(f"Deleted entry {path}")

    def get_one_time_code(self, path: str) -> str:
        validate_entry_path(path)
        code = self._check(self._run(["otp", path]), path, "otp").strip()
        if not code:
            raise SecretNotFound(f"OTP not found: {path}")
        return code

    def put_one_time_code(self, path: str, secret: str) -> None:
        validate_entry_path(path)
        secret = secret.strip()
        if secret.startswith("otpauth://"):
            uri = secret
        else:
            uri = (
                f"otpauth://totp/{quote(path, safe='')}"
                f"?secret={quote(secret.replace(' ', ''), safe='')}&issuer=Kagikanri"
            )

        result = self._run(["otp", "insert", "--force", path], stdin=uri + "\n")
        if result.returncode != 0:
            logger.error(f"pass otp insert failed for {path}: exit {result.returncode}")
            raise SecretStoreError(f"Failed to insert OTP: {result.stderr.strip()}")
        logger.info(f"Stored OTP secret for {path}")
