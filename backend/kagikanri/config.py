"""Server configuration with CLI > config file > env var > defaults precedence."""

import os
import re
from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import Any, Optional

import yaml

from .errors import ConfigError

_HEX_KEY = re.compile(r"^[0-9a-fA-F]{64}$")


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or raw == "":
        return default
    try:
        return int(raw)
    except ValueError:
        raise ConfigError(f"Invalid {name}: {raw!r}")


@dataclass
class ServerSettings:
    host: str = "0.0.0.0"
    port: int = 8080
    log_level: str = "info"
    log_dir: Optional[str] = None


@dataclass
class GitSettings:
    repo_url: str = ""
    access_token: str = ""
    branch: Optional[str] = None
    sync_interval_minutes: int = 5


@dataclass
class AuthSettings:
    master_password_path: str = "kagikanri/master-password"
    totp_path: str = "kagikanri/totp"
    session_timeout_hours: int = 24

    @property
    def session_timeout_seconds(self) -> int:
        return self.session_timeout_hours * 3600


@dataclass
class PassSettings:
    store_dir: Path = Path("/data/password-store")
    gpg_key_id: Optional[str] = None
    binary: str = "pass"


@dataclass
class PasskeySettings:
    db_path: Path = Path("/data/passkeys.db")
    encryption_key: str = ""
    rp_id: str = "kagikanri.local"


@dataclass
class Settings:
    """Complete configuration for one server process."""
    server: ServerSettings = field(default_factory=ServerSettings)
    git: GitSettings = field(default_factory=GitSettings)
    auth: AuthSettings = field(default_factory=AuthSettings)
    pass_store: PassSettings = field(default_factory=PassSettings)
    passkeys: PasskeySettings = field(default_factory=PasskeySettings)

    @classmethod
    def from_env(cls) -> "Settings":
        """Build settings from environment variables, falling back to defaults."""
        gpg_key_id = os.getenv("GPG_KEY_ID") or None
        return cls(
            server=ServerSettings(
                host=os.getenv("HOST", "0.0.0.0"),
                port=_env_int("PORT", 8080),
                log_level=os.getenv("LOG_LEVEL", "info"),
                log_dir=os.getenv("LOG_DIR") or None,
            ),
            git=GitSettings(
                repo_url=os.getenv("GIT_REPO_URL", ""),
                access_token=os.getenv("GIT_ACCESS_TOKEN", ""),
                branch=os.getenv("GIT_BRANCH") or None,
                sync_interval_minutes=_env_int("SYNC_INTERVAL_MINUTES", 5),
            ),
            auth=AuthSettings(
                master_password_path=os.getenv(
                    "MASTER_PASSWORD_PATH", "kagikanri/master-password"
                ),
                totp_path=os.getenv("TOTP_PATH", "kagikanri/totp"),
                session_timeout_hours=_env_int("SESSION_TIMEOUT_HOURS", 24),
            ),
            pass_store=PassSettings(
                store_dir=Path(os.getenv("PASSWORD_STORE_DIR", "/data/password-store")),
                gpg_key_id=gpg_key_id,
            ),
            passkeys=PasskeySettings(
                db_path=Path(os.getenv("PASSKEY_DB_PATH", "/data/passkeys.db")),
                encryption_key=os.getenv("PASSKEY_ENCRYPTION_KEY", ""),
                rp_id=os.getenv("WEBAUTHN_RP_ID", "kagikanri.local"),
            ),
        )

    @classmethod
    def load(
        cls,
        config_path: Optional[str] = None,
        port: Optional[int] = None,
    ) -> "Settings":
        """
        Load and validate settings.

        Args:
            config_path: Optional YAML file whose sections (server, git, auth,
                pass, passkeys) override environment values.
            port: CLI port override.

        Raises:
            ConfigError: If the file is unreadable or a value is invalid.
        """
        settings = cls.from_env()

        if config_path:
            settings.apply_file(Path(config_path))

        if port is not None:
            settings.server.port = port

        settings.validate()
        return settings

    def apply_file(self, path: Path) -> None:
        """Merge a YAML config file over the current values."""
        try:
            data = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
        except (OSError, yaml.YAMLError) as exc:
            raise ConfigError(f"Failed to read config file {path}: {exc}")

        if not isinstance(data, dict):
            raise ConfigError(f"Config file {path} must contain a mapping")

        sections = {
            "server": self.server,
            "git": self.git,
            "auth": self.auth,
            "pass": self.pass_store,
            "passkeys": self.passkeys,
        }
        for name, values in data.items():
            target = sections.get(name)
            if target is None:
                raise ConfigError(f"Unknown config section: {name}")
            if not isinstance(values, dict):
                raise ConfigError(f"Config section {name} must be a mapping")
            _merge_section(target, name, values)

    def validate(self) -> None:
        """Check required values and formats."""
        url = self.git.repo_url
        if not url:
            raise ConfigError("GIT_REPO_URL is required")
        if not (
            url.startswith(("http://", "https://", "git@", "ssh://", "file://"))
            or Path(url).is_absolute()
        ):
            raise ConfigError("GIT_REPO_URL must be a valid HTTP, SSH or file URL")

        if url.startswith(("http://", "https://")) and not self.git.access_token:
            raise ConfigError("GIT_ACCESS_TOKEN is required for HTTP remotes")

        if self.git.sync_interval_minutes < 0:
            raise ConfigError("SYNC_INTERVAL_MINUTES must not be negative")

        if self.auth.session_timeout_hours <= 0:
            raise ConfigError("SESSION_TIMEOUT_HOURS must be positive")

        if not _HEX_KEY.match(self.passkeys.encryption_key):
            raise ConfigError(
                "PASSKEY_ENCRYPTION_KEY must be 32 bytes in hexadecimal format (64 characters)"
            )

        if not self.pass_store.store_dir.is_absolute():
            raise ConfigError("PASSWORD_STORE_DIR must be an absolute path")


def _merge_section(target: Any, name: str, values: dict) -> None:
    known = {f.name: f for f in fields(target)}
    for key, value in values.items():
        if key not in known:
            raise ConfigError(f"Unknown setting {name}.{key}")
        current = getattr(target, key)
        if isinstance(current, Path):
            value = Path(value)
        elif isinstance(current, int) and not isinstance(current, bool):
            try:
                value = int(value)
            except (TypeError, ValueError):
                raise ConfigError(f"Invalid {name}.{key}: {value!r}")
        setattr(target, key, value)
