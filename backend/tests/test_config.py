"""
Tests for configuration loading and validation.
"""

from __future__ import annotations

from pathlib import Path

import pytest

from kagikanri.config import Settings
from kagikanri.errors import ConfigError

from conftest import TEST_KEY_HEX

ENV_VARS = [
    "PORT", "HOST", "LOG_LEVEL", "LOG_DIR",
    "GIT_REPO_URL", "GIT_ACCESS_TOKEN", "GIT_BRANCH", "SYNC_INTERVAL_MINUTES",
    "MASTER_PASSWORD_PATH", "TOTP_PATH", "SESSION_TIMEOUT_HOURS",
    "PASSWORD_STORE_DIR", "GPG_KEY_ID",
    "PASSKEY_DB_PATH", "PASSKEY_ENCRYPTION_KEY", "WEBAUTHN_RP_ID",
]


@pytest.fixture
def env(monkeypatch):
    for name in ENV_VARS:
        monkeypatch.delenv(name, raising=False)
    monkeypatch.setenv("GIT_REPO_URL", "https://git.example.com/me/store.git")
    monkeypatch.setenv("GIT_ACCESS_TOKEN", "token-123")
    monkeypatch.setenv("PASSKEY_ENCRYPTION_KEY", TEST_KEY_HEX)
    return monkeypatch


def test_defaults(env):
    settings = Settings.load()
    assert settings.server.port == 8080
    assert settings.server.host == "0.0.0.0"
    assert settings.git.sync_interval_minutes == 5
    assert settings.git.branch is None
    assert settings.auth.session_timeout_hours == 24
    assert settings.auth.session_timeout_seconds == 86400
    assert settings.auth.master_password_path == "kagikanri/master-password"
    assert settings.auth.totp_path == "kagikanri/totp"
    assert settings.pass_store.store_dir == Path("/data/password-store")
    assert settings.pass_store.gpg_key_id is None
    assert settings.passkeys.rp_id == "kagikanri.local"


def test_environment_overrides(env):
    env.setenv("PORT", "9000")
    env.setenv("SYNC_INTERVAL_MINUTES", "0")
    env.setenv("SESSION_TIMEOUT_HOURS", "2")
    env.setenv("PASSWORD_STORE_DIR", "/srv/store")
    env.setenv("GPG_KEY_ID", "ABCDEF")
    env.setenv("GIT_BRANCH", "trunk")
    settings = Settings.load()
    assert settings.server.port == 9000
    assert settings.git.sync_interval_minutes == 0
    assert settings.auth.session_timeout_hours == 2
    assert settings.pass_store.store_dir == Path("/srv/store")
    assert settings.pass_store.gpg_key_id == "ABCDEF"
    assert settings.git.branch == "trunk"


def test_cli_port_wins(env):
    env.setenv("PORT", "9000")
    assert Settings.load(port=7000).server.port == 7000


def test_yaml_overrides_environment(env, tmp_path):
    config = tmp_path / "kagikanri.yaml"
    config.write_text(
        "server:\n"
        "  port: 9100\n"
        "git:\n"
        "  sync_interval_minutes: 15\n"
        "  branch: main\n"
        "pass:\n"
        "  store_dir: /var/lib/store\n",
        encoding="utf-8",
    )
    settings = Settings.load(config_path=str(config))
    assert settings.server.port == 9100
    assert settings.git.sync_interval_minutes == 15
    assert settings.git.branch == "main"
    assert settings.pass_store.store_dir == Path("/var/lib/store")
    # Untouched values keep the environment's
    assert settings.git.access_token == "token-123"


def test_cli_port_beats_yaml(env, tmp_path):
    config = tmp_path / "kagikanri.yaml"
    config.write_text("server:\n  port: 9100\n", encoding="utf-8")
    assert Settings.load(config_path=str(config), port=7000).server.port == 7000


@pytest.mark.parametrize("content", [
    "bogus:\n  x: 1\n",
    "server:\n  nope: 1\n",
    "server: 5\n",
    "- a\n- b\n",
    "server:\n  port: eighty\n",
    "server: [unclosed\n",
])
def test_bad_config_file(env, tmp_path, content):
    config = tmp_path / "kagikanri.yaml"
    config.write_text(content, encoding="utf-8")
    with pytest.raises(ConfigError):
        Settings.load(config_path=str(config))


def test_missing_config_file(env, tmp_path):
    with pytest.raises(ConfigError):
        Settings.load(config_path=str(tmp_path / "missing.yaml"))


@pytest.mark.parametrize("name,value", [
    ("GIT_REPO_URL", ""),
    ("GIT_REPO_URL", "ftp://example.com/store"),
    ("GIT_REPO_URL", "relative/path"),
    ("GIT_ACCESS_TOKEN", ""),
    ("SYNC_INTERVAL_MINUTES", "-1"),
    ("SYNC_INTERVAL_MINUTES", "often"),
    ("SESSION_TIMEOUT_HOURS", "0"),
    ("PASSKEY_ENCRYPTION_KEY", "abc"),
    ("PASSKEY_ENCRYPTION_KEY", "g" * 64),
    ("PASSWORD_STORE_DIR", "relative/store"),
    ("PORT", "http"),
])
def test_invalid_values(env, name, value):
    env.setenv(name, value)
    with pytest.raises(ConfigError):
        Settings.load()


@pytest.mark.parametrize("url", [
    "git@github.com:me/store.git",
    "ssh://git@example.com/store.git",
    "file:///srv/git/store.git",
    "/srv/git/store.git",
])
def test_non_http_remote_needs_no_token(env, url):
    env.setenv("GIT_REPO_URL", url)
    env.delenv("GIT_ACCESS_TOKEN")
    assert Settings.load().git.repo_url == url
