"""
Tests for the encrypted passkey registry.
"""

from __future__ import annotations

import json
from pathlib import Path

import pytest

from kagikanri.errors import ConfigError, NotFound, PasskeyError, ValidationError
from kagikanri.passkeys import (
    PasskeyStore,
    RegistrationFinish,
    decrypt_object,
    encrypt_object,
    load_key,
)

from conftest import TEST_KEY_HEX, FakeClock

OTHER_KEY_HEX = "ff" * 32


@pytest.fixture
def db_path(tmp_path: Path) -> Path:
    return tmp_path / "passkeys.db"


@pytest.fixture
def passkeys(db_path: Path, clock: FakeClock) -> PasskeyStore:
    return PasskeyStore(db_path, load_key(TEST_KEY_HEX), rp_id="vault.example", clock=clock)


def register(store: PasskeyStore, domain: str = "github.com", credential_id: str = "Y3JlZC0x"):
    start = store.start_registration(domain, "alice")
    return store.finish_registration(RegistrationFinish(
        challenge=start.challenge,
        credential_id=credential_id,
        public_key="cHVibGljLWtleQ",
        user_handle="YWxpY2U",
    ))


class TestCrypto:
    def test_load_key(self):
        assert load_key(TEST_KEY_HEX) == bytes.fromhex(TEST_KEY_HEX)

    @pytest.mark.parametrize("bad", ["", "zz" * 32, "00" * 16, "00" * 33])
    def test_load_key_rejects(self, bad):
        with pytest.raises(ConfigError):
            load_key(bad)

    def test_envelope(self):
        key = load_key(TEST_KEY_HEX)
        envelope = encrypt_object(key, {"a": [1, 2]})
        assert set(envelope) == {"iv", "data"}
        assert decrypt_object(key, envelope) == {"a": [1, 2]}

    def test_fresh_nonce_per_write(self):
        key = load_key(TEST_KEY_HEX)
        assert encrypt_object(key, "x")["iv"] != encrypt_object(key, "x")["iv"]

    def test_wrong_key_fails(self):
        envelope = encrypt_object(load_key(TEST_KEY_HEX), {"a": 1})
        with pytest.raises(PasskeyError):
            decrypt_object(load_key(OTHER_KEY_HEX), envelope)

    @pytest.mark.parametrize(
        "envelope",
        [
            {"iv": "!!not base64!!", "data": "AAAA"},
            {"iv": "AAAAAAAAAAAAAAAA", "data": "@@@"},
            {"data": "AAAA"},
            {"iv": "", "data": "AAAA"},
            ["iv", "data"],
        ],
    )
    def test_malformed_envelope(self, envelope):
        with pytest.raises(PasskeyError):
            decrypt_object(load_key(TEST_KEY_HEX), envelope)


class TestRegistration:
    def test_start_returns_challenge(self, passkeys):
        start = passkeys.start_registration("github.com", "alice")
        assert start.rp_id == "vault.example"
        assert start.domain == "github.com"
        assert start.user_id == "alice"
        assert len(start.challenge) >= 43
        assert "=" not in start.challenge

    def test_challenges_unique(self, passkeys):
        first = passkeys.start_registration("a", "u")
        second = passkeys.start_registration("a", "u")
        assert first.challenge != second.challenge

    def test_register_and_list(self, passkeys, clock):
        passkey = register(passkeys)
        assert passkey.domain == "github.com"
        assert passkey.counter == 0
        assert passkey.created_at == clock()
        assert passkeys.list() == [passkey]

    def test_file_holds_no_plaintext(self, passkeys, db_path):
        register(passkeys, domain="secret-bank.example")
        raw = db_path.read_text(encoding="utf-8")
        assert "secret-bank.example" not in raw
        assert "Y3JlZC0x" not in raw
        assert set(json.loads(raw)) == {"iv", "data"}

    def test_registry_survives_reopen(self, passkeys, db_path, clock):
        passkey = register(passkeys)
        reopened = PasskeyStore(db_path, load_key(TEST_KEY_HEX), clock=clock)
        assert reopened.list() == [passkey]

    def test_wrong_key_cannot_read(self, passkeys, db_path):
        register(passkeys)
        other = PasskeyStore(db_path, load_key(OTHER_KEY_HEX))
        with pytest.raises(PasskeyError):
            other.list()

    def test_challenge_is_single_use(self, passkeys):
        start = passkeys.start_registration("github.com", "alice")
        finish = RegistrationFinish(
            challenge=start.challenge,
            credential_id="Y3JlZC0x",
            public_key="cHVibGljLWtleQ",
        )
        passkeys.finish_registration(finish)
        with pytest.raises(PasskeyError):
            passkeys.finish_registration(finish.model_copy(update={"credential_id": "Y3JlZC0y"}))

    def test_unknown_challenge(self, passkeys):
        with pytest.raises(PasskeyError):
            passkeys.finish_registration(RegistrationFinish(
                challenge="never-issued",
                credential_id="Y3JlZC0x",
                public_key="cHVibGljLWtleQ",
            ))

    def test_expired_challenge(self, passkeys, clock):
        start = passkeys.start_registration("github.com", "alice")
        clock.advance(minutes=5, seconds=1)
        with pytest.raises(PasskeyError):
            passkeys.finish_registration(RegistrationFinish(
                challenge=start.challenge,
                credential_id="Y3JlZC0x",
                public_key="cHVibGljLWtleQ",
            ))

    def test_duplicate_credential(self, passkeys):
        register(passkeys)
        with pytest.raises(PasskeyError):
            register(passkeys)
        assert len(passkeys.list()) == 1

    @pytest.mark.parametrize("field", ["credential_id", "public_key"])
    def test_rejects_non_base64url(self, passkeys, field):
        start = passkeys.start_registration("github.com", "alice")
        values = {
            "challenge": start.challenge,
            "credential_id": "Y3JlZC0x",
            "public_key": "cHVibGljLWtleQ",
        }
        values[field] = "not base64!"
        with pytest.raises(ValidationError):
            passkeys.finish_registration(RegistrationFinish(**values))


class TestListAndDelete:
    def test_empty_registry(self, passkeys):
        assert passkeys.list() == []

    def test_newest_first(self, passkeys, clock):
        first = register(passkeys, credential_id="Zmlyc3Q")
        clock.advance(minutes=1)
        second = register(passkeys, credential_id="c2Vjb25k")
        assert [p.id for p in passkeys.list()] == [second.id, first.id]

    def test_delete(self, passkeys):
        keep = register(passkeys, credential_id="a2VlcA")
        drop = register(passkeys, credential_id="ZHJvcA")
        passkeys.delete(drop.id)
        assert [p.id for p in passkeys.list()] == [keep.id]

    def test_delete_missing(self, passkeys):
        register(passkeys)
        with pytest.raises(NotFound):
            passkeys.delete("no-such-id")
