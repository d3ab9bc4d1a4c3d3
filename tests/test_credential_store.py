from __future__ import annotations

import json
from unittest.mock import MagicMock

import pytest
from redis.exceptions import RedisError

from content_resonator import credential_store as credential_store_module
from content_resonator.credential_store import CredentialStore


def test_missing_file_means_no_credential(tmp_path):
    store = CredentialStore(tmp_path / "absent.json", slot="slot")
    assert store.get_credential() == ""


def test_credential_survives_a_new_instance(tmp_path):
    path = tmp_path / "nested" / "settings.json"
    CredentialStore(path, slot="content-resonator-settings").set_credential("sk-1")

    reloaded = CredentialStore(path, slot="content-resonator-settings")

    assert reloaded.get_credential() == "sk-1"
    payload = json.loads(path.read_text(encoding="utf-8"))
    assert payload["slot"] == "content-resonator-settings"
    assert payload["credential"] == "sk-1"
    assert "updated_at" in payload
    assert not path.with_suffix(".json.tmp").exists()


def test_value_is_stored_verbatim(tmp_path):
    store = CredentialStore(tmp_path / "c.json", slot="slot")
    store.set_credential("  padded  ")
    assert store.get_credential() == "  padded  "


def test_overwrite_replaces_previous_value(tmp_path):
    path = tmp_path / "c.json"
    store = CredentialStore(path, slot="slot")
    store.set_credential("first")
    store.set_credential("second")
    assert CredentialStore(path, slot="slot").get_credential() == "second"


def test_corrupt_file_reads_as_empty(tmp_path):
    path = tmp_path / "c.json"
    path.write_text("{not json", encoding="utf-8")
    assert CredentialStore(path, slot="slot").get_credential() == ""


def test_writes_are_mirrored_into_redis(tmp_path, monkeypatch):
    client = MagicMock()
    client.hget.return_value = None
    from_url = MagicMock(return_value=client)
    monkeypatch.setattr(credential_store_module.redis, "from_url", from_url)

    store = CredentialStore(
        tmp_path / "c.json", slot="slot", redis_url="redis://localhost:6379/0"
    )
    store.set_credential("sk-mirror")

    from_url.assert_called_once_with(
        "redis://localhost:6379/0", decode_responses=True
    )
    client.hset.assert_called_once_with("credentials", "slot", "sk-mirror")


def test_redis_value_is_used_when_file_is_missing(tmp_path, monkeypatch):
    client = MagicMock()
    client.hget.return_value = "sk-from-redis"
    monkeypatch.setattr(
        credential_store_module.redis, "from_url", MagicMock(return_value=client)
    )

    store = CredentialStore(
        tmp_path / "c.json", slot="slot", redis_url="redis://localhost:6379/0"
    )

    assert store.get_credential() == "sk-from-redis"
    client.hget.assert_called_once_with("credentials", "slot")


def test_redis_failure_does_not_block_the_file_write(tmp_path, monkeypatch):
    client = MagicMock()
    client.hget.return_value = None
    client.hset.side_effect = RedisError("down")
    monkeypatch.setattr(
        credential_store_module.redis, "from_url", MagicMock(return_value=client)
    )
    path = tmp_path / "c.json"

    CredentialStore(path, slot="slot", redis_url="redis://x").set_credential("k")

    assert CredentialStore(path, slot="slot").get_credential() == "k"


@pytest.mark.parametrize("slot", ["content-resonator-settings", "other"])
def test_slot_is_exposed(tmp_path, slot):
    store = CredentialStore(tmp_path / "c.json", slot=slot)
    assert store.slot == slot
    assert store.path == tmp_path / "c.json"
