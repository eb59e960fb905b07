"""
Tests for process wiring, first-time setup and cascading cleanup.
"""
import pytest

from webui_secrets.vault import (
    Database,
    MasterKeyNotInitialized,
    SecretVault,
    Status,
    VaultConfig,
    generate_master_key,
    purge_owner,
    purge_plugin,
)
from webui_secrets.vault.config import KEY_LENGTH
from webui_secrets.vault.storage import create_schema


@pytest.fixture
def vault():
    v = SecretVault(VaultConfig(master_key=b"v" * KEY_LENGTH, database_path=":memory:"))
    assert v.open()
    yield v
    v.close()


class TestSetup:
    """First boot: no key until the administrator is created."""

    def test_from_env_without_key(self, monkeypatch):
        monkeypatch.delenv("ENCRYPTION_KEY", raising=False)
        monkeypatch.setenv("WEBUI_DB_PATH", ":memory:")
        vault = SecretVault.from_env()
        assert vault.needs_setup is True

    def test_from_env_with_key(self, monkeypatch):
        monkeypatch.setenv("ENCRYPTION_KEY", generate_master_key())
        monkeypatch.setenv("WEBUI_DB_PATH", ":memory:")
        vault = SecretVault.from_env()
        assert vault.needs_setup is False
        assert vault.reveal_master_key() is None

    def test_first_admin_setup(self):
        vault = SecretVault(VaultConfig(database_path=":memory:"))
        assert vault.open()
        with pytest.raises(MasterKeyNotInitialized):
            vault.credentials.set_api_key("openai", "sk-too-early")

        assert vault.provision_master_key() is True
        key = vault.reveal_master_key()
        assert key is not None
        assert vault.reveal_master_key() is None
        assert vault.provision_master_key() is False

        assert vault.credentials.set_api_key("openai", "sk-after-setup")
        assert vault.credentials.get_api_key("openai", None).value == "sk-after-setup"
        vault.close()

    def test_uses_configured_page_size(self):
        vault = SecretVault(VaultConfig(
            master_key=b"v" * KEY_LENGTH,
            database_path=":memory:",
            default_page_size=2,
        ))
        vault.open()
        for n in range(3):
            vault.gallery.save("alice", {"prompt": f"p{n}", "model": "m", "image_data": "d"})
        assert len(vault.gallery.list("alice").value.images) == 2
        vault.close()

    def test_not_opened_is_unavailable(self):
        vault = SecretVault(VaultConfig(master_key=b"v" * KEY_LENGTH, database_path=":memory:"))
        assert vault.credentials.get_credentials().status is Status.UNAVAILABLE
        assert vault.gallery.list("alice").status is Status.UNAVAILABLE


class TestCleanup:
    """Account deletion and plugin uninstall cascades."""

    def test_purge_owner(self, vault):
        vault.credentials.set_api_key("openai", "sk-1", owner_id="alice")
        vault.gallery.save("alice", {"prompt": "p", "model": "m", "image_data": "d"})
        vault.credentials.set_api_key("openai", "sk-2", owner_id="bob")

        assert vault.purge_owner("alice") is True
        assert vault.credentials.get_credentials("alice").value == []
        assert vault.gallery.list("alice").value.total == 0
        assert len(vault.credentials.get_credentials("bob").value) == 1

    def test_purge_owner_with_nothing_stored(self, vault):
        assert vault.purge_owner("nobody") is True

    def test_purge_plugin(self, vault):
        vault.credentials.set_api_key("openai", "sk-1", owner_id="alice")
        vault.credentials.set_api_key("openai", "sk-2", owner_id="bob")
        assert vault.purge_plugin("openai") is True
        assert vault.credentials.get_credentials("alice").value == []
        assert vault.credentials.get_credentials("bob").value == []

    def test_purge_reports_unavailable_storage(self, offline_credentials, offline_gallery):
        assert purge_owner("alice", offline_credentials, offline_gallery) is False
        assert purge_plugin("openai", offline_credentials) is False


class TestDatabase:

    def test_open_is_idempotent(self):
        db = Database(":memory:")
        assert db.get_safe() is None
        assert db.open() is True
        executor = db.get_safe()
        assert db.open() is True
        assert db.get_safe() is executor
        db.close()
        assert db.get_safe() is None

    def test_open_failure(self, tmp_path):
        db = Database(str(tmp_path / "missing" / "webui.db"))
        assert db.open() is False
        assert db.get_safe() is None

    def test_schema_is_idempotent(self, database):
        create_schema(database.get_safe())

    def test_statement_interface(self, database):
        db = database.get_safe()
        db.prepare("CREATE TABLE t (a INTEGER, b TEXT)").run()
        assert db.prepare("INSERT INTO t VALUES (?, ?)").run(1, "x").changes == 1
        db.prepare("INSERT INTO t VALUES (?, ?)").run(2, "y")
        assert db.prepare("SELECT * FROM t WHERE a = ?").get(2) == {"a": 2, "b": "y"}
        assert db.prepare("SELECT * FROM t WHERE a = ?").get(3) is None
        assert len(db.prepare("SELECT * FROM t").all()) == 2
        assert db.prepare("DELETE FROM t").run().changes == 2
