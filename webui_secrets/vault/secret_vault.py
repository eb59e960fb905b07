"""
SecretVault — Process-level wiring of the master key, cipher and stores.

Provides the public entry point used at server start-up:
- ``SecretVault.from_env()`` — build config, key provider, database and stores
- ``open()`` / ``close()`` — manage the database connection
- ``provision_master_key()`` / ``reveal_master_key()`` — first admin setup
- ``purge_owner()`` / ``purge_plugin()`` — cascades for account/plugin removal
"""
import logging
from typing import Optional

from .config import VaultConfig
from .keys import MasterKeyProvider
from .crypto import EncryptionService
from .storage import Database
from .credentials import CredentialStore
from .gallery import GalleryStore
from . import cleanup

logger = logging.getLogger("webui.vault")


class SecretVault:
    """Holds the one key provider of the process and the stores built on it."""

    def __init__(
        self,
        config: VaultConfig,
        provider: Optional[MasterKeyProvider] = None,
        database: Optional[Database] = None,
    ):
        self.config = config
        self.provider = provider or MasterKeyProvider.from_config(config)
        self.database = database or Database(config.database_path)
        self.encryption = EncryptionService(self.provider)
        self.credentials = CredentialStore(self.database.get_safe, self.encryption)
        self.gallery = GalleryStore(
            self.database.get_safe,
            self.encryption,
            default_page_size=config.default_page_size,
            max_page_size=config.max_page_size,
        )

    @classmethod
    def from_env(cls) -> "SecretVault":
        """Create a vault from environment configuration.

        The database is not opened here; call ``open()`` once the
        application is ready to serve.
        """
        vault = cls(VaultConfig.from_env())
        logger.info(
            "Secret vault configured (master key %s, cipher=%s)",
            "present" if vault.provider.is_initialized else "not yet provisioned",
            vault.config.cipher_backend,
        )
        return vault

    def open(self) -> bool:
        return self.database.open()

    def close(self) -> None:
        self.database.close()

    @property
    def needs_setup(self) -> bool:
        """True until a master key exists (no administrator yet)."""
        return not self.provider.is_initialized

    def provision_master_key(self) -> bool:
        return self.provider.provision()

    def reveal_master_key(self) -> Optional[str]:
        return self.provider.reveal_once()

    def purge_owner(self, owner_id: str) -> bool:
        return cleanup.purge_owner(owner_id, self.credentials, self.gallery)

    def purge_plugin(self, plugin_id: str) -> bool:
        return cleanup.purge_plugin(plugin_id, self.credentials)
