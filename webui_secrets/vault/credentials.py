"""
Plugin Credentials — Encrypted API keys per (owner, plugin).

Resolution order for ``get_api_key()``: stored key for the owner → the
plugin's environment variable → not found. A deployment can therefore
bootstrap a plugin through its environment and let per-user keys take
over once they are configured.

Security Note:
    Never log API keys, encrypted or not. Only log plugin ids and owners.
"""
import os
import uuid
import logging
from typing import Optional

from pydantic import BaseModel, SecretStr

from ..conf import DEFAULT_OWNER, CREDENTIALS_TABLE
from .crypto import EncryptionService
from .keys import MasterKeyNotInitialized
from .results import Result, Status
from .storage import DatabaseGetter, now_ms

logger = logging.getLogger("webui.vault")

# ---------------------------------------------------------------------------
# SQL statements
# ---------------------------------------------------------------------------

_SELECT_KEY = f"""
SELECT api_key FROM {CREDENTIALS_TABLE}
WHERE plugin_id = ? AND user_id = ?
"""

_SELECT_ID = f"""
SELECT id, created_at FROM {CREDENTIALS_TABLE}
WHERE plugin_id = ? AND user_id = ?
"""

_SELECT_STATUS = f"""
SELECT plugin_id, api_key, updated_at FROM {CREDENTIALS_TABLE}
WHERE user_id = ?
ORDER BY plugin_id
"""

_UPDATE_KEY = f"""
UPDATE {CREDENTIALS_TABLE} SET api_key = ?, updated_at = ? WHERE id = ?
"""

_INSERT_KEY = f"""
INSERT INTO {CREDENTIALS_TABLE} (id, user_id, plugin_id, api_key, created_at, updated_at)
VALUES (?, ?, ?, ?, ?, ?)
"""

_DELETE_KEY = f"DELETE FROM {CREDENTIALS_TABLE} WHERE plugin_id = ? AND user_id = ?"

_DELETE_BY_USER = f"DELETE FROM {CREDENTIALS_TABLE} WHERE user_id = ?"

_DELETE_BY_PLUGIN = f"DELETE FROM {CREDENTIALS_TABLE} WHERE plugin_id = ?"


class Credential(BaseModel):
    """A stored credential, as returned to the caller that just wrote it."""

    id: str
    owner_id: str
    plugin_id: str
    api_key: SecretStr
    created_at: int
    updated_at: int


class CredentialStatus(BaseModel):
    """Presence of a key for one plugin; never carries key material."""

    plugin_id: str
    has_api_key: bool
    updated_at: int


class CredentialStore:
    """Per-(owner, plugin) encrypted API key storage.

    Every operation returns a :class:`Result` and never raises because of
    the database: plugin invocations look their key up on every call and
    must keep working when credential storage is down.
    """

    def __init__(self, database: DatabaseGetter, encryption: EncryptionService, clock=now_ms):
        self._database = database
        self._encryption = encryption
        self._clock = clock

    def get_api_key(
        self,
        plugin_id: str,
        env_var: Optional[str],
        owner_id: str = DEFAULT_OWNER,
    ) -> Result[str]:
        """Resolve the API key for a plugin.

        Args:
            plugin_id: Plugin identifier.
            env_var: Environment variable holding the deployment-wide key.
            owner_id: Owner whose key takes precedence.

        Returns:
            OK with the key, NOT_FOUND when neither the store nor the
            environment has one, UNAVAILABLE when storage is down and the
            environment has nothing either.
        """
        owner_id = owner_id or DEFAULT_OWNER
        db = self._database()
        storage_ok = db is not None
        if db is not None:
            try:
                row = db.prepare(_SELECT_KEY).get(plugin_id, owner_id)
                if row and row["api_key"]:
                    decrypted = self._encryption.decrypt(row["api_key"])
                    if decrypted and decrypted.value:
                        return decrypted
                    if decrypted.status is Status.DECRYPT_FAILED:
                        logger.warning(
                            "Stored API key for plugin %s (user: %s) could not be decrypted",
                            plugin_id, owner_id,
                        )
            except MasterKeyNotInitialized:
                raise
            except Exception as err:
                storage_ok = False
                logger.error("Failed to get API key for plugin %s: %s", plugin_id, err)

        # Fallback to environment variable
        value = os.environ.get(env_var) if env_var else None
        if value:
            logger.debug("Using %s for plugin %s", env_var, plugin_id)
            return Result.success(value)
        return Result.not_found() if storage_ok else Result.unavailable()

    def has_api_key(
        self,
        plugin_id: str,
        env_var: Optional[str],
        owner_id: str = DEFAULT_OWNER,
    ) -> bool:
        return bool(self.get_api_key(plugin_id, env_var, owner_id))

    def get_credentials(self, owner_id: str = DEFAULT_OWNER) -> Result[list[CredentialStatus]]:
        """List which plugins have a stored key for the owner (keys masked)."""
        owner_id = owner_id or DEFAULT_OWNER
        db = self._database()
        if db is None:
            return Result.unavailable([])
        try:
            rows = db.prepare(_SELECT_STATUS).all(owner_id)
        except Exception as err:
            logger.error("Failed to get plugin credentials for user %s: %s", owner_id, err)
            return Result.failed([])
        return Result.success([
            CredentialStatus(
                plugin_id=row["plugin_id"],
                has_api_key=bool(row["api_key"]),
                updated_at=row["updated_at"],
            )
            for row in rows
        ])

    def set_api_key(
        self,
        plugin_id: str,
        api_key: str,
        owner_id: str = DEFAULT_OWNER,
    ) -> Result[Credential]:
        """Store or replace the owner's key for a plugin.

        Read-before-write upsert: concurrent writers for the same pair
        race and the last write wins.
        """
        owner_id = owner_id or DEFAULT_OWNER
        db = self._database()
        if db is None:
            logger.error("Database not available for storing plugin credentials")
            return Result.unavailable()
        try:
            now = self._clock()
            encrypted_key = self._encryption.encrypt(api_key)
            existing = db.prepare(_SELECT_ID).get(plugin_id, owner_id)
            if existing:
                credential_id = existing["id"]
                created_at = existing["created_at"]
                db.prepare(_UPDATE_KEY).run(encrypted_key, now, credential_id)
            else:
                credential_id = str(uuid.uuid4())
                created_at = now
                db.prepare(_INSERT_KEY).run(
                    credential_id, owner_id, plugin_id, encrypted_key, now, now,
                )
        except MasterKeyNotInitialized:
            raise
        except Exception as err:
            logger.error("Failed to set API key for plugin %s: %s", plugin_id, err)
            return Result.failed()

        logger.info(
            "API key %s for plugin %s (user: %s)",
            "updated" if existing else "set", plugin_id, owner_id,
        )
        return Result.success(Credential(
            id=credential_id,
            owner_id=owner_id,
            plugin_id=plugin_id,
            api_key=SecretStr(api_key),
            created_at=created_at,
            updated_at=now,
        ))

    def delete_api_key(self, plugin_id: str, owner_id: str = DEFAULT_OWNER) -> Result[None]:
        """Delete the owner's key; OK only when a row was actually removed."""
        owner_id = owner_id or DEFAULT_OWNER
        db = self._database()
        if db is None:
            return Result.unavailable()
        try:
            result = db.prepare(_DELETE_KEY).run(plugin_id, owner_id)
        except Exception as err:
            logger.error("Failed to delete API key for plugin %s: %s", plugin_id, err)
            return Result.failed()
        if result.changes > 0:
            logger.info("API key deleted for plugin %s (user: %s)", plugin_id, owner_id)
            return Result.success()
        return Result.not_found()

    def delete_all_user_credentials(self, owner_id: str) -> Result[int]:
        """Remove every key of an owner (account deletion)."""
        db = self._database()
        if db is None:
            return Result.unavailable()
        try:
            result = db.prepare(_DELETE_BY_USER).run(owner_id)
        except Exception as err:
            logger.error("Failed to delete all credentials for user %s: %s", owner_id, err)
            return Result.failed()
        logger.info("All plugin credentials deleted for user %s (%d)", owner_id, result.changes)
        return Result.success(result.changes)

    def delete_all_plugin_credentials(self, plugin_id: str) -> Result[int]:
        """Remove every owner's key for a plugin (plugin uninstall)."""
        db = self._database()
        if db is None:
            return Result.unavailable()
        try:
            result = db.prepare(_DELETE_BY_PLUGIN).run(plugin_id)
        except Exception as err:
            logger.error("Failed to delete all credentials for plugin %s: %s", plugin_id, err)
            return Result.failed()
        logger.info("All credentials deleted for plugin %s (%d)", plugin_id, result.changes)
        return Result.success(result.changes)
