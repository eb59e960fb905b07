"""
Vault Cleanup — Cascading deletes for account removal and plugin uninstall.

Both helpers are best effort: they report whether every delete went
through and never raise, so a storage hiccup leaves secrets behind
instead of blocking the account or plugin removal that triggered it.
"""
import logging

from .credentials import CredentialStore
from .gallery import GalleryStore

logger = logging.getLogger("webui.vault")


def purge_owner(owner_id: str, credentials: CredentialStore, gallery: GalleryStore) -> bool:
    """Delete every credential and every gallery image of an owner."""
    removed_keys = credentials.delete_all_user_credentials(owner_id)
    removed_images = gallery.delete_all(owner_id)
    if not (removed_keys and removed_images):
        logger.warning(
            "Secrets of user %s not fully cleaned up (credentials: %s, images: %s)",
            owner_id, removed_keys.status.value, removed_images.status.value,
        )
        return False
    return True


def purge_plugin(plugin_id: str, credentials: CredentialStore) -> bool:
    """Delete the credentials every owner stored for a plugin."""
    removed = credentials.delete_all_plugin_credentials(plugin_id)
    if not removed:
        logger.warning(
            "Credentials of plugin %s not cleaned up (%s)",
            plugin_id, removed.status.value,
        )
    return bool(removed)
