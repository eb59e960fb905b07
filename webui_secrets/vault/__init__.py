"""Secret Vault — Encrypted at-rest storage for plugin keys and generated images.

Security Note (Threat Model):
    Everything sensitive is encrypted under one process-wide master key.
    The key is shown once to the first administrator and must be kept
    outside the application (e.g. as ENCRYPTION_KEY in the deployment
    environment). Losing it makes every encrypted row unreadable; rows
    then surface as DECRYPT_FAILED instead of crashing the stores.
"""

from .config import VaultConfig, load_master_key, generate_master_key
from .results import Result, Status
from .keys import EncryptionContext, MasterKeyProvider, MasterKeyNotInitialized
from .crypto import EncryptionService
from .storage import Database, QueryExecutor, create_schema
from .credentials import Credential, CredentialStatus, CredentialStore
from .gallery import GeneratedImage, GalleryStore, ImagePage, NewImage
from .cleanup import purge_owner, purge_plugin
from .secret_vault import SecretVault

__all__ = [
    "VaultConfig",
    "load_master_key",
    "generate_master_key",
    "Result",
    "Status",
    "EncryptionContext",
    "MasterKeyProvider",
    "MasterKeyNotInitialized",
    "EncryptionService",
    "Database",
    "QueryExecutor",
    "create_schema",
    "Credential",
    "CredentialStatus",
    "CredentialStore",
    "GeneratedImage",
    "GalleryStore",
    "ImagePage",
    "NewImage",
    "purge_owner",
    "purge_plugin",
    "SecretVault",
]
