"""
Vault Configuration — Master key loading and validated settings.

Reads the master key from the environment:
    ENCRYPTION_KEY = <base64-encoded 32-byte key>
    VAULT_CIPHER_BACKEND = aesgcm | chacha20

Security Note:
    Never log key material. Only log whether a key is present.
"""
import os
import base64
import binascii
import secrets
import logging
from typing import Optional

from pydantic import BaseModel, Field, field_validator, model_validator

from ..conf import (
    ENCRYPTION_KEY_ENV,
    CIPHER_BACKEND_ENV,
    ENV_FILE_ENV,
    DATABASE_PATH_ENV,
    DEFAULT_CIPHER_BACKEND,
    DEFAULT_DATABASE_PATH,
    DEFAULT_PAGE_SIZE,
    MAX_PAGE_SIZE,
)

logger = logging.getLogger("webui.vault")

KEY_LENGTH = 32  # AES-256

SUPPORTED_CIPHERS = ("aesgcm", "chacha20")


def decode_master_key(value: str) -> bytes:
    """Decode a base64 master key and check its length.

    Raises:
        ValueError: If the value is not base64 or is not 32 bytes long.
    """
    try:
        key_bytes = base64.b64decode(value.strip(), validate=True)
    except (binascii.Error, ValueError) as err:
        raise ValueError(f"{ENCRYPTION_KEY_ENV} is not valid base64: {err}") from err
    if len(key_bytes) != KEY_LENGTH:
        raise ValueError(
            f"{ENCRYPTION_KEY_ENV} must decode to exactly {KEY_LENGTH} bytes, "
            f"got {len(key_bytes)}"
        )
    return key_bytes


def load_master_key() -> Optional[bytes]:
    """Load the master key from the ENCRYPTION_KEY environment variable.

    Returns:
        Raw 32-byte key, or None when no key has been configured yet
        (first boot, before the administrator account exists).

    Raises:
        ValueError: If the configured key is malformed.
    """
    raw = os.environ.get(ENCRYPTION_KEY_ENV)
    if not raw:
        logger.debug("No master key configured in %s", ENCRYPTION_KEY_ENV)
        return None
    key = decode_master_key(raw)
    logger.debug("Loaded master key from %s", ENCRYPTION_KEY_ENV)
    return key


def generate_master_key() -> str:
    """Generate a random 32-byte master key and return as base64 string.

    This is a utility for operators to generate new keys.

    Returns:
        Base64-encoded 32-byte key string.
    """
    return base64.b64encode(secrets.token_bytes(KEY_LENGTH)).decode("ascii")


class VaultConfig(BaseModel):
    """Validated vault configuration."""

    master_key: Optional[bytes] = None
    cipher_backend: str = Field(default=DEFAULT_CIPHER_BACKEND)
    default_page_size: int = Field(default=DEFAULT_PAGE_SIZE, ge=1, le=MAX_PAGE_SIZE)
    max_page_size: int = Field(default=MAX_PAGE_SIZE, ge=1, le=1000)
    env_file: Optional[str] = None
    database_path: str = Field(default=DEFAULT_DATABASE_PATH)

    @field_validator("cipher_backend")
    @classmethod
    def validate_cipher(cls, v: str) -> str:
        """Validate cipher backend is supported."""
        v = v.lower()
        if v not in SUPPORTED_CIPHERS:
            raise ValueError(f"Unsupported cipher backend: {v}")
        return v

    @field_validator("master_key")
    @classmethod
    def validate_key_length(cls, v: Optional[bytes]) -> Optional[bytes]:
        if v is not None and len(v) != KEY_LENGTH:
            raise ValueError(
                f"master_key must be exactly {KEY_LENGTH} bytes, got {len(v)}"
            )
        return v

    @model_validator(mode="after")
    def validate_page_sizes(self) -> "VaultConfig":
        """Ensure the default page fits under the page cap."""
        if self.default_page_size > self.max_page_size:
            raise ValueError(
                f"default_page_size {self.default_page_size} exceeds "
                f"max_page_size {self.max_page_size}"
            )
        return self

    @classmethod
    def from_env(cls) -> "VaultConfig":
        """Create VaultConfig by loading values from environment.

        Returns:
            Populated VaultConfig instance.
        """
        return cls(
            master_key=load_master_key(),
            cipher_backend=os.environ.get(CIPHER_BACKEND_ENV, DEFAULT_CIPHER_BACKEND),
            env_file=os.environ.get(ENV_FILE_ENV) or None,
            database_path=os.environ.get(DATABASE_PATH_ENV, DEFAULT_DATABASE_PATH),
        )
