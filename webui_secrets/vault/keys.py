"""
Vault Keys — Master key lifecycle and one-time disclosure.

The process holds exactly one master key for its whole lifetime. The key is
either loaded from configuration at start-up or generated once, during the
first administrator setup, and shown to that administrator a single time.
There is no recovery path: generating another key would orphan every row
encrypted under the current one, so a provider refuses to replace its key.

Security Note:
    Never log key material. The disclosed key is returned to the caller
    and never written to the log.
"""
import os
import base64
import logging
import tempfile
import threading
from dataclasses import dataclass
from typing import Optional

from .config import (
    KEY_LENGTH,
    SUPPORTED_CIPHERS,
    VaultConfig,
    decode_master_key,
    generate_master_key,
)
from ..conf import DEFAULT_CIPHER_BACKEND, ENCRYPTION_KEY_ENV

logger = logging.getLogger("webui.vault")


class MasterKeyNotInitialized(RuntimeError):
    """Raised when an encrypted read or write happens before a key exists."""


@dataclass(frozen=True)
class EncryptionContext:
    """Resolved master key and cipher choice, built once per process."""

    key: bytes
    cipher_backend: str = DEFAULT_CIPHER_BACKEND

    def __post_init__(self):
        if len(self.key) != KEY_LENGTH:
            raise ValueError(
                f"master key must be exactly {KEY_LENGTH} bytes, got {len(self.key)}"
            )
        if self.cipher_backend not in SUPPORTED_CIPHERS:
            raise ValueError(f"Unsupported cipher backend: {self.cipher_backend}")

    def __repr__(self) -> str:
        return f"EncryptionContext(key=<redacted>, cipher_backend={self.cipher_backend!r})"


class MasterKeyProvider:
    """Owner of the process-wide master key.

    Lifecycle:
    - ``from_config()`` at process start; the key is present when the
      administrator persisted it (``ENCRYPTION_KEY``) after first setup.
    - ``provision()`` on first admin creation when no key is configured.
    - ``reveal_once()`` hands the freshly generated key to the setup UI.
    - ``get_key()`` on every encrypt/decrypt afterwards.
    """

    def __init__(
        self,
        context: Optional[EncryptionContext] = None,
        cipher_backend: str = DEFAULT_CIPHER_BACKEND,
        env_file: Optional[str] = None,
    ):
        if cipher_backend not in SUPPORTED_CIPHERS:
            raise ValueError(f"Unsupported cipher backend: {cipher_backend}")
        self._context = context
        self._cipher_backend = context.cipher_backend if context else cipher_backend
        self._env_file = env_file
        self._pending_disclosure: Optional[str] = None
        # provision() and reveal_once() are check-then-set
        self._lock = threading.Lock()

    @classmethod
    def from_config(cls, config: VaultConfig) -> "MasterKeyProvider":
        context = None
        if config.master_key is not None:
            context = EncryptionContext(
                key=config.master_key,
                cipher_backend=config.cipher_backend,
            )
        return cls(
            context=context,
            cipher_backend=config.cipher_backend,
            env_file=config.env_file,
        )

    @property
    def is_initialized(self) -> bool:
        return self._context is not None

    def get_key(self) -> EncryptionContext:
        """Return the active encryption context.

        Raises:
            MasterKeyNotInitialized: If no key has been established yet.
        """
        if self._context is None:
            raise MasterKeyNotInitialized(
                "No master key established. Complete first-time admin setup "
                f"or set {ENCRYPTION_KEY_ENV}=<base64-encoded-32-byte-key>"
            )
        return self._context

    def provision(self) -> bool:
        """Generate the master key during first-time admin setup.

        Returns:
            True if a key was generated, False if one was already in place.
        """
        with self._lock:
            if self._context is not None:
                logger.warning("Master key already established; refusing to generate a new one")
                return False
            encoded = generate_master_key()
            self._context = EncryptionContext(
                key=base64.b64decode(encoded),
                cipher_backend=self._cipher_backend,
            )
            self._pending_disclosure = encoded
            if self._env_file:
                self._persist(encoded)
        logger.info("Master key generated; awaiting one-time disclosure")
        return True

    def reveal_once(self) -> Optional[str]:
        """Disclose the generated master key to the setup UI, exactly once.

        Returns:
            Base64 key on the first call after ``provision()``, None after.
        """
        with self._lock:
            encoded = self._pending_disclosure
            self._pending_disclosure = None
        if encoded is None:
            logger.warning("Master key disclosure requested but not available")
            return None
        logger.info("Master key disclosed to administrator")
        return encoded

    def _persist(self, encoded: str) -> None:
        """Write ``ENCRYPTION_KEY=<key>`` into the configured env file.

        Failure to persist is logged, not raised: the key is still shown
        once and the administrator remains responsible for keeping it.
        The file is rewritten through a temporary sibling and ``os.replace``
        so the other lines survive an interrupted write.
        """
        line = f"{ENCRYPTION_KEY_ENV}={encoded}"
        path = os.path.abspath(self._env_file)
        tmp_path = None
        try:
            lines = []
            if os.path.exists(path):
                with open(path, "r") as f:
                    lines = f.read().splitlines()
            lines = [
                existing for existing in lines
                if not existing.startswith(f"{ENCRYPTION_KEY_ENV}=")
            ]
            lines.append(line)
            # mkstemp creates the file with mode 0600
            fd, tmp_path = tempfile.mkstemp(
                dir=os.path.dirname(path), prefix=".env.", suffix=".tmp",
            )
            with os.fdopen(fd, "w") as f:
                f.write("\n".join(lines) + "\n")
                f.flush()
                os.fsync(f.fileno())
            os.replace(tmp_path, path)
            tmp_path = None
            logger.info("Master key saved to %s", path)
        except OSError as err:
            logger.error("Could not save master key to %s: %s", path, err)
        finally:
            if tmp_path is not None and os.path.exists(tmp_path):
                os.unlink(tmp_path)


def context_from_encoded(encoded: str, cipher_backend: str = DEFAULT_CIPHER_BACKEND) -> EncryptionContext:
    """Build a context from a base64 key, e.g. one copied from the setup screen."""
    return EncryptionContext(key=decode_master_key(encoded), cipher_backend=cipher_backend)


__all__ = [
    "EncryptionContext",
    "MasterKeyProvider",
    "MasterKeyNotInitialized",
    "context_from_encoded",
]
