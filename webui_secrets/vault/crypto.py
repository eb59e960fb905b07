"""
Vault Crypto Core — Key derivation and at-rest encryption of text values.

Every sensitive column (plugin API keys, image prompts, image data) goes
through :class:`EncryptionService`:
- Key: HKDF(MASTER_KEY, "webui-secrets-db") → AES-GCM (or ChaCha20-Poly1305)
- Stored form: urlsafe base64 of [format 1B][nonce 12B][encrypted_payload + tag 16B]

Security Note:
    Never log plaintext or ciphertext values.
    Nonces are random 96-bit; collision probability negligible under normal usage.
"""
import os
import base64
import binascii
import logging
from functools import lru_cache

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives.kdf.hkdf import HKDF
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.ciphers.aead import AESGCM, ChaCha20Poly1305

from .config import KEY_LENGTH
from .keys import EncryptionContext, MasterKeyProvider
from .results import Result

logger = logging.getLogger("webui.vault")

FORMAT_VERSION = 1
FORMAT_SIZE = 1
NONCE_SIZE = 12  # 96-bit nonce
TAG_SIZE = 16
KEY_CONTEXT = "webui-secrets-db"

MIN_CIPHERTEXT_SIZE = FORMAT_SIZE + NONCE_SIZE + TAG_SIZE

_CIPHERS = {
    "aesgcm": AESGCM,
    "chacha20": ChaCha20Poly1305,
}


# ---------------------------------------------------------------------------
# Key derivation
# ---------------------------------------------------------------------------

@lru_cache(maxsize=8)
def derive_key(seed: bytes, context: str) -> bytes:
    """Derive a 32-byte encryption key using HKDF-SHA256.

    Args:
        seed: Input key material (master key bytes).
        context: Context string for domain separation.

    Returns:
        32-byte derived key.
    """
    hkdf = HKDF(
        algorithm=hashes.SHA256(),
        length=KEY_LENGTH,
        salt=None,  # deterministic derivation: one master key, one data key
        info=context.encode("utf-8"),
    )
    return hkdf.derive(seed)


def _cipher_for(ctx: EncryptionContext):
    cipher_cls = _CIPHERS[ctx.cipher_backend]
    return cipher_cls(derive_key(ctx.key, KEY_CONTEXT))


# ---------------------------------------------------------------------------
# Byte-level encryption
# ---------------------------------------------------------------------------

def encrypt_bytes(plaintext: bytes, ctx: EncryptionContext) -> bytes:
    """Encrypt plaintext for database storage.

    Format: [format 1B][nonce 12B][encrypted_payload + tag 16B]
    """
    cipher = _cipher_for(ctx)
    nonce = os.urandom(NONCE_SIZE)
    ct = cipher.encrypt(nonce, plaintext, None)
    return bytes([FORMAT_VERSION]) + nonce + ct


def decrypt_bytes(ciphertext: bytes, ctx: EncryptionContext) -> bytes:
    """Decrypt database-stored ciphertext.

    Raises:
        ValueError: If the ciphertext is too short or has an unknown format.
        cryptography.exceptions.InvalidTag: If authentication fails
            (wrong key or tampered data).
    """
    if len(ciphertext) < MIN_CIPHERTEXT_SIZE:
        raise ValueError(
            f"ciphertext too short: {len(ciphertext)} bytes "
            f"(minimum {MIN_CIPHERTEXT_SIZE})"
        )
    if ciphertext[0] != FORMAT_VERSION:
        raise ValueError(f"unknown ciphertext format: {ciphertext[0]}")
    cipher = _cipher_for(ctx)
    nonce = ciphertext[FORMAT_SIZE:FORMAT_SIZE + NONCE_SIZE]
    ct = ciphertext[FORMAT_SIZE + NONCE_SIZE:]
    return cipher.decrypt(nonce, ct, None)


# ---------------------------------------------------------------------------
# Text-level service used by the stores
# ---------------------------------------------------------------------------

class EncryptionService:
    """Encrypts and decrypts text columns under the process master key.

    The service keeps no state besides its key provider. ``decrypt`` never
    raises on bad input: rows written under a lost key, corrupted rows and
    rows that were never encrypted all come back as a ``DECRYPT_FAILED``
    result, so a single bad row cannot take down a store. An empty
    plaintext decrypts to ``Result(OK, "")``, which is still truthy.

    Both operations raise :class:`~webui_secrets.vault.keys.MasterKeyNotInitialized`
    when used before a master key exists.
    """

    def __init__(self, provider: MasterKeyProvider):
        self._provider = provider

    def encrypt(self, plaintext: str) -> str:
        ctx = self._provider.get_key()
        data = encrypt_bytes(plaintext.encode("utf-8"), ctx)
        return base64.urlsafe_b64encode(data).decode("ascii")

    def decrypt(self, ciphertext: str) -> Result[str]:
        ctx = self._provider.get_key()
        if not isinstance(ciphertext, str) or not ciphertext:
            return Result.decrypt_failed()
        try:
            raw = base64.urlsafe_b64decode(ciphertext.encode("ascii"))
            plaintext = decrypt_bytes(raw, ctx)
            return Result.success(plaintext.decode("utf-8"))
        except (ValueError, binascii.Error, InvalidTag, UnicodeError) as err:
            logger.debug("Decryption failed: %s", type(err).__name__)
            return Result.decrypt_failed()
