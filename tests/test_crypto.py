"""
Tests for the at-rest encryption service.

Tests cover:
- Round-trip of ordinary, empty and multi-byte strings
- Ciphertext format (text-safe, randomized, length checks)
- Decrypt-failure isolation (foreign key, garbage, truncated, tampered)
- Fail-fast use before a master key exists
"""
import base64

import pytest

from webui_secrets.vault import (
    EncryptionContext,
    EncryptionService,
    MasterKeyProvider,
    MasterKeyNotInitialized,
    Status,
)
from webui_secrets.vault.config import KEY_LENGTH
from webui_secrets.vault.crypto import (
    MIN_CIPHERTEXT_SIZE,
    decrypt_bytes,
    derive_key,
    encrypt_bytes,
)


@pytest.fixture
def foreign_encryption():
    """Service using a different master key."""
    return EncryptionService(
        MasterKeyProvider(context=EncryptionContext(key=b"x" * KEY_LENGTH))
    )


class TestRoundTrip:
    """decrypt(encrypt(p)) == p for every plaintext."""

    @pytest.mark.parametrize("plaintext", [
        "sk-test-1234567890",
        "",
        "héllo wörld",
        "画像を生成する 🎨",
        "a" * 10_000,
    ])
    def test_round_trip(self, encryption, plaintext):
        result = encryption.decrypt(encryption.encrypt(plaintext))
        assert result.status is Status.OK
        assert result.value == plaintext

    def test_empty_plaintext_is_not_a_failure(self, encryption):
        """Empty plaintext decrypts to a truthy result with an empty value."""
        result = encryption.decrypt(encryption.encrypt(""))
        assert result
        assert result.value == ""

    def test_chacha20_backend_round_trip(self):
        service = EncryptionService(MasterKeyProvider(
            context=EncryptionContext(key=b"c" * KEY_LENGTH, cipher_backend="chacha20")
        ))
        assert service.decrypt(service.encrypt("secret")).value == "secret"


class TestCiphertextFormat:
    """Ciphertext is an opaque, storage-safe string."""

    def test_ciphertext_is_ascii_text(self, encryption):
        ciphertext = encryption.encrypt("sk-abc")
        assert isinstance(ciphertext, str)
        ciphertext.encode("ascii")

    def test_ciphertext_does_not_contain_plaintext(self, encryption):
        ciphertext = encryption.encrypt("sk-very-secret")
        assert "sk-very-secret" not in ciphertext

    def test_nonce_randomizes_output(self, encryption):
        assert encryption.encrypt("same") != encryption.encrypt("same")

    def test_empty_plaintext_has_minimum_length(self, encryption):
        raw = base64.urlsafe_b64decode(encryption.encrypt(""))
        assert len(raw) == MIN_CIPHERTEXT_SIZE

    def test_derive_key_is_deterministic(self):
        assert derive_key(b"m" * KEY_LENGTH, "ctx") == derive_key(b"m" * KEY_LENGTH, "ctx")
        assert derive_key(b"m" * KEY_LENGTH, "ctx") != derive_key(b"m" * KEY_LENGTH, "other")

    def test_decrypt_bytes_rejects_short_input(self, context):
        with pytest.raises(ValueError):
            decrypt_bytes(b"\x01" * (MIN_CIPHERTEXT_SIZE - 1), context)

    def test_decrypt_bytes_rejects_unknown_format(self, context):
        data = bytearray(encrypt_bytes(b"payload", context))
        data[0] = 0x7F
        with pytest.raises(ValueError):
            decrypt_bytes(bytes(data), context)


class TestDecryptFailure:
    """Bad ciphertext returns DECRYPT_FAILED, never raises."""

    def test_foreign_key(self, encryption, foreign_encryption):
        ciphertext = foreign_encryption.encrypt("sk-other")
        result = encryption.decrypt(ciphertext)
        assert not result
        assert result.status is Status.DECRYPT_FAILED
        assert result.value is None

    @pytest.mark.parametrize("garbage", [
        "",
        "not-base64-!!!",
        "sk-plaintext-that-was-never-encrypted",
        base64.urlsafe_b64encode(b"\x01" + b"\x00" * 40).decode(),
        "ñ-not-ascii",
    ])
    def test_garbage(self, encryption, garbage):
        assert encryption.decrypt(garbage).status is Status.DECRYPT_FAILED

    def test_non_string_input(self, encryption):
        assert encryption.decrypt(None).status is Status.DECRYPT_FAILED

    def test_truncated(self, encryption):
        ciphertext = encryption.encrypt("sk-abc")
        assert encryption.decrypt(ciphertext[:10]).status is Status.DECRYPT_FAILED

    def test_tampered(self, encryption):
        raw = bytearray(base64.urlsafe_b64decode(encryption.encrypt("sk-abc")))
        raw[-1] ^= 0x01
        tampered = base64.urlsafe_b64encode(bytes(raw)).decode()
        assert encryption.decrypt(tampered).status is Status.DECRYPT_FAILED

    def test_failure_does_not_block_later_calls(self, encryption, foreign_encryption):
        encryption.decrypt(foreign_encryption.encrypt("x"))
        assert encryption.decrypt(encryption.encrypt("still works")).value == "still works"


class TestUninitializedKey:
    """Encrypting or decrypting before a key exists fails fast."""

    def test_encrypt_raises(self):
        service = EncryptionService(MasterKeyProvider())
        with pytest.raises(MasterKeyNotInitialized):
            service.encrypt("sk-abc")

    def test_decrypt_raises(self, encryption):
        ciphertext = encryption.encrypt("sk-abc")
        service = EncryptionService(MasterKeyProvider())
        with pytest.raises(MasterKeyNotInitialized):
            service.decrypt(ciphertext)


class TestCipherBackend:

    def test_backends_are_not_interchangeable(self):
        key = b"b" * KEY_LENGTH
        aes = EncryptionService(MasterKeyProvider(context=EncryptionContext(key=key)))
        chacha = EncryptionService(MasterKeyProvider(
            context=EncryptionContext(key=key, cipher_backend="chacha20")
        ))
        assert chacha.decrypt(aes.encrypt("sk-abc")).status is Status.DECRYPT_FAILED

    def test_misspelled_backend_never_encrypts(self):
        with pytest.raises(ValueError):
            EncryptionContext(key=b"b" * KEY_LENGTH, cipher_backend="chacha")
