import pytest

from webui_secrets.vault import (
    Database,
    EncryptionContext,
    EncryptionService,
    MasterKeyProvider,
    CredentialStore,
    GalleryStore,
)
from webui_secrets.vault.config import KEY_LENGTH


class Clock:
    """Deterministic epoch-ms clock; every call advances one millisecond."""

    def __init__(self, start: int = 1_700_000_000_000):
        self.now = start

    def __call__(self) -> int:
        self.now += 1
        return self.now


@pytest.fixture
def context():
    return EncryptionContext(key=b"k" * KEY_LENGTH)


@pytest.fixture
def provider(context):
    return MasterKeyProvider(context=context)


@pytest.fixture
def encryption(provider):
    return EncryptionService(provider)


@pytest.fixture
def database():
    db = Database(":memory:")
    assert db.open() is True
    yield db
    db.close()


@pytest.fixture
def clock():
    return Clock()


@pytest.fixture
def credentials(database, encryption, clock):
    return CredentialStore(database.get_safe, encryption, clock=clock)


@pytest.fixture
def gallery(database, encryption, clock):
    return GalleryStore(database.get_safe, encryption, clock=clock)


@pytest.fixture
def offline_credentials(encryption):
    return CredentialStore(lambda: None, encryption)


@pytest.fixture
def offline_gallery(encryption):
    return GalleryStore(lambda: None, encryption)


@pytest.fixture
def row_count(database):
    """Count rows of a table directly, bypassing the stores."""
    def _count(table: str) -> int:
        return database.get_safe().prepare(f"SELECT COUNT(*) AS n FROM {table}").get()["n"]
    return _count
