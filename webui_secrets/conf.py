"""Shared constants for the secret-at-rest subsystem."""

# Owner used when the caller operates outside a multi-user context.
DEFAULT_OWNER = "default"

# Environment variables
ENCRYPTION_KEY_ENV = "ENCRYPTION_KEY"
CIPHER_BACKEND_ENV = "VAULT_CIPHER_BACKEND"
ENV_FILE_ENV = "VAULT_ENV_FILE"
DATABASE_PATH_ENV = "WEBUI_DB_PATH"

DEFAULT_CIPHER_BACKEND = "aesgcm"
DEFAULT_DATABASE_PATH = "webui.db"

# Gallery pagination
DEFAULT_PAGE_SIZE = 20
MAX_PAGE_SIZE = 100

# Tables
CREDENTIALS_TABLE = "plugin_credentials"
IMAGES_TABLE = "generated_images"
