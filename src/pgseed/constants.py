"""Shared constants for pgseed."""

DEFAULT_IMAGE = "postgres:16"
DEFAULT_DATABASE = "test"
DEFAULT_USERNAME = "test"
DEFAULT_PASSWORD = "test"
POSTGRES_PORT = 5432

DEFAULT_STARTUP_TIMEOUT_SECONDS = 120.0
DEFAULT_DOWNLOAD_TIMEOUT_SECONDS = 60.0
READINESS_POLL_SECONDS = 1.0

DEFAULT_PROPERTY_PREFIX = "datasource"
DEFAULT_RESOURCE_ROOTS = ("tests/resources",)
DEFAULT_CACHE_DIR = ".pgseed-cache"
DEFAULT_CONFIG_FILE = ".pgseed.yml"

# Overrides published with every binding set so the system under test neither
# migrates nor auto-creates the schema that the restore just loaded.
DEFAULT_EXTRA_PROPERTIES = {
    "migrations.enabled": "false",
    "schema.auto_ddl": "none",
}

BINARY_BACKUP_EXTENSIONS = (".backup", ".dump")
SQL_BACKUP_EXTENSIONS = (".sql",)
BACKUP_EXTENSIONS = BINARY_BACKUP_EXTENSIONS + SQL_BACKUP_EXTENSIONS

CONTAINER_BACKUP_DIR = "/tmp/pgseed"
CONTAINER_NAME_PREFIX = "pgseed"
