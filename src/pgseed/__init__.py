"""
pgseed - Seeded, throw-away PostgreSQL containers for integration tests
"""

__version__ = "0.3.0"

from .environment import IntegrationTestEnvironment
from .errors import (
    BackupNotFound,
    InvalidStateTransition,
    RestoreFailed,
    SeedError,
    StartupTimeout,
)
from .models import (
    DatabaseInstanceSpec,
    EnvironmentSettings,
    InstanceState,
    PropertyBindings,
    RestoreResult,
    RunningDatabaseInstance,
    TeardownFailure,
)
from .testcase import IntegrationTestCase

__all__ = [
    "BackupNotFound",
    "DatabaseInstanceSpec",
    "EnvironmentSettings",
    "InstanceState",
    "IntegrationTestCase",
    "IntegrationTestEnvironment",
    "InvalidStateTransition",
    "PropertyBindings",
    "RestoreFailed",
    "RestoreResult",
    "RunningDatabaseInstance",
    "SeedError",
    "StartupTimeout",
    "TeardownFailure",
]
