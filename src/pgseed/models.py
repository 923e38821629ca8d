"""Shared domain models for pgseed."""

import re
from collections.abc import Mapping
from dataclasses import dataclass, field
from enum import Enum
from types import MappingProxyType
from typing import Any, Dict, Iterator, List, Optional, Tuple

from .constants import (
    DEFAULT_CACHE_DIR,
    DEFAULT_DATABASE,
    DEFAULT_DOWNLOAD_TIMEOUT_SECONDS,
    DEFAULT_EXTRA_PROPERTIES,
    DEFAULT_IMAGE,
    DEFAULT_PASSWORD,
    DEFAULT_PROPERTY_PREFIX,
    DEFAULT_RESOURCE_ROOTS,
    DEFAULT_STARTUP_TIMEOUT_SECONDS,
    DEFAULT_USERNAME,
)


@dataclass(frozen=True)
class DatabaseInstanceSpec:
    """Declares one database instance and the backup that seeds it."""

    role: str
    backup: str
    image: str = DEFAULT_IMAGE
    database: str = DEFAULT_DATABASE
    username: str = DEFAULT_USERNAME
    password: str = DEFAULT_PASSWORD
    backup_sha256: Optional[str] = None
    driver: Optional[str] = None


class InstanceState(str, Enum):
    UNSTARTED = "unstarted"
    STARTING = "starting"
    READY = "ready"
    RESTORING = "restoring"
    RESTORED = "restored"
    STOPPED = "stopped"
    FAILED = "failed"


@dataclass
class RunningDatabaseInstance:
    """Runtime handle for one provisioned container, owned by the environment."""

    spec: DatabaseInstanceSpec
    container_name: str
    container: Any = None
    container_id: Optional[str] = None
    host: Optional[str] = None
    port: Optional[int] = None
    url: Optional[str] = None
    state: InstanceState = InstanceState.UNSTARTED

    @property
    def role(self) -> str:
        return self.spec.role


@dataclass(frozen=True)
class RestoreResult:
    """Outcome of applying one backup artifact."""

    backup: str
    returncode: int
    stdout: str = ""
    stderr: str = ""
    command: Tuple[str, ...] = ()

    @property
    def success(self) -> bool:
        return self.returncode == 0


@dataclass(frozen=True)
class TeardownFailure:
    """A stop failure that was logged instead of raised."""

    role: str
    container_name: str
    error: str


@dataclass(frozen=True)
class EnvironmentSettings:
    """Tunables for one environment run."""

    startup_timeout_seconds: float = DEFAULT_STARTUP_TIMEOUT_SECONDS
    restore_timeout_seconds: Optional[float] = None
    parallel_start: bool = True
    property_prefix: str = DEFAULT_PROPERTY_PREFIX
    resource_roots: Tuple[str, ...] = DEFAULT_RESOURCE_ROOTS
    cache_dir: str = DEFAULT_CACHE_DIR
    allow_insecure_http: bool = False
    download_timeout_seconds: float = DEFAULT_DOWNLOAD_TIMEOUT_SECONDS
    extra_properties: Dict[str, str] = field(
        default_factory=lambda: dict(DEFAULT_EXTRA_PROPERTIES), hash=False
    )


_ENVIRON_KEY_PATTERN = re.compile(r"[^A-Za-z0-9]+")


class PropertyBindings(Mapping):
    """Read-only mapping of property keys to resolved connection values."""

    BINDING_FIELDS = ("url", "username", "password")

    def __init__(self, values: Mapping, prefix: str = DEFAULT_PROPERTY_PREFIX):
        self._values = MappingProxyType(dict(values))
        self.prefix = prefix

    def __getitem__(self, key: str) -> str:
        return self._values[key]

    def __iter__(self) -> Iterator[str]:
        return iter(self._values)

    def __len__(self) -> int:
        return len(self._values)

    def __repr__(self) -> str:
        masked = {
            key: ("***" if key.endswith(".password") else value)
            for key, value in self._values.items()
        }
        return f"PropertyBindings({masked!r})"

    @property
    def roles(self) -> List[str]:
        found: List[str] = []
        lead = f"{self.prefix}."
        for key in self._values:
            if not key.startswith(lead):
                continue
            role, _, name = key[len(lead):].rpartition(".")
            if role and name in self.BINDING_FIELDS and role not in found:
                found.append(role)
        return found

    def for_role(self, role: str) -> Dict[str, str]:
        result = {}
        for name in self.BINDING_FIELDS:
            key = f"{self.prefix}.{role}.{name}"
            if key not in self._values:
                raise KeyError(f"No bindings published for role '{role}'")
            result[name] = self._values[key]
        return result

    def to_environ(self) -> Dict[str, str]:
        return {
            _ENVIRON_KEY_PATTERN.sub("_", key).strip("_").upper(): value
            for key, value in self._values.items()
        }
