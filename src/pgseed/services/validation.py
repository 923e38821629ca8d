"""Instance spec and URL validation helpers for pgseed."""

from pathlib import Path
from typing import Optional, Sequence
from urllib.parse import urlparse

import requests

from pgseed.constants import BACKUP_EXTENSIONS
from pgseed.errors import SeedError
from pgseed.errors_catalog import actionable_error
from pgseed.models import DatabaseInstanceSpec


class ValidationService:
    """Validates instance specs, backup locations and protocol policy."""

    def __init__(self, allow_insecure_http: bool = False, requests_module=requests):
        self.allow_insecure_http = allow_insecure_http
        self.requests = requests_module

    def is_url(self, location: str) -> bool:
        scheme = urlparse(location).scheme.lower()
        return scheme in {"http", "https"}

    def get_location_extension(self, location: str) -> str:
        path = urlparse(location).path if self.is_url(location) else location
        return Path(path).suffix.lower()

    def ensure_supported_backup_extension(self, location: str):
        ext = self.get_location_extension(location)
        if ext not in BACKUP_EXTENSIONS:
            raise SeedError(
                actionable_error(
                    "invalid_backup_format",
                    backup=location,
                    extensions=", ".join(f"`{item}`" for item in BACKUP_EXTENSIONS),
                )
            )

    def validate_specs(self, specs: Sequence[DatabaseInstanceSpec]):
        if not specs:
            raise SeedError("At least one database instance spec is required.")

        seen = set()
        for spec in specs:
            if not isinstance(spec, DatabaseInstanceSpec):
                raise SeedError(f"Expected DatabaseInstanceSpec, got {type(spec).__name__}.")
            if not spec.role or not spec.role.strip():
                raise SeedError("Database instance role must be a non-empty string.")
            if spec.role in seen:
                raise SeedError(f"Duplicate database instance role: {spec.role}")
            seen.add(spec.role)

            for label, value in (
                ("image", spec.image),
                ("database", spec.database),
                ("username", spec.username),
                ("password", spec.password),
            ):
                if not value:
                    raise SeedError(f"Database instance '{spec.role}' has an empty {label}.")

            if not spec.backup:
                raise SeedError(f"Database instance '{spec.role}' has no backup artifact.")
            self.ensure_supported_backup_extension(spec.backup)

    def enforce_https_policy(self, location: str, label: str, logger, console):
        if not self.is_url(location):
            return

        scheme = urlparse(location).scheme.lower()
        if scheme == "http" and not self.allow_insecure_http:
            raise SeedError(actionable_error("insecure_http", label=label))

        if scheme == "http" and self.allow_insecure_http:
            logger.warning("Insecure HTTP enabled for %s: %s", label, location)
            console.print(
                f"[yellow]Warning:[/yellow] Using insecure HTTP for {label}. "
                "Prefer HTTPS whenever possible."
            )

    def probe_url(self, location: str, label: str, logger, console, timeout: float = 30):
        self.enforce_https_policy(location, label, logger, console)

        last_error: Optional[Exception] = None
        for method in ("HEAD", "GET"):
            try:
                response = self.requests.request(
                    method,
                    location,
                    allow_redirects=True,
                    timeout=timeout,
                    stream=(method == "GET"),
                )
                response.raise_for_status()
                response.close()
                return
            except self.requests.RequestException as exc:
                last_error = exc

        raise SeedError(f"{label} is not accessible: {last_error}")
