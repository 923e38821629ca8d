"""Backup artifact lookup with remote download and checksum validation."""

import hashlib
import os
from pathlib import Path
from typing import List, Optional, Sequence
from urllib.parse import urlparse

from rich.progress import (
    BarColumn,
    Progress,
    SpinnerColumn,
    TaskProgressColumn,
    TextColumn,
    TimeElapsedColumn,
)

from pgseed.errors import BackupNotFound, SeedError
from pgseed.errors_catalog import actionable_error


class BackupLocator:
    """Resolves backup artifact names to local files."""

    CHUNK_SIZE = 8192

    def __init__(
        self,
        validation_service,
        logger,
        console,
        requests_module,
        resource_roots: Sequence[str] = (),
        cache_dir: str = ".pgseed-cache",
        download_timeout: float = 60.0,
    ):
        self.validation_service = validation_service
        self.logger = logger
        self.console = console
        self.requests = requests_module
        self.resource_roots = [str(root) for root in resource_roots]
        self.cache_dir = cache_dir
        self.download_timeout = download_timeout

    def resolve(self, backup: str, expected_sha256: Optional[str] = None) -> str:
        if self.validation_service.is_url(backup):
            return self._resolve_remote(backup, expected_sha256)

        path = self._find_local(backup)
        if expected_sha256:
            self._verify_checksum(path, expected_sha256, backup)
        self.logger.debug("Resolved backup %s to %s", backup, path)
        return path

    def check(self, backup: str) -> str:
        """Confirms an artifact is reachable without downloading it."""
        if self.validation_service.is_url(backup):
            self.validation_service.probe_url(
                backup,
                f"backup URL {backup}",
                self.logger,
                self.console,
                timeout=self.download_timeout,
            )
            return backup
        return self._find_local(backup)

    def candidate_paths(self, backup: str) -> List[Path]:
        path = Path(backup)
        if path.is_absolute():
            return [path]
        candidates = [Path(root) / backup for root in self.resource_roots]
        candidates.append(path)
        return candidates

    def _find_local(self, backup: str) -> str:
        candidates = self.candidate_paths(backup)
        for candidate in candidates:
            if candidate.is_file():
                return str(candidate.resolve())

        searched = ", ".join(str(candidate) for candidate in candidates)
        raise BackupNotFound(actionable_error("backup_not_found", backup=backup, searched=searched))

    def _resolve_remote(self, url: str, expected_sha256: Optional[str]) -> str:
        url_path = urlparse(url).path
        filename = os.path.basename(url_path) or "downloaded.backup"
        url_key = hashlib.sha256(url.encode("utf-8")).hexdigest()[:16]
        target_path = os.path.join(self.cache_dir, url_key, filename)

        if expected_sha256 and os.path.isfile(target_path):
            if self._sha256_file(target_path) == expected_sha256.lower():
                self.logger.info("Using cached backup %s", target_path)
                return target_path
            self.logger.info("Cached backup %s is stale, downloading again", target_path)

        self.download_file(
            url,
            target_path,
            description=f"Downloading {filename}...",
            expected_sha256=expected_sha256,
        )
        return target_path

    def download_file(
        self,
        url: str,
        dest_path: str,
        description: str = "Downloading...",
        expected_sha256: Optional[str] = None,
    ):
        self.logger.info("Downloading %s to %s", url, dest_path)
        self.validation_service.enforce_https_policy(url, description, self.logger, self.console)

        hasher = hashlib.sha256() if expected_sha256 else None

        try:
            with self.requests.get(url, stream=True, timeout=self.download_timeout) as response:
                response.raise_for_status()
                total_size = int(response.headers.get("Content-Length", 0))

                os.makedirs(os.path.dirname(dest_path), exist_ok=True)

                with Progress(
                    SpinnerColumn(),
                    TextColumn("[progress.description]{task.description}"),
                    BarColumn(),
                    TaskProgressColumn(),
                    TimeElapsedColumn(),
                    console=self.console,
                    transient=True,
                ) as progress:
                    task = progress.add_task(f"[cyan]{description}", total=total_size or None)
                    with open(dest_path, "wb") as file_obj:
                        for chunk in response.iter_content(chunk_size=self.CHUNK_SIZE):
                            if not chunk:
                                continue
                            file_obj.write(chunk)
                            if hasher:
                                hasher.update(chunk)
                            progress.update(task, advance=len(chunk))

        except self.requests.RequestException as exc:
            raise SeedError(f"Download failed for {url}: {exc}") from exc
        except OSError as exc:
            raise SeedError(f"Could not write download to '{dest_path}': {exc}") from exc

        if hasher:
            downloaded_sha = hasher.hexdigest()
            if downloaded_sha != expected_sha256.lower():
                try:
                    os.remove(dest_path)
                except OSError:
                    pass
                raise SeedError(
                    f"Checksum mismatch for {url}. Expected {expected_sha256}, "
                    f"but got {downloaded_sha}."
                )

    def _verify_checksum(self, path: str, expected_sha256: str, backup: str):
        actual = self._sha256_file(path)
        if actual != expected_sha256.lower():
            raise SeedError(
                f"Checksum mismatch for {backup}. Expected {expected_sha256}, but got {actual}."
            )

    def _sha256_file(self, path: str) -> str:
        hasher = hashlib.sha256()
        with open(path, "rb") as file_obj:
            for chunk in iter(lambda: file_obj.read(self.CHUNK_SIZE), b""):
                hasher.update(chunk)
        return hasher.hexdigest()
