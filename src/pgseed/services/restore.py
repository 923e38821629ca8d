"""Backup restore services for pgseed."""

import os
from pathlib import PurePosixPath
from typing import Callable, List, Optional

from pgseed.constants import CONTAINER_BACKUP_DIR, SQL_BACKUP_EXTENSIONS
from pgseed.errors import RestoreFailed
from pgseed.errors_catalog import actionable_error
from pgseed.models import RestoreResult, RunningDatabaseInstance


class RestoreService:
    """Copies backup artifacts into containers and runs the restore tool."""

    def __init__(self, logger, console):
        self.logger = logger
        self.console = console

    @staticmethod
    def _container_backup_path(filename: str) -> str:
        return str(PurePosixPath(CONTAINER_BACKUP_DIR, filename))

    @staticmethod
    def is_plain_sql(backup_path: str) -> bool:
        return os.path.splitext(backup_path)[1].lower() in SQL_BACKUP_EXTENSIONS

    def build_restore_command(
        self, instance: RunningDatabaseInstance, container_path: str, plain_sql: bool
    ) -> List[str]:
        spec = instance.spec
        base = ["docker", "exec", instance.container_id]
        if plain_sql:
            return base + [
                "psql",
                "-U",
                spec.username,
                "-d",
                spec.database,
                "-v",
                "ON_ERROR_STOP=1",
                "-f",
                container_path,
            ]
        return base + [
            "pg_restore",
            "-U",
            spec.username,
            "-d",
            spec.database,
            "--clean",
            "--if-exists",
            "--no-owner",
            "--no-privileges",
            container_path,
        ]

    def restore(
        self,
        instance: RunningDatabaseInstance,
        backup_path: str,
        run_cmd: Callable,
        timeout: Optional[float] = None,
    ) -> RestoreResult:
        spec = instance.spec
        self.console.print(f"[blue]Restoring '{spec.backup}' into '{spec.role}'...[/blue]")
        self.logger.info("Restoring %s into %s", spec.backup, instance.container_name)

        container_path = self._container_backup_path(os.path.basename(backup_path))
        run_cmd(
            ["docker", "exec", instance.container_id, "mkdir", "-p", CONTAINER_BACKUP_DIR],
            check=True,
            capture_output=True,
        )
        run_cmd(
            ["docker", "cp", backup_path, f"{instance.container_id}:{container_path}"],
            check=True,
            capture_output=True,
        )

        cmd = self.build_restore_command(instance, container_path, self.is_plain_sql(backup_path))
        completed = run_cmd(cmd, check=False, capture_output=True, timeout=timeout)
        result = RestoreResult(
            backup=spec.backup,
            returncode=completed.returncode,
            stdout=completed.stdout or "",
            stderr=completed.stderr or "",
            command=tuple(cmd),
        )

        if result.success:
            self.console.print(f"[green]Restored '{spec.backup}' into '{spec.role}'.[/green]")
        return result

    def raise_for_result(self, instance: RunningDatabaseInstance, result: RestoreResult):
        if result.success:
            return

        message = actionable_error(
            "restore_failed",
            backup=result.backup,
            role=instance.role,
            returncode=str(result.returncode),
            image=instance.spec.image,
        )
        if "unsupported version" in result.stderr.lower():
            message = (
                f"{message}\nThe dump was likely created by a newer pg_dump than the "
                "restore image provides. Use a newer image tag."
            )
        message = f"{message}\n--- stdout ---\n{result.stdout}\n--- stderr ---\n{result.stderr}"
        raise RestoreFailed(instance.role, result, message)
