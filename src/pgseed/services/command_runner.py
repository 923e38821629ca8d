"""Subprocess execution service for pgseed."""

import shlex
import subprocess
from typing import List, Optional

from pgseed.errors import SeedError
from pgseed.errors_catalog import actionable_error


class CommandRunner:
    """Runs docker and PostgreSQL client commands with consistent error handling."""

    def __init__(self, logger):
        self.logger = logger

    def run(
        self,
        cmd: List[str],
        check: bool = True,
        capture_output: bool = False,
        timeout: Optional[float] = None,
    ) -> subprocess.CompletedProcess:
        cmd_str = shlex.join(cmd)
        self.logger.debug("Executing: %s", cmd_str)

        try:
            result = subprocess.run(
                cmd,
                text=True,
                capture_output=capture_output,
                timeout=timeout,
            )
        except FileNotFoundError as exc:
            raise SeedError(actionable_error("docker_missing", command=cmd[0])) from exc
        except subprocess.TimeoutExpired as exc:
            raise SeedError(f"Command timed out after {timeout}s: {cmd_str}") from exc
        except OSError as exc:
            raise SeedError(f"Failed to execute command: {cmd_str}. {exc}") from exc

        if capture_output and result.stdout:
            self.logger.debug("Command output: %s", result.stdout.strip())
        if capture_output and result.stderr:
            self.logger.debug("Command stderr: %s", result.stderr.strip())

        if result.returncode == 0 or not check:
            return result

        message = f"Command failed ({result.returncode}): {cmd_str}"
        stderr = (result.stderr or "").strip() if capture_output else ""
        if stderr:
            message = f"{message}\n{stderr}"
        raise SeedError(message)
