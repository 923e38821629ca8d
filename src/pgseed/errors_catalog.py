"""Actionable error catalog for pgseed."""

from typing import Dict

_ERROR_MESSAGES: Dict[str, Dict[str, str]] = {
    "invalid_backup_format": {
        "what": "Unsupported backup artifact '{backup}'. Supported formats are {extensions}.",
        "next": "Provide a pg_dump custom-format file (`.backup`/`.dump`) or a plain `.sql` dump.",
    },
    "backup_not_found": {
        "what": "Backup artifact not found: {backup} (searched: {searched})",
        "next": "Place the file under one of the resource roots or reference it by absolute path.",
    },
    "insecure_http": {
        "what": "{label} uses insecure HTTP.",
        "next": "Switch to HTTPS or set `allow_insecure_http` only for trusted endpoints.",
    },
    "docker_missing": {
        "what": "Required command not found: {command}.",
        "next": "Install the Docker CLI and make sure the daemon is reachable from this shell.",
    },
    "startup_timeout": {
        "what": "Database '{role}' did not accept connections within {timeout}s.",
        "next": "Check that the image '{image}' can be pulled and that Docker has enough resources.",
    },
    "restore_failed": {
        "what": "Restoring backup '{backup}' into '{role}' failed with exit code {returncode}.",
        "next": "Check that the artifact was produced by a pg_dump version compatible with '{image}'.",
    },
}


def actionable_error(code: str, **kwargs: str) -> str:
    if code not in _ERROR_MESSAGES:
        raise KeyError(f"Unknown error catalog key: {code}")

    template = _ERROR_MESSAGES[code]
    what = template["what"].format(**kwargs)
    next_step = template["next"].format(**kwargs)
    return f"{what} Suggested action: {next_step}"
