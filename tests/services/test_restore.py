import subprocess

import pytest

from pgseed.errors import RestoreFailed, SeedError
from pgseed.models import DatabaseInstanceSpec, RestoreResult, RunningDatabaseInstance
from pgseed.services.restore import RestoreService


class DummyLogger:
    def info(self, *_args, **_kwargs):
        return None


class DummyConsole:
    def print(self, *_args, **_kwargs):
        return None


def _instance(backup="first-db.backup") -> RunningDatabaseInstance:
    spec = DatabaseInstanceSpec(
        role="primary",
        backup=backup,
        database="orders",
        username="app",
        password="secret",
        image="postgres:16",
    )
    return RunningDatabaseInstance(
        spec=spec,
        container_name="pgseed_run_primary",
        container_id="abc123",
    )


def test_restore_copies_artifact_and_runs_pg_restore_with_clean_flags(tmp_path):
    backup = tmp_path / "first-db.backup"
    backup.write_bytes(b"PGDMP")
    calls = []

    def fake_run_cmd(cmd, check=False, capture_output=True, **kwargs):  # noqa: ARG001
        calls.append((cmd, check, kwargs.get("timeout")))
        return subprocess.CompletedProcess(cmd, 0, stdout="", stderr="")

    service = RestoreService(logger=DummyLogger(), console=DummyConsole())
    result = service.restore(_instance(), str(backup), fake_run_cmd, timeout=30)

    assert calls[0][0] == ["docker", "exec", "abc123", "mkdir", "-p", "/tmp/pgseed"]
    assert calls[1][0] == ["docker", "cp", str(backup), "abc123:/tmp/pgseed/first-db.backup"]
    assert calls[1][1] is True
    assert calls[2][0] == [
        "docker",
        "exec",
        "abc123",
        "pg_restore",
        "-U",
        "app",
        "-d",
        "orders",
        "--clean",
        "--if-exists",
        "--no-owner",
        "--no-privileges",
        "/tmp/pgseed/first-db.backup",
    ]
    assert calls[2][1] is False
    assert calls[2][2] == 30
    assert result.success
    assert result.backup == "first-db.backup"


def test_restore_uses_psql_for_plain_sql_dumps(tmp_path):
    backup = tmp_path / "seed.sql"
    backup.write_text("CREATE TABLE foo (id integer);\n", encoding="utf-8")
    restore_commands = []

    def fake_run_cmd(cmd, check=False, capture_output=True, **kwargs):  # noqa: ARG001
        if "psql" in cmd:
            restore_commands.append(cmd)
        return subprocess.CompletedProcess(cmd, 0, stdout="CREATE TABLE\n", stderr="")

    service = RestoreService(logger=DummyLogger(), console=DummyConsole())
    result = service.restore(_instance("seed.sql"), str(backup), fake_run_cmd)

    assert restore_commands == [
        [
            "docker",
            "exec",
            "abc123",
            "psql",
            "-U",
            "app",
            "-d",
            "orders",
            "-v",
            "ON_ERROR_STOP=1",
            "-f",
            "/tmp/pgseed/seed.sql",
        ]
    ]
    assert result.stdout == "CREATE TABLE\n"


def test_restore_captures_output_of_failed_run(tmp_path):
    backup = tmp_path / "first-db.backup"
    backup.write_bytes(b"PGDMP")

    def fake_run_cmd(cmd, check=False, capture_output=True, **kwargs):  # noqa: ARG001
        if "pg_restore" in cmd:
            return subprocess.CompletedProcess(
                cmd, 1, stdout="partial", stderr="pg_restore: error: could not execute query"
            )
        return subprocess.CompletedProcess(cmd, 0, stdout="", stderr="")

    service = RestoreService(logger=DummyLogger(), console=DummyConsole())
    result = service.restore(_instance(), str(backup), fake_run_cmd)

    assert not result.success
    assert result.returncode == 1
    assert result.stdout == "partial"
    assert result.stderr == "pg_restore: error: could not execute query"
    assert "pg_restore" in result.command


def test_copy_failure_propagates_seed_error(tmp_path):
    backup = tmp_path / "first-db.backup"
    backup.write_bytes(b"PGDMP")

    def fake_run_cmd(cmd, check=False, capture_output=True, **kwargs):  # noqa: ARG001
        if cmd[:2] == ["docker", "cp"]:
            raise SeedError("Command failed (1): docker cp")
        return subprocess.CompletedProcess(cmd, 0, stdout="", stderr="")

    service = RestoreService(logger=DummyLogger(), console=DummyConsole())

    with pytest.raises(SeedError, match="docker cp"):
        service.restore(_instance(), str(backup), fake_run_cmd)


def test_raise_for_result_includes_backup_name_and_verbatim_streams():
    service = RestoreService(logger=DummyLogger(), console=DummyConsole())
    result = RestoreResult(
        backup="first-db.backup",
        returncode=1,
        stdout="line one\nline two",
        stderr="pg_restore: error: relation \"orders\" does not exist",
    )

    with pytest.raises(RestoreFailed) as exc_info:
        service.raise_for_result(_instance(), result)

    message = str(exc_info.value)
    assert "first-db.backup" in message
    assert "exit code 1" in message
    assert "line one\nline two" in message
    assert 'relation "orders" does not exist' in message
    assert exc_info.value.result is result


def test_raise_for_result_hints_at_dump_version_mismatch():
    service = RestoreService(logger=DummyLogger(), console=DummyConsole())
    result = RestoreResult(
        backup="first-db.backup",
        returncode=1,
        stderr="pg_restore: error: unsupported version (1.16) in file header",
    )

    with pytest.raises(RestoreFailed, match="newer image tag"):
        service.raise_for_result(_instance(), result)


def test_raise_for_result_is_silent_on_success():
    service = RestoreService(logger=DummyLogger(), console=DummyConsole())

    service.raise_for_result(_instance(), RestoreResult(backup="first-db.backup", returncode=0))
