"""Docker-backed fixtures: real PostgreSQL containers and freshly dumped backups."""

import logging
from pathlib import Path

import docker
import pytest
from testcontainers.postgres import PostgresContainer

from pgseed.services.command_runner import CommandRunner

INTEGRATION_ROOT = Path(__file__).parent.resolve()
DUMP_IMAGE = "postgres:16"

FIRST_DB_SQL = """
CREATE TABLE orders (id integer PRIMARY KEY, item text NOT NULL);
INSERT INTO orders VALUES (1, 'lamp'), (2, 'desk'), (3, 'chair');
"""

SECOND_DB_SQL = """
CREATE TABLE customers (id integer PRIMARY KEY, name text NOT NULL);
INSERT INTO customers VALUES (1, 'ada'), (2, 'grace');
"""


def _docker_available() -> bool:
    try:
        docker.from_env().ping()
    except Exception:  # pylint: disable=broad-except
        return False
    return True


DOCKER_UP = _docker_available()


@pytest.hookimpl(tryfirst=True)
def pytest_collection_modifyitems(items):
    """Mark everything under tests/integration as `docker` and skip it without a daemon."""
    skip = pytest.mark.skip(reason="Docker daemon not available")
    for item in items:
        if INTEGRATION_ROOT not in item.path.resolve().parents:
            continue
        item.add_marker(pytest.mark.docker)
        if not DOCKER_UP:
            item.add_marker(skip)


def _psql(container, database, sql):
    result = container.exec(["psql", "-U", "test", "-d", database, "-v", "ON_ERROR_STOP=1", "-c", sql])
    assert result.exit_code == 0, result.output


@pytest.fixture(scope="session")
def backup_dir(tmp_path_factory):
    """A directory holding `first-db.backup`, `second-db.backup` and a broken artifact."""
    target = tmp_path_factory.mktemp("backups")
    runner = CommandRunner(logger=logging.getLogger("pgseed.tests"))

    with PostgresContainer(
        image=DUMP_IMAGE, username="test", password="test", dbname="test", driver=None
    ) as source:
        container_id = source.get_wrapped_container().id
        for database, sql in (("first", FIRST_DB_SQL), ("second", SECOND_DB_SQL)):
            _psql(source, "test", f"CREATE DATABASE {database}")
            _psql(source, database, sql)
            dump_path = f"/tmp/{database}-db.backup"
            result = source.exec(["pg_dump", "-Fc", "-U", "test", "-d", database, "-f", dump_path])
            assert result.exit_code == 0, result.output
            runner.run(
                ["docker", "cp", f"{container_id}:{dump_path}", str(target / f"{database}-db.backup")],
                capture_output=True,
            )

    (target / "broken.backup").write_bytes(b"this is not a pg_dump archive")
    return target


@pytest.fixture
def docker_client():
    return docker.from_env()
