"""Container runtime services for pgseed."""

import time
from concurrent.futures import Future, ThreadPoolExecutor, wait
from concurrent.futures import TimeoutError as FutureTimeoutError
from typing import Callable, Dict

from testcontainers.postgres import PostgresContainer

from pgseed.constants import CONTAINER_NAME_PREFIX, POSTGRES_PORT, READINESS_POLL_SECONDS
from pgseed.errors import SeedError, StartupTimeout
from pgseed.errors_catalog import actionable_error
from pgseed.models import RunningDatabaseInstance


class ContainerRuntimeService:
    """Provisions PostgreSQL containers and tracks their readiness."""

    def __init__(
        self,
        logger,
        console,
        container_factory=PostgresContainer,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.logger = logger
        self.console = console
        self.container_factory = container_factory
        self.clock = clock
        self.sleep = sleep
        self._pending_starts: Dict[str, Future] = {}

    @staticmethod
    def container_name(run_id: str, role: str) -> str:
        safe_role = "".join(char if char.isalnum() else "-" for char in role.lower())
        return f"{CONTAINER_NAME_PREFIX}_{run_id}_{safe_role}"

    def create_container(self, instance: RunningDatabaseInstance):
        spec = instance.spec
        container = self.container_factory(
            image=spec.image,
            username=spec.username,
            password=spec.password,
            dbname=spec.database,
            driver=spec.driver,
        )
        container = container.with_name(instance.container_name)
        instance.container = container
        return container

    def start(self, instance: RunningDatabaseInstance, timeout_seconds: float, run_cmd: Callable):
        spec = instance.spec
        deadline = self.clock() + timeout_seconds
        container = instance.container or self.create_container(instance)

        self.console.print(f"[blue]Starting database '{spec.role}' ({spec.image})...[/blue]")
        self.logger.info("Starting container %s from %s", instance.container_name, spec.image)

        # testcontainers blocks on its own readiness wait; bound it by our deadline.
        executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix=f"pgseed-{spec.role}")
        future = executor.submit(container.start)
        executor.shutdown(wait=False)
        self._pending_starts[instance.container_name] = future
        try:
            future.result(timeout=max(deadline - self.clock(), 0))
        except (TimeoutError, FutureTimeoutError) as exc:
            raise self._startup_timeout(instance, timeout_seconds) from exc
        except Exception as exc:
            raise SeedError(
                f"Failed to start database '{spec.role}' from image '{spec.image}': {exc}"
            ) from exc
        self._pending_starts.pop(instance.container_name, None)

        instance.container_id = container.get_wrapped_container().id
        if self.clock() > deadline:
            raise self._startup_timeout(instance, timeout_seconds)

        self.wait_for_db(instance, run_cmd, deadline, timeout_seconds)

        instance.host = container.get_container_host_ip()
        instance.port = int(container.get_exposed_port(POSTGRES_PORT))
        instance.url = container.get_connection_url()

    def wait_for_db(
        self,
        instance: RunningDatabaseInstance,
        run_cmd: Callable,
        deadline: float,
        timeout_seconds: float,
    ):
        spec = instance.spec
        cmd = [
            "docker",
            "exec",
            instance.container_id,
            "pg_isready",
            "-h",
            "127.0.0.1",
            "-p",
            str(POSTGRES_PORT),
            "-U",
            spec.username,
            "-d",
            spec.database,
        ]

        while True:
            result = run_cmd(cmd, check=False, capture_output=True)
            if result.returncode == 0:
                self.console.print(f"[green]Database '{spec.role}' is ready.[/green]")
                return
            if self.clock() >= deadline:
                raise self._startup_timeout(instance, timeout_seconds)
            self.sleep(READINESS_POLL_SECONDS)

    def stop(self, instance: RunningDatabaseInstance):
        if instance.container is None:
            return
        pending = self._pending_starts.pop(instance.container_name, None)
        if pending is not None:
            # A start abandoned at the deadline may still create the container.
            self.logger.info("Waiting for abandoned start of %s", instance.container_name)
            wait([pending])
        self.logger.info("Stopping container %s", instance.container_name)
        instance.container.stop()

    def _startup_timeout(self, instance: RunningDatabaseInstance, timeout_seconds: float):
        spec = instance.spec
        message = actionable_error(
            "startup_timeout",
            role=spec.role,
            timeout=f"{timeout_seconds:g}",
            image=spec.image,
        )
        return StartupTimeout(spec.role, timeout_seconds, message)
