import logging
import subprocess
import uuid
from concurrent.futures import ThreadPoolExecutor
from typing import Dict, List, Optional, Sequence

import requests
from rich.console import Console

from .errors import SeedError
from .models import (
    DatabaseInstanceSpec,
    EnvironmentSettings,
    InstanceState,
    PropertyBindings,
    RestoreResult,
    RunningDatabaseInstance,
    TeardownFailure,
)
from .services.backup import BackupLocator
from .services.bindings import BindingsBuilder
from .services.command_runner import CommandRunner
from .services.container_runtime import ContainerRuntimeService
from .services.restore import RestoreService
from .services.state import StateService
from .services.validation import ValidationService

console = Console(stderr=True)
logger = logging.getLogger("pgseed")


class IntegrationTestEnvironment:
    """Provisions seeded PostgreSQL instances for one test class and releases them.

    An environment is single-use: ``setup`` may be called once, and ``teardown``
    must follow it whether setup succeeded or not. Instances are never shared
    with another environment.
    """

    def __init__(
        self,
        settings: Optional[EnvironmentSettings] = None,
        state_file: Optional[str] = None,
        runtime_service: Optional[ContainerRuntimeService] = None,
        command_runner: Optional[CommandRunner] = None,
        backup_locator: Optional[BackupLocator] = None,
    ):
        self.settings = settings or EnvironmentSettings()
        self.run_id: Optional[str] = None

        self.validation_service = ValidationService(
            allow_insecure_http=self.settings.allow_insecure_http,
            requests_module=requests,
        )
        self.command_runner = command_runner or CommandRunner(logger=logger)
        self.backup_locator = backup_locator or BackupLocator(
            validation_service=self.validation_service,
            logger=logger,
            console=console,
            requests_module=requests,
            resource_roots=self.settings.resource_roots,
            cache_dir=self.settings.cache_dir,
            download_timeout=self.settings.download_timeout_seconds,
        )
        self.runtime_service = runtime_service or ContainerRuntimeService(
            logger=logger, console=console
        )
        self.restore_service = RestoreService(logger=logger, console=console)
        self.state_service = StateService(logger=logger, state_file=state_file)
        self.bindings_builder = BindingsBuilder(
            prefix=self.settings.property_prefix,
            extra_properties=self.settings.extra_properties,
        )

        self.restore_results: Dict[str, RestoreResult] = {}
        self.teardown_failures: List[TeardownFailure] = []
        self._instances: List[RunningDatabaseInstance] = []
        self._bindings: Optional[PropertyBindings] = None
        self._used = False

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        self.teardown()
        return False

    def _run_cmd(self, cmd: List[str], **kwargs) -> subprocess.CompletedProcess:
        return self.command_runner.run(cmd, **kwargs)

    @property
    def bindings(self) -> PropertyBindings:
        if self._bindings is None:
            raise SeedError("No bindings published. Call setup() and let it complete first.")
        return self._bindings

    def instance(self, role: str) -> RunningDatabaseInstance:
        for instance in self._instances:
            if instance.role == role and instance.state == InstanceState.RESTORED:
                return instance
        raise SeedError(f"No restored database instance for role '{role}'.")

    def states(self) -> Dict[str, InstanceState]:
        return {instance.role: instance.state for instance in self._instances}

    def setup(self, specs: Sequence[DatabaseInstanceSpec]) -> PropertyBindings:
        if self._used:
            raise SeedError("Environment already used. Create a new environment per test class.")
        self._used = True

        specs = list(specs)
        self.validation_service.validate_specs(specs)

        self.run_id = uuid.uuid4().hex[:10]
        self._instances = [
            RunningDatabaseInstance(
                spec=spec,
                container_name=self.runtime_service.container_name(self.run_id, spec.role),
            )
            for spec in specs
        ]
        self.state_service.start_run(self.run_id, self._instances)
        logger.info("Setting up environment %s with %s instance(s)", self.run_id, len(specs))

        try:
            backup_paths = {
                spec.role: self.backup_locator.resolve(spec.backup, spec.backup_sha256)
                for spec in specs
            }
            self._start_all()
            for instance in self._instances:
                self._restore(instance, backup_paths[instance.role])
            bindings = self.bindings_builder.build(self._instances)
        except SeedError as exc:
            console.print(f"[bold red]Error:[/bold red] {exc}")
            logger.error(str(exc))
            raise

        self._bindings = bindings
        console.print(f"[bold green]Environment {self.run_id} is ready.[/bold green]")
        return bindings

    def _start_all(self):
        if not self.settings.parallel_start or len(self._instances) == 1:
            for instance in self._instances:
                self._start(instance)
            return

        with ThreadPoolExecutor(
            max_workers=len(self._instances), thread_name_prefix="pgseed-start"
        ) as executor:
            futures = [executor.submit(self._start, instance) for instance in self._instances]

        # Every start has finished at this point; report the first failure in declaration order.
        for future in futures:
            future.result()

    def _start(self, instance: RunningDatabaseInstance):
        self.state_service.transition(instance, InstanceState.STARTING)
        try:
            self.runtime_service.create_container(instance)
            self.runtime_service.start(
                instance,
                timeout_seconds=self.settings.startup_timeout_seconds,
                run_cmd=self._run_cmd,
            )
        except Exception as exc:
            self.state_service.transition(instance, InstanceState.FAILED, error=str(exc))
            raise
        self.state_service.transition(instance, InstanceState.READY)

    def _restore(self, instance: RunningDatabaseInstance, backup_path: str):
        self.state_service.transition(instance, InstanceState.RESTORING)
        try:
            result = self.restore_service.restore(
                instance,
                backup_path,
                run_cmd=self._run_cmd,
                timeout=self.settings.restore_timeout_seconds,
            )
        except Exception as exc:
            self.state_service.transition(instance, InstanceState.FAILED, error=str(exc))
            raise

        self.restore_results[instance.role] = result
        if not result.success:
            self.state_service.transition(
                instance,
                InstanceState.FAILED,
                error=f"restore exited with {result.returncode}",
            )
            self.restore_service.raise_for_result(instance, result)
        self.state_service.transition(instance, InstanceState.RESTORED)

    def teardown(self):
        self._bindings = None
        for instance in reversed(self._instances):
            if instance.state == InstanceState.STOPPED:
                continue
            try:
                self._stop(instance)
            except Exception as exc:
                failure = TeardownFailure(
                    role=instance.role,
                    container_name=instance.container_name,
                    error=str(exc),
                )
                self.teardown_failures.append(failure)
                logger.warning(
                    "Teardown failure for %s (%s): %s",
                    failure.role,
                    failure.container_name,
                    failure.error,
                )
                instance.state = InstanceState.STOPPED

    def _stop(self, instance: RunningDatabaseInstance):
        if instance.state in (InstanceState.STARTING, InstanceState.RESTORING):
            self.state_service.transition(
                instance, InstanceState.FAILED, error="interrupted before completion"
            )
        try:
            self.runtime_service.stop(instance)
        finally:
            self.state_service.transition(instance, InstanceState.STOPPED)
