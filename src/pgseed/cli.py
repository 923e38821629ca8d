import json
import logging
import os
import threading

import click
from rich.logging import RichHandler

from .constants import DEFAULT_CONFIG_FILE
from .environment import IntegrationTestEnvironment, console
from .errors import SeedError
from .services.config_loader import ConfigLoader


logging.basicConfig(
    level="INFO",
    format="%(message)s",
    datefmt="[%X]",
    handlers=[RichHandler(console=console, rich_tracebacks=True, show_level=False, show_path=False)],
)


def _resolve_option(cli_value, config, key, default=None):
    if cli_value is not None:
        return cli_value
    if key in config:
        return config[key]
    return default


def _configure_logging(verbose: bool, log_file):
    logger = logging.getLogger("pgseed")
    if verbose:
        logging.getLogger().setLevel(logging.DEBUG)
        logger.setLevel(logging.DEBUG)
    else:
        logger.setLevel(logging.INFO)

    if log_file:
        file_handler = logging.FileHandler(log_file)
        file_handler.setLevel(logging.DEBUG if verbose else logging.INFO)
        file_handler.setFormatter(logging.Formatter("%(asctime)s [%(levelname)s] %(message)s"))
        logger.addHandler(file_handler)


def _load_definition(config_path, verbose, log_file, overrides=None):
    config_loader = ConfigLoader()
    resolved_config = config_path
    if resolved_config is None:
        default_config_path = os.path.join(os.getcwd(), DEFAULT_CONFIG_FILE)
        if os.path.exists(default_config_path):
            resolved_config = default_config_path

    try:
        config_values = config_loader.load(resolved_config)
        specs = config_loader.build_specs(config_values)
        settings = config_loader.build_settings(config_values, overrides)
    except SeedError as exc:
        raise click.ClickException(str(exc)) from exc

    if not specs:
        raise click.ClickException(
            f"No instances defined. Add an `instances` list to {resolved_config or DEFAULT_CONFIG_FILE}."
        )

    verbose = bool(_resolve_option(verbose, config_values, "verbose", default=False))
    log_file = _resolve_option(log_file, config_values, "log_file")
    _configure_logging(verbose, log_file)
    return specs, settings


def _wait_for_interrupt():
    try:
        threading.Event().wait()
    except KeyboardInterrupt:
        console.print("[yellow]Stopping environment...[/yellow]")


def format_bindings(bindings, output_format: str) -> str:
    if output_format == "json":
        return json.dumps(dict(bindings), indent=2, sort_keys=True)
    if output_format == "env":
        return "\n".join(
            f"export {key}={json.dumps(value)}" for key, value in bindings.to_environ().items()
        )
    return "\n".join(f"{key}={value}" for key, value in bindings.items())


@click.group()
@click.version_option(package_name="pgseed")
def main():
    """Provision seeded, throw-away PostgreSQL containers."""


@main.command()
@click.option(
    "--config",
    required=False,
    type=click.Path(),
    help=f"Path to a YAML environment file. Defaults to {DEFAULT_CONFIG_FILE} if present.",
)
@click.option("--verbose", is_flag=True, default=None, help="Enable verbose logging")
@click.option("--log-file", type=click.Path(), help="Path to log file")
def check(config, verbose, log_file):
    """Validate the environment file and locate every backup without starting containers."""
    specs, settings = _load_definition(config, verbose, log_file)
    environment = IntegrationTestEnvironment(settings=settings)

    try:
        environment.validation_service.validate_specs(specs)
        for spec in specs:
            location = environment.backup_locator.check(spec.backup)
            console.print(f"[green]{spec.role}[/green]: {spec.image} <- {location}")
    except SeedError as exc:
        raise click.ClickException(str(exc)) from exc

    console.print(f"[bold green]{len(specs)} instance(s) look valid.[/bold green]")


@main.command()
@click.option(
    "--config",
    required=False,
    type=click.Path(),
    help=f"Path to a YAML environment file. Defaults to {DEFAULT_CONFIG_FILE} if present.",
)
@click.option(
    "--format",
    "output_format",
    type=click.Choice(["properties", "env", "json"]),
    default="properties",
    show_default=True,
    help="Output format for the published bindings.",
)
@click.option(
    "--state-file",
    required=False,
    type=click.Path(),
    help="Write per-instance lifecycle state to this JSON file.",
)
@click.option(
    "--startup-timeout",
    type=float,
    default=None,
    help="Seconds each instance may take to accept connections (default: 120).",
)
@click.option(
    "--sequential",
    is_flag=True,
    default=None,
    help="Start instances one after another instead of concurrently.",
)
@click.option("--verbose", is_flag=True, default=None, help="Enable verbose logging")
@click.option("--log-file", type=click.Path(), help="Path to log file")
def up(config, output_format, state_file, startup_timeout, sequential, verbose, log_file):
    """Start and seed the environment, print its bindings, and hold until interrupted."""
    overrides = {
        "startup_timeout_seconds": startup_timeout,
        "parallel_start": False if sequential else None,
    }
    specs, settings = _load_definition(config, verbose, log_file, overrides)

    with IntegrationTestEnvironment(settings=settings, state_file=state_file) as environment:
        try:
            bindings = environment.setup(specs)
        except SeedError as exc:
            raise SystemExit(1) from exc

        click.echo(format_bindings(bindings, output_format))
        console.print("[dim]Press Ctrl+C to stop and remove the containers.[/dim]")
        _wait_for_interrupt()


if __name__ == "__main__":
    main()
