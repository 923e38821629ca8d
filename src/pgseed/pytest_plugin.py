"""pytest plugin exposing seeded database environments as class-scoped fixtures."""

import pytest

from .environment import IntegrationTestEnvironment

MARKER = "seed_databases"


def pytest_configure(config):
    config.addinivalue_line(
        "markers",
        f"{MARKER}(*specs, settings=None): seed fresh PostgreSQL instances for the test class",
    )


def _collect_specs(request):
    marker = request.node.get_closest_marker(MARKER)
    if marker is not None and marker.args:
        return list(marker.args), marker.kwargs.get("settings")

    cls = request.cls
    if cls is not None and getattr(cls, "database_specs", None):
        return list(cls.database_specs), getattr(cls, "environment_settings", None)

    return [], None


@pytest.fixture(scope="class")
def seed_environment(request):
    """A set-up environment bound to the requesting test class."""
    specs, settings = _collect_specs(request)
    if not specs:
        pytest.fail(
            f"No database specs: use @pytest.mark.{MARKER}(...) or define `database_specs`."
        )

    environment = IntegrationTestEnvironment(settings=settings)
    try:
        bindings = environment.setup(specs)
        hook = getattr(request.cls, "configure_properties", None)
        if hook is not None:
            hook(bindings)
        yield environment
    finally:
        environment.teardown()


@pytest.fixture(scope="class")
def seeded_databases(seed_environment):
    """Property bindings of the class's seeded databases."""
    return seed_environment.bindings
