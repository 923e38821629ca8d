"""unittest integration for seeded database environments."""

import unittest
from typing import ClassVar, Optional, Sequence

from .environment import IntegrationTestEnvironment
from .models import DatabaseInstanceSpec, EnvironmentSettings, PropertyBindings


class IntegrationTestCase(unittest.TestCase):
    """Abstract base class that seeds fresh databases once per test class.

    Subclasses declare ``database_specs`` and override ``configure_properties``
    to hand the published bindings to whatever builds the application under
    test. Containers are released after the last test of the class, including
    when ``setUpClass`` itself fails.

    Example::

        class OrdersTest(IntegrationTestCase):
            database_specs = (
                DatabaseInstanceSpec(role="primary", backup="first-db.backup"),
                DatabaseInstanceSpec(role="secondary", backup="second-db.backup"),
            )

            @classmethod
            def configure_properties(cls, bindings):
                cls.app = build_app(bindings)
    """

    database_specs: ClassVar[Sequence[DatabaseInstanceSpec]] = ()
    environment_settings: ClassVar[Optional[EnvironmentSettings]] = None
    environment: ClassVar[Optional[IntegrationTestEnvironment]] = None
    bindings: ClassVar[Optional[PropertyBindings]] = None

    @classmethod
    def create_environment(cls) -> IntegrationTestEnvironment:
        return IntegrationTestEnvironment(settings=cls.environment_settings)

    @classmethod
    def configure_properties(cls, bindings: PropertyBindings):
        """Hook invoked with the bindings before any test of the class runs."""

    @classmethod
    def setUpClass(cls):
        super().setUpClass()
        if not cls.database_specs:
            return

        environment = cls.create_environment()
        cls.environment = environment
        cls.addClassCleanup(cls._release_environment, environment)

        cls.bindings = environment.setup(cls.database_specs)
        cls.configure_properties(cls.bindings)

    @classmethod
    def tearDownClass(cls):
        if cls.environment is not None:
            cls._release_environment(cls.environment)
        super().tearDownClass()

    @classmethod
    def _release_environment(cls, environment: IntegrationTestEnvironment):
        environment.teardown()
        if cls.environment is environment:
            cls.environment = None
            cls.bindings = None
