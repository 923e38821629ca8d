"""Property bindings derived from running instances."""

from typing import Dict, Mapping, Sequence

from pgseed.errors import SeedError
from pgseed.models import InstanceState, PropertyBindings, RunningDatabaseInstance


class BindingsBuilder:
    """Maps restored instances to role-qualified property keys."""

    def __init__(self, prefix: str, extra_properties: Mapping[str, str]):
        self.prefix = prefix
        self.extra_properties = dict(extra_properties)

    def key(self, role: str, name: str) -> str:
        return f"{self.prefix}.{role}.{name}"

    def build(self, instances: Sequence[RunningDatabaseInstance]) -> PropertyBindings:
        values: Dict[str, str] = {}
        for instance in instances:
            if instance.state != InstanceState.RESTORED:
                raise SeedError(
                    f"Cannot publish bindings for '{instance.role}' in state {instance.state.value}."
                )
            if not instance.url:
                raise SeedError(f"Instance '{instance.role}' has no resolved connection URL.")

            values[self.key(instance.role, "url")] = instance.url
            values[self.key(instance.role, "username")] = instance.spec.username
            values[self.key(instance.role, "password")] = instance.spec.password

        for key, value in self.extra_properties.items():
            values[key] = str(value)

        return PropertyBindings(values, prefix=self.prefix)
