"""Instance lifecycle tracking with optional JSON snapshots."""

import json
import os
import tempfile
import threading
from datetime import datetime, timezone
from typing import Any, Dict, Iterable, Optional

from pgseed.errors import InvalidStateTransition, SeedError
from pgseed.models import InstanceState, RunningDatabaseInstance


class StateService:
    """Enforces the per-instance state machine and records its history."""

    SCHEMA_VERSION = 1

    TRANSITIONS = {
        InstanceState.UNSTARTED: {
            InstanceState.STARTING,
            InstanceState.FAILED,
            InstanceState.STOPPED,
        },
        InstanceState.STARTING: {InstanceState.READY, InstanceState.FAILED},
        InstanceState.READY: {
            InstanceState.RESTORING,
            InstanceState.FAILED,
            InstanceState.STOPPED,
        },
        InstanceState.RESTORING: {InstanceState.RESTORED, InstanceState.FAILED},
        InstanceState.RESTORED: {InstanceState.STOPPED},
        InstanceState.FAILED: {InstanceState.STOPPED},
        InstanceState.STOPPED: set(),
    }

    def __init__(self, logger, state_file: Optional[str] = None):
        self.logger = logger
        self.state_file = state_file
        self.state: Dict[str, Any] = {}
        self._lock = threading.RLock()

    def start_run(self, run_id: str, instances: Iterable[RunningDatabaseInstance]):
        self.state = {
            "schema_version": self.SCHEMA_VERSION,
            "run_id": run_id,
            "created_at": self._now(),
            "updated_at": self._now(),
            "instances": {},
        }
        for instance in instances:
            self.state["instances"][instance.role] = {
                "container_name": instance.container_name,
                "backup": instance.spec.backup,
                "image": instance.spec.image,
                "state": instance.state.value,
                "history": [{"state": instance.state.value, "at": self._now(), "error": None}],
            }
        self.save()

    def transition(
        self,
        instance: RunningDatabaseInstance,
        new_state: InstanceState,
        error: Optional[str] = None,
    ):
        with self._lock:
            self._transition(instance, new_state, error)

    def _transition(
        self,
        instance: RunningDatabaseInstance,
        new_state: InstanceState,
        error: Optional[str],
    ):
        allowed = self.TRANSITIONS[instance.state]
        if new_state not in allowed:
            raise InvalidStateTransition(
                f"Instance '{instance.role}' cannot move from "
                f"{instance.state.value} to {new_state.value}."
            )

        self.logger.debug(
            "Instance %s: %s -> %s", instance.role, instance.state.value, new_state.value
        )
        instance.state = new_state

        record = self.state.get("instances", {}).get(instance.role)
        if record is not None:
            record["state"] = new_state.value
            record["history"].append({"state": new_state.value, "at": self._now(), "error": error})
            if error:
                record["last_error"] = error
        self.save()

    def snapshot(self) -> Dict[str, InstanceState]:
        return {
            role: InstanceState(record["state"])
            for role, record in self.state.get("instances", {}).items()
        }

    def save(self):
        if not self.state_file or not self.state:
            return

        os.makedirs(os.path.dirname(self.state_file) or ".", exist_ok=True)
        self.state["updated_at"] = self._now()

        fd, temp_path = tempfile.mkstemp(
            prefix="pgseed-state-",
            suffix=".json",
            dir=os.path.dirname(self.state_file) or ".",
        )
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as file_obj:
                json.dump(self.state, file_obj, indent=2, sort_keys=True)
                file_obj.write("\n")
            os.replace(temp_path, self.state_file)
        except OSError as exc:
            raise SeedError(f"Could not write state file '{self.state_file}': {exc}") from exc
        finally:
            if os.path.exists(temp_path):
                try:
                    os.remove(temp_path)
                except OSError:
                    pass

    @staticmethod
    def _now() -> str:
        return datetime.now(timezone.utc).isoformat()
