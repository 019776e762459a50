from __future__ import annotations

from enum import Enum

from .db import Journal
from .docker_ops import DockerRuntime
from .errors import ResourceGone
from .models import ContainerSpec


class ContainerState(str, Enum):
    ABSENT = "absent"
    STOPPED = "stopped"
    RUNNING = "running"
    RECREATING = "recreating"


class ReconcileAction(str, Enum):
    CREATED = "created"
    STARTED = "started"
    ALREADY_RUNNING = "already_running"
    RECREATED = "recreated"


def ensure_network(runtime: DockerRuntime, name: str, journal: Journal) -> bool:
    """Create the shared bridge network unless it already exists.

    Returns True when a network was created.
    """
    if runtime.network_exists(name):
        journal.log_event("INFO", f"Network already exists: {name}")
        return False
    runtime.create_network(name)
    journal.log_event("INFO", f"Created network: {name}")
    return True


class Reconciler:
    """Drives each declared container to RUNNING, tolerating repeated runs.

    A stopped container is started in place; its configuration is only
    replaced when recreation is requested explicitly, because the CI
    workspace lives in that container's volumes.
    """

    def __init__(self, runtime: DockerRuntime, journal: Journal):
        self.runtime = runtime
        self.journal = journal

    def observe(self, name: str) -> ContainerState:
        if not self.runtime.container_exists(name):
            return ContainerState.ABSENT
        if self.runtime.container_is_running(name):
            return ContainerState.RUNNING
        return ContainerState.STOPPED

    def reconcile(self, spec: ContainerSpec, recreate: bool = False) -> ReconcileAction:
        state = self.observe(spec.name)

        if state is ContainerState.ABSENT:
            self.journal.log_event("INFO", f"Creating {spec.name}...", service_name=spec.name)
            self.runtime.run_container(spec)
            return ReconcileAction.CREATED

        if recreate:
            self.journal.log_event(
                "INFO",
                f"Recreating {spec.name} ({state.value} -> {ContainerState.RECREATING.value})...",
                service_name=spec.name,
            )
            self._force_remove(spec.name)
            self.runtime.run_container(spec)
            return ReconcileAction.RECREATED

        if state is ContainerState.RUNNING:
            self.journal.log_event("INFO", f"{spec.name} already running.", service_name=spec.name)
            return ReconcileAction.ALREADY_RUNNING

        self.journal.log_event("INFO", f"Starting existing {spec.name}...", service_name=spec.name)
        self.runtime.start_container(spec.name)
        return ReconcileAction.STARTED

    def _force_remove(self, name: str) -> None:
        # Named volumes are not touched; they are reattached by the next create.
        try:
            self.runtime.remove_container(name, force=True)
        except ResourceGone:
            self.journal.log_event("INFO", f"{name} was already gone before removal.", service_name=name)
