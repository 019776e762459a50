from __future__ import annotations

from dataclasses import dataclass

import docker
from docker.errors import DockerException, NotFound

from .errors import ResourceGone, RuntimeCallError
from .models import ContainerSpec


@dataclass(frozen=True)
class ExecResult:
    exit_code: int
    output: str

    @property
    def ok(self) -> bool:
        return self.exit_code == 0


class DockerRuntime:
    """Typed wrapper around the Docker SDK.

    Absence of an object is a normal answer (False / ResourceGone); any other
    SDK failure is raised as RuntimeCallError so the run stops at the first
    unexpected error.
    """

    def __init__(self, client: docker.DockerClient) -> None:
        self.client = client

    @classmethod
    def from_env(cls) -> "DockerRuntime":
        try:
            client = docker.from_env()
            client.ping()
        except DockerException as e:
            raise RuntimeCallError(
                f"Docker is not available ({e}). Start Docker Desktop / docker daemon and try again."
            ) from e
        return cls(client)

    # Networks

    def network_exists(self, name: str) -> bool:
        try:
            self.client.networks.get(name)
            return True
        except NotFound:
            return False
        except DockerException as e:
            raise RuntimeCallError(f"Inspecting network {name} failed: {e}") from e

    def create_network(self, name: str) -> None:
        try:
            self.client.networks.create(name, driver="bridge")
        except DockerException as e:
            raise RuntimeCallError(f"Creating network {name} failed: {e}") from e

    # Containers

    def _get(self, name: str):
        try:
            container = self.client.containers.get(name)
        except NotFound as e:
            raise ResourceGone(f"Container {name} does not exist") from e
        except DockerException as e:
            raise RuntimeCallError(f"Inspecting container {name} failed: {e}") from e
        # containers.get also resolves ID prefixes; only an exact name counts.
        if container.name != name:
            raise ResourceGone(f"Container {name} does not exist")
        return container

    def container_exists(self, name: str) -> bool:
        try:
            self._get(name)
            return True
        except ResourceGone:
            return False

    def container_is_running(self, name: str) -> bool:
        try:
            container = self._get(name)
        except ResourceGone:
            return False
        return container.status == "running"

    def run_container(self, spec: ContainerSpec) -> str:
        """Create and start a container from `spec` in one call. Returns its id."""
        try:
            container = self.client.containers.run(
                spec.image,
                name=spec.name,
                detach=True,
                network=spec.network,
                ports=spec.port_bindings() or None,
                volumes=spec.volume_bindings() or None,
                environment=dict(spec.env),
                mem_limit=spec.limits.memory,
                memswap_limit=spec.limits.memory_swap,
                nano_cpus=spec.limits.nano_cpus,
                user="root" if spec.run_as_root else None,
                restart_policy={"Name": spec.restart_policy},
                labels=dict(spec.labels),
            )
        except DockerException as e:
            raise RuntimeCallError(f"Creating container {spec.name} from {spec.image} failed: {e}") from e
        return container.id

    def start_container(self, name: str) -> None:
        container = self._get(name)
        try:
            container.start()
        except DockerException as e:
            raise RuntimeCallError(f"Starting container {name} failed: {e}") from e

    def remove_container(self, name: str, force: bool = True) -> None:
        container = self._get(name)
        try:
            container.remove(force=force)
        except NotFound as e:
            raise ResourceGone(f"Container {name} disappeared during removal") from e
        except DockerException as e:
            raise RuntimeCallError(f"Removing container {name} failed: {e}") from e

    def exec_run(self, name: str, cmd: list[str], user: str | None = None) -> ExecResult:
        container = self._get(name)
        try:
            res = container.exec_run(cmd, user=user or "")
        except DockerException as e:
            raise RuntimeCallError(f"Exec in {name} failed: {e}") from e
        output = res.output.decode("utf-8", errors="replace") if res.output else ""
        return ExecResult(exit_code=int(res.exit_code or 0), output=output)

    def read_file(self, name: str, path: str) -> str | None:
        """Contents of a file inside the container, or None if it cannot be read."""
        res = self.exec_run(name, ["cat", path])
        if not res.ok:
            return None
        return res.output.strip()

    # Images

    def pull_image(self, image: str) -> None:
        try:
            self.client.images.pull(image)
        except DockerException as e:
            raise RuntimeCallError(f"Pulling {image} failed: {e}") from e
