from __future__ import annotations

import re
from collections.abc import Mapping
from types import MappingProxyType

from pydantic import BaseModel, ConfigDict, Field, field_validator

CONTAINER_NAME_RE = re.compile(r"^[a-zA-Z0-9][a-zA-Z0-9_.\-]{0,62}$")
MEMORY_PATTERN = r"^[0-9]+[bkmgBKMG]?$"


class ResourceLimits(BaseModel):
    model_config = ConfigDict(frozen=True)

    memory: str = Field(..., pattern=MEMORY_PATTERN, description="Hard memory limit, e.g. 6g")
    memory_swap: str = Field(..., pattern=MEMORY_PATTERN, description="Memory + swap limit; equal to memory disables swap")
    cpus: float = Field(..., gt=0, le=256, description="CPU count, translated to nano_cpus")

    @property
    def nano_cpus(self) -> int:
        return int(self.cpus * 1e9)


class ContainerSpec(BaseModel):
    """Everything needed to materialize one container with a single create call."""

    model_config = ConfigDict(frozen=True)

    name: str
    image: str = Field(..., min_length=1, description="Docker image (name:tag)")
    network: str = Field(..., min_length=1)
    published_ports: frozenset[tuple[int, int]] = Field(
        default_factory=frozenset, description="(host_port, container_port) pairs"
    )
    mounts: tuple[tuple[str, str], ...] = Field(
        default=(), description="Ordered (volume name or host path, container path) pairs"
    )
    env: Mapping[str, str] = Field(default_factory=dict, validate_default=True)
    limits: ResourceLimits
    run_as_root: bool = False
    restart_policy: str = "unless-stopped"
    labels: Mapping[str, str] = Field(default_factory=dict, validate_default=True)

    @field_validator("name")
    @classmethod
    def _check_name(cls, v: str) -> str:
        if not CONTAINER_NAME_RE.match(v):
            raise ValueError("Invalid container name. Use letters/numbers and _.- (max 63 chars).")
        return v

    @field_validator("published_ports")
    @classmethod
    def _check_ports(cls, v: frozenset[tuple[int, int]]) -> frozenset[tuple[int, int]]:
        for host_port, container_port in v:
            for p in (host_port, container_port):
                if not 1 <= p <= 65535:
                    raise ValueError(f"Port out of range: {p}")
        return v

    @field_validator("mounts")
    @classmethod
    def _check_mounts(cls, v: tuple[tuple[str, str], ...]) -> tuple[tuple[str, str], ...]:
        for source, target in v:
            if not source:
                raise ValueError("Mount source must not be empty.")
            if not target.startswith("/"):
                raise ValueError(f"Mount target must be an absolute path: {target!r}")
        return v

    @field_validator("env", "labels")
    @classmethod
    def _freeze_mapping(cls, v: Mapping[str, str]) -> Mapping[str, str]:
        return MappingProxyType(dict(v))

    def port_bindings(self) -> dict[str, int]:
        """Docker SDK `ports=` mapping: {"8080/tcp": 8080}."""
        return {f"{container_port}/tcp": host_port for host_port, container_port in sorted(self.published_ports)}

    def volume_bindings(self) -> dict[str, dict[str, str]]:
        """Docker SDK `volumes=` mapping, preserving mount order."""
        return {source: {"bind": target, "mode": "rw"} for source, target in self.mounts}

    def named_volumes(self) -> list[str]:
        # Anything that is not a host path is a runtime-managed named volume.
        return [source for source, _ in self.mounts if not source.startswith("/")]
