from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Mapping

MEMINFO_PATH = "/proc/meminfo"


def _env_bool(env: Mapping[str, str], name: str, default: bool = False) -> bool:
    raw = env.get(name)
    if raw is None:
        return default
    return raw.strip().lower() in {"1", "true", "yes", "y", "on"}


def _env_int(env: Mapping[str, str], name: str, default: int) -> int:
    raw = env.get(name)
    if raw is None:
        return default
    try:
        return int(raw)
    except ValueError:
        return default


def _env_float(env: Mapping[str, str], name: str, default: float) -> float:
    raw = env.get(name)
    if raw is None:
        return default
    try:
        return float(raw)
    except ValueError:
        return default


def _env_str(env: Mapping[str, str], name: str, default: str) -> str:
    raw = env.get(name)
    if raw is None or not raw.strip():
        return default
    return raw.strip()


@dataclass(frozen=True)
class MemoryTier:
    name: str
    jenkins_memory: str
    jenkins_java_opts: str
    sonar_memory: str
    sonar_es_java_opts: str
    sonar_java_opts: str
    postgres_memory: str


# Thresholds are total host memory in whole GB.
HIGH_TIER = MemoryTier(
    name="high",
    jenkins_memory="8g",
    jenkins_java_opts="-Xms2g -Xmx6g -XX:MaxMetaspaceSize=512m",
    sonar_memory="6g",
    sonar_es_java_opts="-Xms2g -Xmx4g",
    sonar_java_opts="-Xms1g -Xmx2g -XX:MaxMetaspaceSize=512m",
    postgres_memory="2g",
)
MEDIUM_TIER = MemoryTier(
    name="medium",
    jenkins_memory="6g",
    jenkins_java_opts="-Xms1g -Xmx4g -XX:MaxMetaspaceSize=512m",
    sonar_memory="4g",
    sonar_es_java_opts="-Xms1g -Xmx2g",
    sonar_java_opts="-Xms512m -Xmx1g -XX:MaxMetaspaceSize=512m",
    postgres_memory="1g",
)
LOW_TIER = MemoryTier(
    name="low",
    jenkins_memory="3g",
    jenkins_java_opts="-Xms512m -Xmx2g -XX:MaxMetaspaceSize=256m",
    sonar_memory="2g",
    sonar_es_java_opts="-Xms512m -Xmx1g",
    sonar_java_opts="-Xms256m -Xmx512m -XX:MaxMetaspaceSize=256m",
    postgres_memory="512m",
)


def tier_for_memory(total_gb: int | None) -> MemoryTier:
    """Pick resource defaults for the host.

    Unknown memory (non-Linux hosts, unreadable meminfo) falls back to the
    medium tier, which matches the defaults a t3.xlarge needs.
    """
    if total_gb is None:
        return MEDIUM_TIER
    if total_gb >= 30:
        return HIGH_TIER
    if total_gb >= 15:
        return MEDIUM_TIER
    return LOW_TIER


def detect_total_memory_gb(path: str = MEMINFO_PATH) -> int | None:
    try:
        with open(path, encoding="utf-8") as fh:
            for line in fh:
                if line.startswith("MemTotal:"):
                    kb = int(line.split()[1])
                    return kb // 1024 // 1024
    except (OSError, ValueError, IndexError):
        return None
    return None


@dataclass(frozen=True)
class Settings:
    # Behaviour flags
    recreate: bool = False
    pull: bool = False

    # Core
    network: str = "devops-network"
    db_path: str = "devstack.db"
    memory_tier: str = MEDIUM_TIER.name
    total_memory_gb: int | None = None

    # Ports
    jenkins_http_port: int = 8080
    jenkins_agent_port: int = 50000
    sonar_http_port: int = 9000

    # Database credentials (internal-only, reachable over the shared network)
    postgres_user: str = "sonar"
    postgres_password: str = "sonar"
    postgres_db: str = "sonarqube"

    # Resource limits
    jenkins_memory: str = MEDIUM_TIER.jenkins_memory
    jenkins_memory_swap: str = MEDIUM_TIER.jenkins_memory
    jenkins_cpus: float = 2.0
    jenkins_java_opts: str = MEDIUM_TIER.jenkins_java_opts

    sonar_memory: str = MEDIUM_TIER.sonar_memory
    sonar_memory_swap: str = MEDIUM_TIER.sonar_memory
    sonar_cpus: float = 2.0
    sonar_es_java_opts: str = MEDIUM_TIER.sonar_es_java_opts
    sonar_java_opts: str = MEDIUM_TIER.sonar_java_opts

    postgres_memory: str = MEDIUM_TIER.postgres_memory
    postgres_memory_swap: str = MEDIUM_TIER.postgres_memory
    postgres_cpus: float = 1.0

    # Readiness budgets (seconds)
    postgres_wait_s: int = 60
    postgres_interval_s: int = 2
    jenkins_wait_s: int = 180
    jenkins_bootstrap_wait_s: int = 120
    jenkins_bootstrap_interval_s: int = 2
    sonar_wait_s: int = 300
    http_interval_s: int = 5


def load_settings(env: Mapping[str, str] | None = None, total_memory_gb: int | None = None) -> Settings:
    """Build the run configuration once, at process start.

    The host memory tier provides defaults; explicit environment overrides
    always win over the tier.
    """
    if env is None:
        env = os.environ
    if total_memory_gb is None:
        total_memory_gb = detect_total_memory_gb()
    tier = tier_for_memory(total_memory_gb)

    jenkins_memory = _env_str(env, "JENKINS_MEMORY", tier.jenkins_memory)
    sonar_memory = _env_str(env, "SONAR_MEMORY", tier.sonar_memory)
    postgres_memory = _env_str(env, "POSTGRES_MEMORY", tier.postgres_memory)

    return Settings(
        recreate=_env_bool(env, "RECREATE", False),
        pull=_env_bool(env, "PULL", False),
        network=_env_str(env, "DEVSTACK_NETWORK", "devops-network"),
        db_path=_env_str(env, "DEVSTACK_DB_PATH", "devstack.db"),
        memory_tier=tier.name,
        total_memory_gb=total_memory_gb,
        jenkins_memory=jenkins_memory,
        # Swap defaults to the memory limit, which disables swapping.
        jenkins_memory_swap=_env_str(env, "JENKINS_MEMORY_SWAP", jenkins_memory),
        jenkins_cpus=_env_float(env, "JENKINS_CPUS", 2.0),
        jenkins_java_opts=_env_str(env, "JENKINS_JAVA_OPTS", tier.jenkins_java_opts),
        sonar_memory=sonar_memory,
        sonar_memory_swap=_env_str(env, "SONAR_MEMORY_SWAP", sonar_memory),
        sonar_cpus=_env_float(env, "SONAR_CPUS", 2.0),
        sonar_es_java_opts=_env_str(env, "SONAR_ES_JAVA_OPTS", tier.sonar_es_java_opts),
        sonar_java_opts=_env_str(env, "SONAR_JAVA_OPTS", tier.sonar_java_opts),
        postgres_memory=postgres_memory,
        postgres_memory_swap=_env_str(env, "POSTGRES_MEMORY_SWAP", postgres_memory),
        postgres_cpus=_env_float(env, "POSTGRES_CPUS", 1.0),
        postgres_wait_s=_env_int(env, "DEVSTACK_POSTGRES_WAIT_S", 60),
        jenkins_wait_s=_env_int(env, "DEVSTACK_JENKINS_WAIT_S", 180),
        jenkins_bootstrap_wait_s=_env_int(env, "DEVSTACK_JENKINS_BOOTSTRAP_WAIT_S", 120),
        sonar_wait_s=_env_int(env, "DEVSTACK_SONAR_WAIT_S", 300),
    )
