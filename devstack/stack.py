"""The fixed Jenkins + SonarQube + PostgreSQL stack, rendered from Settings."""
from __future__ import annotations

from dataclasses import dataclass

from pydantic import ValidationError

from .errors import ConfigError
from .models import ContainerSpec, ResourceLimits
from .settings import Settings

JENKINS_NAME = "jenkins"
SONAR_NAME = "sonarqube"
POSTGRES_NAME = "sonarqube-db"

JENKINS_IMAGE = "jenkins/jenkins:lts"
SONAR_IMAGE = "sonarqube:lts-community"
POSTGRES_IMAGE = "postgres:15-alpine"

POSTGRES_PORT = 5432
JENKINS_HOME = "/var/jenkins_home"
JENKINS_SECRET_PATH = f"{JENKINS_HOME}/secrets/initialAdminPassword"
DOCKER_SOCKET = "/var/run/docker.sock"

STACK_LABEL = "devstack.stack"


@dataclass(frozen=True)
class Stack:
    network: str
    database: ContainerSpec
    ci: ContainerSpec
    quality: ContainerSpec

    @property
    def containers(self) -> list[ContainerSpec]:
        # Startup order: database first, then the apps that depend on it.
        return [self.database, self.ci, self.quality]

    @property
    def images(self) -> list[str]:
        return [c.image for c in self.containers]


def _labels(role: str) -> dict[str, str]:
    return {STACK_LABEL: "devops", "devstack.role": role}


def _render_stack(settings: Settings) -> Stack:
    database = ContainerSpec(
        name=POSTGRES_NAME,
        image=POSTGRES_IMAGE,
        network=settings.network,
        env={
            "POSTGRES_USER": settings.postgres_user,
            "POSTGRES_PASSWORD": settings.postgres_password,
            "POSTGRES_DB": settings.postgres_db,
        },
        mounts=(("postgresql_data", "/var/lib/postgresql/data"),),
        limits=ResourceLimits(
            memory=settings.postgres_memory,
            memory_swap=settings.postgres_memory_swap,
            cpus=settings.postgres_cpus,
        ),
        labels=_labels("database"),
    )

    ci = ContainerSpec(
        name=JENKINS_NAME,
        image=JENKINS_IMAGE,
        network=settings.network,
        published_ports=frozenset(
            {(settings.jenkins_http_port, 8080), (settings.jenkins_agent_port, 50000)}
        ),
        env={
            "JAVA_OPTS": settings.jenkins_java_opts,
            "JENKINS_OPTS": "--sessionTimeout=1440",
        },
        mounts=(
            ("jenkins_home", JENKINS_HOME),
            ("jenkins_cache", "/root/.cache"),
            # Jenkins pipelines build images through the host daemon.
            (DOCKER_SOCKET, DOCKER_SOCKET),
        ),
        limits=ResourceLimits(
            memory=settings.jenkins_memory,
            memory_swap=settings.jenkins_memory_swap,
            cpus=settings.jenkins_cpus,
        ),
        run_as_root=True,
        labels=_labels("ci"),
    )

    quality = ContainerSpec(
        name=SONAR_NAME,
        image=SONAR_IMAGE,
        network=settings.network,
        published_ports=frozenset({(settings.sonar_http_port, 9000)}),
        env={
            "SONAR_ES_BOOTSTRAP_CHECKS_DISABLE": "true",
            "SONAR_JDBC_URL": f"jdbc:postgresql://{POSTGRES_NAME}:{POSTGRES_PORT}/{settings.postgres_db}",
            "SONAR_JDBC_USERNAME": settings.postgres_user,
            "SONAR_JDBC_PASSWORD": settings.postgres_password,
            "ES_JAVA_OPTS": settings.sonar_es_java_opts,
            "SONAR_JAVA_OPTS": settings.sonar_java_opts,
            "SONAR_WEB_JAVAADDITIONALOPTS": "-server",
            "SONAR_CE_JAVAADDITIONALOPTS": "-server",
        },
        mounts=(
            ("sonarqube_data", "/opt/sonarqube/data"),
            ("sonarqube_extensions", "/opt/sonarqube/extensions"),
            ("sonarqube_logs", "/opt/sonarqube/logs"),
        ),
        limits=ResourceLimits(
            memory=settings.sonar_memory,
            memory_swap=settings.sonar_memory_swap,
            cpus=settings.sonar_cpus,
        ),
        labels=_labels("quality"),
    )

    return Stack(network=settings.network, database=database, ci=ci, quality=quality)


def build_stack(settings: Settings) -> Stack:
    try:
        return _render_stack(settings)
    except ValidationError as e:
        problems = "; ".join(
            f"{'.'.join(str(p) for p in err['loc'])}: {err['msg']} (got {err.get('input')!r})" for err in e.errors()
        )
        raise ConfigError(f"Invalid stack configuration: {problems}") from e
