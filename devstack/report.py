from __future__ import annotations

from dataclasses import dataclass, field

from .db import Journal
from .docker_ops import DockerRuntime
from .errors import DevstackError
from .settings import Settings
from .stack import JENKINS_SECRET_PATH, Stack

RULE = "━" * 42
SONAR_DEFAULT_LOGIN = "admin / admin"
NEXT_INFRA_COMMAND = "cd terraform && terraform init && terraform apply"


@dataclass(frozen=True)
class Report:
    jenkins_url: str
    sonar_url: str
    jenkins_password: str | None
    postgres_container: str
    postgres_db: str
    postgres_user: str
    container_names: list[str] = field(default_factory=list)

    @property
    def already_configured(self) -> bool:
        return self.jenkins_password is None


def read_bootstrap_secret(runtime: DockerRuntime, container: str, path: str = JENKINS_SECRET_PATH) -> str | None:
    """Initial admin password, or None once the setup wizard has consumed it."""
    try:
        secret = runtime.read_file(container, path)
    except DevstackError:
        return None
    return secret or None


def build_report(runtime: DockerRuntime, settings: Settings, stack: Stack) -> Report:
    return Report(
        jenkins_url=f"http://localhost:{settings.jenkins_http_port}",
        sonar_url=f"http://localhost:{settings.sonar_http_port}",
        jenkins_password=read_bootstrap_secret(runtime, stack.ci.name),
        postgres_container=stack.database.name,
        postgres_db=settings.postgres_db,
        postgres_user=settings.postgres_user,
        container_names=[c.name for c in stack.containers],
    )


def print_resource_info(settings: Settings, journal: Journal) -> None:
    journal.echo()
    journal.echo(f"Container resource allocation ({settings.memory_tier} memory tier):")
    journal.echo(RULE)
    journal.echo("Jenkins:")
    journal.echo(f"  Memory: {settings.jenkins_memory} (swap: {settings.jenkins_memory_swap})")
    journal.echo(f"  CPUs: {settings.jenkins_cpus:g}")
    journal.echo(f"  JVM: {settings.jenkins_java_opts}")
    journal.echo()
    journal.echo("SonarQube:")
    journal.echo(f"  Memory: {settings.sonar_memory} (swap: {settings.sonar_memory_swap})")
    journal.echo(f"  CPUs: {settings.sonar_cpus:g}")
    journal.echo(f"  Elasticsearch JVM: {settings.sonar_es_java_opts}")
    journal.echo(f"  SonarQube JVM: {settings.sonar_java_opts}")
    journal.echo()
    journal.echo("PostgreSQL:")
    journal.echo(f"  Memory: {settings.postgres_memory} (swap: {settings.postgres_memory_swap})")
    journal.echo(f"  CPUs: {settings.postgres_cpus:g}")
    journal.echo(RULE)


def print_report(report: Report, journal: Journal) -> None:
    names = " ".join(report.container_names)
    out = journal.echo

    out()
    out(RULE)
    out("ACCESS INFORMATION")
    out(RULE)
    out()
    out("Jenkins")
    out(f"   URL: {report.jenkins_url}")
    if report.jenkins_password:
        out(f"   Initial Password: {report.jenkins_password}")
    else:
        out("   Status: Already configured (no initial password)")
    out()
    out("SonarQube")
    out(f"   URL: {report.sonar_url}")
    out(f"   Default Login: {SONAR_DEFAULT_LOGIN}")
    out("   Change the password on first login!")
    out()
    out("PostgreSQL (internal only)")
    out(f"   Container: {report.postgres_container}")
    out(f"   Database: {report.postgres_db}")
    out(f"   User: {report.postgres_user}")
    out()
    out(RULE)
    out("NEXT STEPS")
    out(RULE)
    out("1. Open Jenkins and complete the setup wizard")
    out("2. Open SonarQube and change the default password")
    out("3. Configure credentials in Jenkins")
    out(f"4. (Optional) Deploy infrastructure: {NEXT_INFRA_COMMAND}")
    out()
    out("Useful commands:")
    for name in report.container_names:
        out(f"   docker logs {name} -f")
    out(f"   docker restart {names}")
    out(f"   docker stop {names}")
    out(f"   docker stats {names}")
    out(
        f"   docker exec {report.postgres_container} pg_dump -U {report.postgres_user} "
        f"{report.postgres_db} > backup.sql"
    )
    out(RULE)
