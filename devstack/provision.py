"""End-to-end provisioning run: network, database, apps, tools, report."""
from __future__ import annotations

import time
from dataclasses import dataclass, field
from typing import Callable

import httpx

from .db import Journal
from .docker_ops import DockerRuntime
from .health import ReadinessCheck, WaitResult, exec_probe, file_marker_probe, http_probe
from .reconciler import ReconcileAction, Reconciler, ensure_network
from .report import Report, build_report, print_report, print_resource_info
from .settings import Settings
from .stack import JENKINS_SECRET_PATH, Stack, build_stack
from .tools import DEFAULT_TOOLS, Tool, ensure_tools


@dataclass
class ProvisionResult:
    network_created: bool = False
    actions: dict[str, ReconcileAction] = field(default_factory=dict)
    readiness: dict[str, WaitResult] = field(default_factory=dict)
    tools_installed: list[str] = field(default_factory=list)
    report: Report | None = None


def pull_images(runtime: DockerRuntime, stack: Stack, journal: Journal) -> None:
    journal.log_event("INFO", "Pulling latest images...")
    for image in stack.images:
        runtime.pull_image(image)
        journal.log_event("INFO", f"  pulled {image}")


def readiness_checks(
    runtime: DockerRuntime,
    settings: Settings,
    stack: Stack,
    http_transport: httpx.BaseTransport | None = None,
) -> dict[str, ReadinessCheck]:
    jenkins_http = http_probe(f"http://localhost:{settings.jenkins_http_port}", transport=http_transport)
    return {
        "postgres": ReadinessCheck(
            target="PostgreSQL",
            kind="exec",
            probe=exec_probe(runtime, stack.database.name, ["pg_isready", "-U", settings.postgres_user]),
            max_wait_s=settings.postgres_wait_s,
            interval_s=settings.postgres_interval_s,
        ),
        "jenkins": ReadinessCheck(
            target="Jenkins",
            kind="http",
            probe=jenkins_http,
            max_wait_s=settings.jenkins_wait_s,
            interval_s=settings.http_interval_s,
        ),
        "jenkins-bootstrap": ReadinessCheck(
            target="Jenkins initialization",
            kind="file",
            probe=file_marker_probe(runtime, stack.ci.name, JENKINS_SECRET_PATH, fallback=jenkins_http),
            max_wait_s=settings.jenkins_bootstrap_wait_s,
            interval_s=settings.jenkins_bootstrap_interval_s,
        ),
        "sonarqube": ReadinessCheck(
            target="SonarQube",
            kind="http",
            probe=http_probe(f"http://localhost:{settings.sonar_http_port}", transport=http_transport),
            max_wait_s=settings.sonar_wait_s,
            interval_s=settings.http_interval_s,
        ),
    }


def wait_for(check: ReadinessCheck, journal: Journal, sleep: Callable[[float], None]) -> WaitResult:
    journal.log_event("INFO", f"Waiting for {check.target} to be ready ({check.kind} check, max {check.max_wait_s}s)...")
    result = check.wait(
        sleep=sleep,
        on_progress=lambda elapsed: journal.log_event("INFO", f"   Still waiting... ({elapsed}s elapsed)"),
    )
    if result.ready:
        journal.log_event("INFO", f"{check.target} is ready!")
    else:
        # Partial startup is common; later steps re-check on their own.
        journal.log_event("WARN", f"{check.target} did not respond within {check.max_wait_s}s")
    return result


def provision(
    settings: Settings,
    runtime: DockerRuntime,
    journal: Journal,
    sleep: Callable[[float], None] = time.sleep,
    tools: tuple[Tool, ...] | list[Tool] = DEFAULT_TOOLS,
    http_transport: httpx.BaseTransport | None = None,
) -> ProvisionResult:
    """Run every step in order. Docker failures propagate and abort the run."""
    stack = build_stack(settings)
    reconciler = Reconciler(runtime, journal)
    checks = readiness_checks(runtime, settings, stack, http_transport=http_transport)
    result = ProvisionResult()

    journal.log_event("INFO", "Setting up DevOps environment...")
    print_resource_info(settings, journal)

    result.network_created = ensure_network(runtime, stack.network, journal)
    if settings.pull:
        pull_images(runtime, stack, journal)

    journal.log_event("INFO", "Starting PostgreSQL database...")
    result.actions[stack.database.name] = reconciler.reconcile(stack.database, recreate=settings.recreate)
    result.readiness["postgres"] = wait_for(checks["postgres"], journal, sleep)

    journal.log_event("INFO", "Starting application containers...")
    for spec in (stack.ci, stack.quality):
        result.actions[spec.name] = reconciler.reconcile(spec, recreate=settings.recreate)

    result.readiness["jenkins"] = wait_for(checks["jenkins"], journal, sleep)
    result.readiness["jenkins-bootstrap"] = wait_for(checks["jenkins-bootstrap"], journal, sleep)
    result.tools_installed = ensure_tools(runtime, stack.ci.name, journal, tools=tools)

    result.readiness["sonarqube"] = wait_for(checks["sonarqube"], journal, sleep)

    result.report = build_report(runtime, settings, stack)
    journal.log_event("INFO", "Setup complete!")
    print_report(result.report, journal)
    journal.log_event("INFO", "DevOps environment is ready!")
    return result
