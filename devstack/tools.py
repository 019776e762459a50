from __future__ import annotations

from dataclasses import dataclass

from .db import Journal
from .docker_ops import DockerRuntime
from .errors import ProvisionError

APT_PACKAGES = ("curl", "ca-certificates", "unzip", "docker.io", "gnupg")


@dataclass(frozen=True)
class Tool:
    name: str
    check: str  # shell snippet; exit 0 means already present
    install: str  # shell snippet; must be safe to run twice

    def shell(self, script: str) -> list[str]:
        return ["bash", "-lc", f"set -e\n{script}"]


DEFAULT_TOOLS: tuple[Tool, ...] = (
    Tool(
        name="apt-packages",
        check=f"dpkg -s {' '.join(APT_PACKAGES)} >/dev/null 2>&1",
        install=f"apt-get update -qq\napt-get install -y -qq {' '.join(APT_PACKAGES)}",
    ),
    Tool(
        name="aws-cli",
        check="command -v aws >/dev/null 2>&1",
        install=(
            "cd /tmp\n"
            "curl -fsSL https://awscli.amazonaws.com/awscli-exe-linux-x86_64.zip -o awscliv2.zip\n"
            "unzip -q -o awscliv2.zip\n"
            "./aws/install --update\n"
            "rm -rf aws awscliv2.zip"
        ),
    ),
    Tool(
        name="trivy",
        check="command -v trivy >/dev/null 2>&1",
        install=(
            "curl -sfL https://raw.githubusercontent.com/aquasecurity/trivy/main/contrib/install.sh"
            " | sh -s -- -b /usr/local/bin"
        ),
    ),
)

VERSION_SUMMARY = (
    'echo "docker: $(docker --version 2>/dev/null | cut -d" " -f3 | tr -d ,)'
    ', aws-cli: $(aws --version 2>/dev/null | cut -d/ -f2 | cut -d" " -f1)'
    ', trivy: $(trivy --version 2>/dev/null | head -n1 | awk "{print \\$2}")"'
)


def ensure_tools(
    runtime: DockerRuntime,
    container: str,
    journal: Journal,
    tools: tuple[Tool, ...] | list[Tool] = DEFAULT_TOOLS,
) -> list[str]:
    """Install each missing tool inside `container` as root.

    Returns the names that were installed during this call; tools that are
    already present are skipped. An installer failure aborts the run.
    """
    journal.log_event("INFO", f"Ensuring tools inside {container}...", service_name=container)
    installed: list[str] = []
    for tool in tools:
        if runtime.exec_run(container, tool.shell(tool.check), user="root").ok:
            journal.log_event("INFO", f"  {tool.name}: already installed", service_name=container)
            continue
        journal.log_event("INFO", f"  {tool.name}: installing...", service_name=container)
        res = runtime.exec_run(container, tool.shell(tool.install), user="root")
        if not res.ok:
            tail = "\n".join(res.output.strip().splitlines()[-5:])
            raise ProvisionError(f"Installing {tool.name} in {container} failed (exit {res.exit_code}): {tail}")
        installed.append(tool.name)

    summary = runtime.exec_run(container, ["bash", "-lc", VERSION_SUMMARY], user="root")
    if summary.ok and summary.output.strip():
        journal.log_event("INFO", f"Tools ready: {summary.output.strip()}", service_name=container)
    return installed
