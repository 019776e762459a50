import pytest
from pydantic import ValidationError

from devstack.errors import ConfigError
from devstack.models import ContainerSpec, ResourceLimits
from devstack.settings import Settings
from devstack.stack import build_stack

LIMITS = ResourceLimits(memory="1g", memory_swap="1g", cpus=1)


def test_stack_order_and_network():
    stack = build_stack(Settings(network="ci-net"))
    assert [c.name for c in stack.containers] == ["sonarqube-db", "jenkins", "sonarqube"]
    assert {c.network for c in stack.containers} == {"ci-net"}


def test_database_is_internal_only():
    stack = build_stack(Settings())
    assert stack.database.published_ports == frozenset()
    assert "jdbc:postgresql://sonarqube-db:5432/sonarqube" == stack.quality.env["SONAR_JDBC_URL"]


def test_named_volumes_exclude_host_paths():
    stack = build_stack(Settings())
    assert stack.ci.named_volumes() == ["jenkins_home", "jenkins_cache"]
    assert stack.quality.named_volumes() == ["sonarqube_data", "sonarqube_extensions", "sonarqube_logs"]


def test_spec_is_frozen():
    spec = build_stack(Settings()).ci
    with pytest.raises(ValidationError):
        spec.image = "jenkins/jenkins:latest"


@pytest.mark.parametrize(
    "kwargs",
    [
        {"name": "bad name"},
        {"published_ports": frozenset({(0, 8080)})},
        {"published_ports": frozenset({(8080, 70000)})},
        {"mounts": (("data", "relative/path"),)},
        {"mounts": (("", "/data"),)},
    ],
)
def test_invalid_specs_rejected(kwargs):
    base = {"name": "svc", "image": "busybox:latest", "network": "net", "limits": LIMITS}
    base.update(kwargs)
    with pytest.raises(ValidationError):
        ContainerSpec(**base)


@pytest.mark.parametrize("memory", ["6gb", "-1g", "lots"])
def test_invalid_memory_rejected(memory):
    with pytest.raises(ValidationError):
        ResourceLimits(memory=memory, memory_swap="1g", cpus=1)


def test_nano_cpus():
    assert ResourceLimits(memory="512m", memory_swap="512m", cpus=0.5).nano_cpus == 500_000_000


def test_env_and_labels_are_read_only():
    env = {"JAVA_OPTS": "-Xmx1g"}
    spec = ContainerSpec(name="svc", image="busybox:latest", network="net", limits=LIMITS, env=env)
    env["JAVA_OPTS"] = "-Xmx8g"

    assert spec.env == {"JAVA_OPTS": "-Xmx1g"}
    with pytest.raises(TypeError):
        spec.env["JAVA_OPTS"] = "-Xmx8g"
    with pytest.raises(TypeError):
        spec.labels["owner"] = "ci"


def test_build_stack_reports_bad_overrides_as_config_error():
    with pytest.raises(ConfigError) as exc:
        build_stack(Settings(jenkins_memory="6gb", jenkins_memory_swap="6gb"))
    assert "'6gb'" in str(exc.value)
    assert isinstance(exc.value.__cause__, ValidationError)
