import io
import os
import sys
from dataclasses import dataclass, field

import httpx
import pytest

# Ensure project root is importable (so `import cli` works without installing)
_project_root = os.path.dirname(os.path.dirname(__file__))
if _project_root not in sys.path:
    sys.path.insert(0, _project_root)

from devstack.db import Journal  # noqa: E402
from devstack.docker_ops import ExecResult  # noqa: E402
from devstack.errors import ResourceGone, RuntimeCallError  # noqa: E402
from devstack.settings import Settings  # noqa: E402


@dataclass
class FakeContainer:
    spec: object
    id: str
    running: bool = True
    files: dict = field(default_factory=dict)
    tools: set = field(default_factory=set)
    install_runs: list = field(default_factory=list)


class FakeRuntime:
    """In-memory stand-in for DockerRuntime with the same method surface."""

    def __init__(self):
        self.networks: set[str] = set()
        self.containers: dict[str, FakeContainer] = {}
        self.network_creates = 0
        self.creates: list[str] = []
        self.starts: list[str] = []
        self.removes: list[str] = []
        self.pulls: list[str] = []
        self.execs: list[tuple] = []
        self.fail_create: set[str] = set()
        self.pg_ready_after = 0
        self.on_create = None
        self._seq = 0

    # helpers for tests
    def add_container(self, spec, running=True):
        self._seq += 1
        c = FakeContainer(spec=spec, id=f"cid-{self._seq}", running=running)
        self.containers[spec.name] = c
        return c

    def _get(self, name):
        if name not in self.containers:
            raise ResourceGone(f"Container {name} does not exist")
        return self.containers[name]

    # DockerRuntime surface
    def network_exists(self, name):
        return name in self.networks

    def create_network(self, name):
        if name in self.networks:
            raise RuntimeCallError(f"network with name {name} already exists")
        self.network_creates += 1
        self.networks.add(name)

    def container_exists(self, name):
        return name in self.containers

    def container_is_running(self, name):
        return name in self.containers and self.containers[name].running

    def run_container(self, spec):
        if spec.name in self.fail_create:
            raise RuntimeCallError(f"Creating container {spec.name} failed: boom")
        if spec.name in self.containers:
            raise RuntimeCallError(f"Conflict. The container name {spec.name} is already in use")
        self.creates.append(spec.name)
        c = self.add_container(spec)
        if self.on_create is not None:
            self.on_create(c)
        return c.id

    def start_container(self, name):
        self._get(name).running = True
        self.starts.append(name)

    def remove_container(self, name, force=True):
        self._get(name)
        del self.containers[name]
        self.removes.append(name)

    def pull_image(self, image):
        self.pulls.append(image)

    def exec_run(self, name, cmd, user=None):
        c = self._get(name)
        self.execs.append((name, tuple(cmd), user))
        if not c.running:
            raise RuntimeCallError(f"Container {name} is not running")
        if cmd[:2] == ["test", "-f"]:
            return ExecResult(0 if cmd[2] in c.files else 1, "")
        if cmd[0] == "cat":
            if cmd[1] in c.files:
                return ExecResult(0, c.files[cmd[1]] + "\n")
            return ExecResult(1, f"cat: {cmd[1]}: No such file or directory")
        if cmd[0] == "pg_isready":
            if self.pg_ready_after > 0:
                self.pg_ready_after -= 1
                return ExecResult(2, "no response")
            return ExecResult(0, "accepting connections")
        if cmd[:2] == ["bash", "-lc"]:
            return self._script(c, cmd[2])
        return ExecResult(0, "")

    def _script(self, c, script):
        """Interpret the handful of shell snippets the tool installer sends."""
        if "dpkg -s " in script:
            packages = script.split("dpkg -s ", 1)[1].split(">", 1)[0].split()
            return ExecResult(0 if set(packages) <= c.tools else 1, "")
        if "command -v " in script:
            tool = script.split("command -v ", 1)[1].split()[0]
            return ExecResult(0 if tool in c.tools else 1, "")
        if "apt-get install" in script:
            line = next(ln for ln in script.splitlines() if "apt-get install" in ln)
            packages = [w for w in line.split("apt-get install", 1)[1].split() if not w.startswith("-")]
            if "broken" in packages:
                return ExecResult(100, "E: Unable to locate package broken")
            c.tools.update(packages)
            c.install_runs.append(" ".join(packages))
            return ExecResult(0, "")
        if "./aws/install" in script:
            c.tools.add("aws")
            c.install_runs.append("aws")
            return ExecResult(0, "")
        if "trivy/main/contrib/install.sh" in script:
            c.tools.add("trivy")
            c.install_runs.append("trivy")
            return ExecResult(0, "")
        if "--version" in script:
            return ExecResult(0, "")
        return ExecResult(127, f"unrecognized script: {script!r}")

    def read_file(self, name, path):
        res = self.exec_run(name, ["cat", path])
        return res.output.strip() if res.ok else None


class FakeClock:
    def __init__(self):
        self.now = 0.0
        self.sleeps: list[float] = []
        self.hooks: list = []  # (at_time, callback)

    def sleep(self, seconds):
        self.sleeps.append(seconds)
        self.now += seconds
        for at, cb in list(self.hooks):
            if self.now >= at:
                cb()
                self.hooks.remove((at, cb))

    def at(self, when, callback):
        self.hooks.append((when, callback))


class FakeHttp:
    """httpx.MockTransport backend: ports in `up` answer 200, others refuse."""

    def __init__(self):
        self.up: set[int] = set()
        self.requests: list[str] = []
        self.transport = httpx.MockTransport(self._handle)

    def _handle(self, request):
        self.requests.append(str(request.url))
        if request.url.port in self.up:
            return httpx.Response(200, text="ok")
        raise httpx.ConnectError("Connection refused", request=request)


@pytest.fixture
def fake_runtime():
    return FakeRuntime()


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def fake_http():
    return FakeHttp()


@pytest.fixture
def journal(tmp_path):
    j = Journal(str(tmp_path / "journal.db"), stream=io.StringIO())
    j.init_db()
    return j


@pytest.fixture
def settings(tmp_path):
    return Settings(db_path=str(tmp_path / "journal.db"))
