from __future__ import annotations

import time
from dataclasses import dataclass
from typing import Callable

import httpx

from .docker_ops import DockerRuntime
from .errors import DevstackError

Probe = Callable[[], bool]

PROGRESS_EVERY_S = 30


@dataclass(frozen=True)
class WaitResult:
    ready: bool
    elapsed_s: int
    attempts: int


def check_http(url: str, timeout_s: float = 2.0, transport: httpx.BaseTransport | None = None) -> tuple[bool, str]:
    """GET a local endpoint.

    Any non-error status counts as up (same rule as `curl -f`); redirects are
    not followed. Returns (is_up, message).
    """
    try:
        with httpx.Client(timeout=timeout_s, follow_redirects=False, transport=transport) as client:
            resp = client.get(url)
    except (httpx.ConnectError, httpx.TimeoutException):
        return False, "No response"
    except httpx.HTTPError as e:
        return False, f"Error: {type(e).__name__}: {e}"
    if resp.status_code >= 400:
        return False, f"HTTP {resp.status_code}"
    return True, f"HTTP {resp.status_code}"


def http_probe(url: str, timeout_s: float = 2.0, transport: httpx.BaseTransport | None = None) -> Probe:
    def probe() -> bool:
        ok, _ = check_http(url, timeout_s=timeout_s, transport=transport)
        return ok

    return probe


def exec_probe(runtime: DockerRuntime, container: str, cmd: list[str], user: str | None = None) -> Probe:
    """Succeeds when `cmd` exits 0 inside the container (e.g. pg_isready)."""

    def probe() -> bool:
        return runtime.exec_run(container, cmd, user=user).ok

    return probe


def file_marker_probe(runtime: DockerRuntime, container: str, path: str, fallback: Probe | None = None) -> Probe:
    """Succeeds when `path` exists in the container, or when `fallback` does.

    The fallback covers services that are already configured and have
    rotated the marker away. It is a heuristic: a service that answers
    before finishing first-run setup is also reported as ready.
    """
    marker = exec_probe(runtime, container, ["test", "-f", path])

    def probe() -> bool:
        try:
            if marker():
                return True
        except DevstackError:
            pass
        return fallback() if fallback is not None else False

    return probe


def wait_ready(
    probe: Probe,
    max_wait_s: int,
    interval_s: int,
    sleep: Callable[[float], None] = time.sleep,
    on_progress: Callable[[int], None] | None = None,
) -> WaitResult:
    """Poll `probe` until it succeeds or the budget is spent.

    Elapsed time is the sum of the sleeps, not a wall-clock reading, so the
    worst case waits ceil(max_wait_s / interval_s) * interval_s. A timeout is
    returned as WaitResult(ready=False), never raised.
    """
    if interval_s <= 0:
        raise ValueError("interval_s must be positive")

    elapsed = 0
    attempts = 0
    while elapsed < max_wait_s:
        attempts += 1
        try:
            if probe():
                return WaitResult(ready=True, elapsed_s=elapsed, attempts=attempts)
        except DevstackError:
            # Container not up yet / exec refused: same as a failed check.
            pass
        sleep(interval_s)
        elapsed += interval_s
        if on_progress is not None and elapsed // PROGRESS_EVERY_S > (elapsed - interval_s) // PROGRESS_EVERY_S:
            on_progress(elapsed)
    return WaitResult(ready=False, elapsed_s=elapsed, attempts=attempts)


@dataclass(frozen=True)
class ReadinessCheck:
    target: str
    kind: str  # http|exec|file
    probe: Probe
    max_wait_s: int
    interval_s: int

    def wait(
        self,
        sleep: Callable[[float], None] = time.sleep,
        on_progress: Callable[[int], None] | None = None,
    ) -> WaitResult:
        return wait_ready(self.probe, self.max_wait_s, self.interval_s, sleep=sleep, on_progress=on_progress)
