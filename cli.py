from __future__ import annotations

import argparse
import json
import sys

from devstack.db import Journal
from devstack.docker_ops import DockerRuntime
from devstack.errors import DevstackError
from devstack.provision import provision
from devstack.settings import load_settings


def _print(obj) -> None:
    print(json.dumps(obj, indent=2, ensure_ascii=False))


def main(argv: list[str] | None = None, runtime: DockerRuntime | None = None) -> int:
    p = argparse.ArgumentParser(
        description=(
            "Provision the Jenkins + SonarQube + PostgreSQL stack. "
            "Behaviour is controlled by environment variables: RECREATE=1 forces "
            "container re-creation, PULL=1 refreshes images first."
        )
    )
    p.add_argument("--events", type=int, metavar="N", help="Show the last N journal events and exit")
    p.add_argument("--runs", type=int, metavar="N", help="Show the last N provisioning runs and exit")
    args = p.parse_args(argv)

    settings = load_settings()
    journal = Journal(settings.db_path)
    journal.init_db()

    if args.events is not None:
        _print(journal.latest_events(limit=args.events))
        return 0
    if args.runs is not None:
        _print(journal.latest_runs(limit=args.runs))
        return 0

    journal.start_run(recreate=settings.recreate, pull=settings.pull)
    try:
        if runtime is None:
            runtime = DockerRuntime.from_env()
        provision(settings, runtime, journal)
    except DevstackError as e:
        journal.log_event("ERROR", str(e))
        journal.finish_run("failed")
        return 1
    journal.finish_run("ok")
    return 0


if __name__ == "__main__":
    raise SystemExit(main(sys.argv[1:]))
