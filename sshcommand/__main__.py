"""Entry point: python -m sshcommand [--identify] [--json] [-v] <config>"""
from __future__ import annotations

import argparse
import json
import logging
import os
import sys
from pathlib import Path

from . import __version__
from .core.config import CONFIG_KEY, ConfigError
from .core.engine import SSHCommandCheck
from .core.models import ExecutionStatus

_CONFIG_ENV = "SSHCOMMAND_CONFIG"


def main() -> int:
    parser = argparse.ArgumentParser(
        prog="sshcommand",
        description="Run one command over SSH and report compliance evidence",
    )
    parser.add_argument("config", nargs="?", help=f"Path to the check's YAML config (default: ${_CONFIG_ENV})")
    parser.add_argument("--identify", action="store_true", help="Print the assessed subject and exit")
    parser.add_argument("--json", action="store_true", dest="json_output", help="Output results as JSON")
    parser.add_argument("-v", "--verbose", action="count", default=0, help="Increase log verbosity (-vv for debug)")
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    args = parser.parse_args()

    level = {0: logging.WARNING, 1: logging.INFO}.get(args.verbose, logging.DEBUG)
    logging.basicConfig(level=level, format="%(levelname)s %(name)s: %(message)s")

    config_arg = args.config or os.environ.get(_CONFIG_ENV)
    if not config_arg:
        print(f"error: no config file given and ${_CONFIG_ENV} is not set", file=sys.stderr)
        print("Usage: python -m sshcommand <path-to-check-config.yaml>", file=sys.stderr)
        return 1

    config_path = Path(config_arg)
    try:
        configuration = {CONFIG_KEY: config_path.read_text(encoding="utf-8")}
    except OSError as e:
        print(f"error: cannot read config file {config_path}: {e}", file=sys.stderr)
        return 1

    check = SSHCommandCheck()

    try:
        if args.identify:
            subjects = check.identify(configuration)
        else:
            result = check.execute(configuration)
    except ConfigError as e:
        print(f"error: {config_path}: {e}", file=sys.stderr)
        return 1

    if args.identify:
        if args.json_output:
            print(json.dumps({"subjects": [s.to_dict() for s in subjects]}, indent=2))
        else:
            for subject in subjects:
                print(f"{subject.type.value}: {subject.title}")
        return 0

    if args.json_output:
        output = {
            "meta": {"schema_version": "0.1", "tool_version": __version__},
            "result": result.to_dict(),
        }
        print(json.dumps(output, indent=2))
    elif result.status is ExecutionStatus.ERROR:
        print(f"error: {result.error}", file=sys.stderr)
    else:
        for observation in result.observations:
            print(f"{observation.title}: {observation.description}")
            for ev in observation.evidence:
                print(f"  - {ev.description}")
        for finding in result.findings:
            print(f"[FINDING] {finding.title}")
            print(f"  remarks: {finding.remarks}")

    if result.status is ExecutionStatus.ERROR:
        return 1
    return 1 if result.findings else 0


if __name__ == "__main__":
    sys.exit(main())
