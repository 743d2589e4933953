from __future__ import annotations

import argparse

from buildgate.config import ConfigError, parse_duration


def _duration(value: str) -> float:
    try:
        return parse_duration(value, "duration")
    except ConfigError as exc:
        raise argparse.ArgumentTypeError(str(exc)) from exc


def _env_pair(value: str) -> tuple[str, str]:
    key, sep, item = value.partition("=")
    if not sep or len(key.strip()) < 1:
        raise argparse.ArgumentTypeError(f"expected KEY=VALUE, got {value!r}")
    return key.strip(), item


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="buildgate")

    parser.add_argument(
        "--config",
        default="buildgate.yml",
        help="Path to config file",
    )
    parser.add_argument(
        "-v",
        "--verbose",
        action="count",
        default=0,
        help="Log progress to stderr (-vv for debug)",
    )

    subparsers = parser.add_subparsers(
        dest="command",
        required=True,
    )

    # run
    run = subparsers.add_parser(
        "run", help="Start the dependency, wait for it, build, stop it"
    )
    run.add_argument(
        "build_command",
        nargs="*",
        help="Build command (after '--'); overrides build.command",
    )
    run.add_argument("--policy-timeout", type=_duration, help="e.g. 60s, 2m")
    run.add_argument("--policy-interval", type=_duration, help="e.g. 500ms, 1s")
    run.add_argument("--max-attempts", type=int, help="Give up after N counted probes")
    run.add_argument(
        "--external",
        action="store_true",
        help="Borrow an already running dependency instead of starting one",
    )
    run.add_argument(
        "--env",
        type=_env_pair,
        action="append",
        default=[],
        metavar="KEY=VALUE",
        help="Extra build environment variable (repeatable)",
    )
    run.add_argument("--service-log", help="Append dependency output to this file")

    # check
    subparsers.add_parser("check", help="Probe the configured address once")

    # show
    subparsers.add_parser("show", help="Show the resolved configuration")

    return parser
