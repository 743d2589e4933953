from __future__ import annotations

import argparse
import dataclasses
import logging
import sys

from buildgate.build import Outcome, OutcomeStatus
from buildgate.config import ConfigError, GateConfig, load_config
from buildgate.factory import make_build_spec, make_external, make_probe, make_service
from buildgate.orchestrator import Orchestrator
from buildgate.service import StartError
from buildgate.wait import WaitPolicy

from .args import build_parser

EXIT_CODES = {
    OutcomeStatus.SUCCESS: 0,
    OutcomeStatus.BUILD_FAILED: 1,
    OutcomeStatus.TIMEOUT: 3,
    OutcomeStatus.DEPENDENCY_FAILED: 4,
}


def run_cli(argv: list[str] | None = None) -> int:
    parser = build_parser()
    try:
        args = parser.parse_args(argv)
        _configure_logging(args.verbose)

        match args.command:
            case "run":
                return cmd_run(args)
            case "check":
                return cmd_check(args)
            case "show":
                return cmd_show(args)
            case _:
                return 2

    except ConfigError as exc:
        print(str(exc), file=sys.stderr)
        return 2

    except KeyboardInterrupt:
        return 130


def main() -> None:
    sys.exit(run_cli())


def cmd_run(args: argparse.Namespace) -> int:
    config = load_config(args.config)
    policy = _policy(config.wait, args)
    spec = make_build_spec(config.build, argv=args.build_command, extra_env=dict(args.env))
    probe = make_probe(config.probe)

    if config.service.external or args.external:
        service = make_external(config.service)
        try:
            handle = service.start()
        except StartError as exc:
            print(f"FAIL dependency: {exc}")
            return EXIT_CODES[OutcomeStatus.DEPENDENCY_FAILED]
        outcome = Orchestrator(service, probe, policy).run(spec, handle=handle)
    else:
        service = make_service(config.service, log_file=args.service_log)
        outcome = Orchestrator(service, probe, policy).run(spec)

    _print_outcome(outcome)
    return EXIT_CODES[outcome.status]


def cmd_check(args: argparse.Namespace) -> int:
    config = load_config(args.config)
    try:
        handle = make_external(config.service).start()
    except StartError as exc:
        raise ConfigError(str(exc)) from exc

    result = make_probe(config.probe).check(handle)
    if result.success:
        print(f"READY {handle.address}, {result.latency:.3f}s")
        return 0
    print(f"NOT READY {handle.address}: {result.error}")
    return 3


def cmd_show(args: argparse.Namespace) -> int:
    config = load_config(args.config)
    _print_config(config)
    return 0


def _policy(policy: WaitPolicy, args: argparse.Namespace) -> WaitPolicy:
    overrides = {}
    if args.policy_timeout is not None:
        overrides["timeout"] = args.policy_timeout
    if args.policy_interval is not None:
        overrides["interval"] = args.policy_interval
    if args.max_attempts is not None:
        overrides["max_attempts"] = args.max_attempts

    try:
        return dataclasses.replace(policy, **overrides)
    except ValueError as exc:
        raise ConfigError(f"wait: {exc}") from exc


def _configure_logging(verbosity: int) -> None:
    level = logging.WARNING
    if verbosity == 1:
        level = logging.INFO
    elif verbosity > 1:
        level = logging.DEBUG

    logging.basicConfig(
        level=level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        stream=sys.stderr,
    )


def _print_outcome(outcome: Outcome) -> None:
    match outcome.status:
        case OutcomeStatus.SUCCESS | OutcomeStatus.BUILD_FAILED:
            build = outcome.build
            assert build is not None
            word = "OK" if outcome.ok else "FAIL"
            print(f"{word} build, {build.duration_s:.3f}s, exit code = {build.returncode}")
            if not outcome.ok and build.stderr:
                print(build.stderr, file=sys.stderr, end="" if build.stderr.endswith("\n") else "\n")
        case OutcomeStatus.TIMEOUT:
            wait = outcome.wait
            assert wait is not None
            print(f"TIMEOUT dependency, {wait.attempts} attempt(s), {wait.elapsed_s:.3f}s")
        case OutcomeStatus.DEPENDENCY_FAILED:
            reason = outcome.logs[-1] if outcome.logs else "unknown error"
            print(f"FAIL dependency: {reason}")

    if outcome.stop_error is not None:
        print(f"WARN cleanup: {outcome.stop_error}", file=sys.stderr)


def _print_config(config: GateConfig) -> None:
    service = config.service
    where = f"{service.bind}:{service.port}"
    if service.external:
        print(f"service: external {where} (address: {service.address})")
    else:
        print(f"service: {service.command} on {where} (address: {service.address})")

    probe = config.probe
    target = probe.command or probe.url or "tcp"
    print(f"probe: {probe.type} {target}, timeout {probe.timeout}s")

    wait = config.wait
    attempts = wait.max_attempts if wait.max_attempts is not None else "unbounded"
    print(
        f"wait: timeout {wait.timeout}s, interval {wait.interval}s, "
        f"backoff {wait.backoff}, attempts {attempts}"
    )

    build = config.build
    if build is None or build.command is None:
        print("build: (from command line)")
    else:
        print(f"build: {build.command}")
    if build is not None:
        # Values may be secrets; names only.
        for key in sorted(build.env):
            print(f"env: {key}")
