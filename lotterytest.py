#!/usr/bin/env python3
"""
Lottery scheduler test harness.

Spawns one CPU-bound worker per ticket count, lets them compete on one
CPU, samples the ticks each receives and grades the observed distribution
against the proportional-share model.

Usage:
    ./lotterytest.py run                    Default 30:20:10 configuration
    ./lotterytest.py run 10 20 15 5         Four workers, custom tickets
    ./lotterytest.py run --duration 60 --prom
    ./lotterytest.py plan 40 20 10          Show expected shares, spawn nothing
    ./lotterytest.py check                  Preflight: process stats, nice, affinity
"""

import argparse
import sys
from pathlib import Path

from lottery_common import (
    DEFAULT_CPU, DEFAULT_DURATION_SECS, DEFAULT_SAMPLES, DEFAULT_SETTLE_SECS,
    MAX_WORKERS,
    ConfigError, SpawnError,
    default_log_file, get_version, log_error, log_info, log_warn, setup_logging,
)
from lottery_config import RunSettings, TestConfiguration, resolve
from lottery_harness import run_test
from lottery_metrics import write_prometheus
from lottery_report import format_banner, format_report, format_setup, print_progress
from lottery_sched import LinuxNiceBackend, WeightPlan, check_platform


EXIT_OK = 0
EXIT_FAILED = 1
EXIT_USAGE = 2

PASSING_RATINGS = ("excellent", "good", "fair")


def make_backend(config: TestConfiguration, cpu: int | None) -> LinuxNiceBackend:
    return LinuxNiceBackend(max(config.tickets), cpu=cpu)


def _warn_clipped(plan: list[WeightPlan]) -> None:
    for p in plan:
        if p.clipped:
            log_warn(f"{p.tickets} tickets is below the lowest weight the "
                     f"scheduler offers, expect more than its share")


def _resolve_or_report(tickets: list[str]) -> TestConfiguration | None:
    try:
        config = resolve(tickets)
    except ConfigError as e:
        log_error(f"ERROR: {e}")
        log_error("Usage: lotterytest.py run [ticket1] [ticket2] ... [ticketN]")
        log_error("Example: lotterytest.py run 10 20 15 5")
        return None
    if tickets:
        log_info(f"Parsed {len(config)} processes from command line: {config.ratio}")
    else:
        log_info("No arguments provided, using default configuration")
    return config


def cmd_run(args) -> int:
    config = _resolve_or_report(args.tickets)
    if config is None:
        return EXIT_USAGE
    cpu = None if args.no_pin else args.cpu
    try:
        settings = RunSettings(duration=args.duration, samples=args.samples,
                               settle=args.settle, cpu=cpu).validate()
    except ConfigError as e:
        log_error(f"ERROR: {e}")
        return EXIT_USAGE

    if not check_platform(settings.cpu):
        return EXIT_FAILED

    backend = make_backend(config, settings.cpu)
    plan = backend.plan(config.tickets)
    print()
    print(format_banner(config))
    print()
    print(format_setup(config, plan))
    print()
    _warn_clipped(plan)

    try:
        result = run_test(config, settings, backend,
                          on_progress=print_progress(config))
    except SpawnError as e:
        log_error(f"ERROR: could not start workers: {e}")
        return EXIT_FAILED

    print()
    print(format_report(result))

    if args.prom is not None:
        path = write_prometheus(result, Path(args.prom) if args.prom else None)
        log_info(f"Prometheus metrics written to {path}")

    if result.report.degenerate:
        log_error("No ticks were recorded for any worker")
        return EXIT_FAILED
    return EXIT_OK if result.report.rating in PASSING_RATINGS else EXIT_FAILED


def cmd_plan(args) -> int:
    config = _resolve_or_report(args.tickets)
    if config is None:
        return EXIT_USAGE
    backend = make_backend(config, None)
    plan = backend.plan(config.tickets)
    print()
    print(format_banner(config))
    print()
    print(format_setup(config, plan))
    _warn_clipped(plan)
    return EXIT_OK


def cmd_check(args) -> int:
    cpu = None if args.no_pin else args.cpu
    return EXIT_OK if check_platform(cpu) else EXIT_FAILED


# MAIN

def _add_placement_args(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("--cpu", type=int, default=DEFAULT_CPU,
                        help="CPU all workers are pinned to (default: %(default)s)")
    parser.add_argument("--no-pin", action="store_true",
                        help="Do not pin workers to a single CPU")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="lotterytest",
        description=__doc__,
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument("--version", action="version",
                        version=f"%(prog)s {get_version()}")
    parser.add_argument("-v", "--verbose", action="store_true",
                        help="Debug logging on the console")
    parser.add_argument("--log-file", action="store_true",
                        help="Also write a detailed log under /tmp/lotterytest")
    sub = parser.add_subparsers(dest="command")

    run = sub.add_parser("run", help="Run the lottery scheduler test")
    run.add_argument("tickets", nargs="*", metavar="TICKETS",
                     help=f"Ticket count per worker, up to {MAX_WORKERS} "
                          "(default: 30 20 10)")
    run.add_argument("--duration", type=float, default=DEFAULT_DURATION_SECS,
                     help="Test duration in seconds (default: %(default)s)")
    run.add_argument("--samples", type=int, default=DEFAULT_SAMPLES,
                     help="Live samples across the run (default: %(default)s)")
    run.add_argument("--settle", type=float, default=DEFAULT_SETTLE_SECS,
                     help="Delay after spawning before sampling "
                          "(default: %(default)s)")
    run.add_argument("--prom", nargs="?", const="", default=None, metavar="PATH",
                     help="Write Prometheus metrics (default path under "
                          "/tmp/lotterytest)")
    _add_placement_args(run)

    plan = sub.add_parser("plan",
                          help="Show expected shares and nice mapping only")
    plan.add_argument("tickets", nargs="*", metavar="TICKETS",
                      help="Ticket count per worker (default: 30 20 10)")

    check = sub.add_parser("check", help="Preflight platform checks")
    _add_placement_args(check)
    return parser


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    setup_logging(args.verbose, default_log_file() if args.log_file else None)

    if args.command is None:
        parser.print_help()
        return EXIT_OK

    log_info(f"lotterytest v{get_version()}: {args.command} SELECTED")
    if args.command == "run":
        return cmd_run(args)
    if args.command == "plan":
        return cmd_plan(args)
    if args.command == "check":
        return cmd_check(args)

    log_error(f"Unknown command: {args.command}")
    return EXIT_FAILED


def cli() -> None:
    try:
        sys.exit(main())
    except KeyboardInterrupt:
        print("\nInterrupted by user.")
        sys.exit(130)


if __name__ == "__main__":
    cli()
