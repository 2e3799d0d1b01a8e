from __future__ import annotations

import argparse
import logging

from taskscope import observe_jobs

from .scenarios import DEFAULT_SCENARIO, SCENARIOS


def build_parser() -> argparse.ArgumentParser:
    """Create the argument parser for the demo CLI."""

    parser = argparse.ArgumentParser(
        prog="taskscope-demo",
        description="Run one taskscope launch-pattern demonstration.",
    )
    parser.add_argument(
        "scenario",
        nargs="?",
        choices=sorted(SCENARIOS),
        default=DEFAULT_SCENARIO,
        help=f"Scenario to run (default: {DEFAULT_SCENARIO})",
    )
    parser.add_argument(
        "--delay",
        type=float,
        default=1.0,
        help="Simulated suspension per body, in seconds",
    )
    parser.add_argument(
        "--list",
        action="store_true",
        help="List the available scenarios and exit",
    )
    parser.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        help="Log dispatcher and job lifecycle events to stderr",
    )
    return parser


def main(argv: list[str] | None = None) -> int:
    """CLI entry point used by ``python -m taskscope_demo``."""

    parser = build_parser()
    args = parser.parse_args(argv)
    if args.list:
        width = max(len(name) for name in SCENARIOS)
        for name, scenario in SCENARIOS.items():
            print(f"{name:<{width}}  {scenario.summary}")
        return 0
    if args.delay < 0:
        parser.error("--delay must not be negative")

    scenario = SCENARIOS[args.scenario]
    if not args.verbose:
        scenario.execute(delay=args.delay)
        return 0

    logging.basicConfig(
        level=logging.DEBUG,
        format="%(asctime)s %(threadName)s %(name)s: %(message)s",
    )
    with observe_jobs(level=logging.DEBUG):
        scenario.execute(delay=args.delay)
    return 0


if __name__ == "__main__":  # pragma: no cover - manual invocation
    raise SystemExit(main())
