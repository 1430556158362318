"""asyncrw-lite CLI entry point.

Usage: uv run asyncrw-lite [command]
"""
import argparse
import logging
import sys


def _add_stress_parser(subparsers: argparse._SubParsersAction) -> None:
    p = subparsers.add_parser(
        "stress",
        help="Hammer a lock with concurrent readers and writers.",
    )
    p.add_argument(
        "--tasks", type=int, default=50,
        help="Number of concurrent tasks (default: 50)",
    )
    p.add_argument(
        "--ops", type=int, default=100,
        help="Lock requests per task (default: 100)",
    )
    p.add_argument(
        "--write-ratio", type=float, default=0.2,
        help="Fraction of requests that are writers (default: 0.2)",
    )
    p.add_argument(
        "--cancel-ratio", type=float, default=0.05,
        help="Fraction of requests given a cancellation deadline (default: 0.05)",
    )
    p.add_argument(
        "--max-hold-ms", type=float, default=1.0,
        help="Upper bound on how long a guard is held (default: 1.0)",
    )
    p.add_argument(
        "--seed", type=int, default=42,
        help="RNG seed for reproducible runs (default: 42)",
    )
    p.add_argument(
        "--cprofile", action="store_true",
        help="Enable cProfile and print top functions by cumulative time.",
    )


def _run_stress(args: argparse.Namespace) -> int:
    from asyncrw_lite.profiling.harness import run_stress
    from asyncrw_lite.profiling.report import format_report

    result = run_stress(
        num_tasks=args.tasks,
        ops_per_task=args.ops,
        write_ratio=args.write_ratio,
        cancel_ratio=args.cancel_ratio,
        max_hold_ms=args.max_hold_ms,
        seed=args.seed,
        profile=args.cprofile,
    )
    print(format_report(result))
    if result.cprofile_stats:
        print()
        print("--- cProfile top functions ---")
        print(result.cprofile_stats)
    return 1 if result.violations else 0


def main(argv: list[str] | None = None) -> None:
    parser = argparse.ArgumentParser(
        prog="asyncrw-lite",
        description="Asyncio reader-writer lock with writer priority.",
    )
    parser.add_argument(
        "--log-level", default="WARNING",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Logging level (default: WARNING)",
    )
    subparsers = parser.add_subparsers(dest="command")

    _add_stress_parser(subparsers)

    args = parser.parse_args(argv)
    logging.basicConfig(
        level=getattr(logging, args.log_level),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    if args.command is None:
        parser.print_help()
        sys.exit(0)

    if args.command == "stress":
        sys.exit(_run_stress(args))
