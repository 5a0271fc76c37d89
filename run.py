#!/usr/bin/env python3
"""CLI for the Moray update benchmarks.

Usage:
    python run.py                                   # moray-batch with built-in defaults
    python run.py moray-batch --objects 1000 --batch-size 100
    python run.py moray-batch --backend memory --latency-ms 2
    python run.py --seed 7                          # options alone imply moray-batch
"""

from __future__ import annotations

import argparse
import sys

from benchmarks import get_benchmarks
from benchmarks.base import BaseBenchmark

DEFAULT_COMMAND = "moray-batch"


def main(argv: list[str] | None = None) -> None:
    args = list(argv if argv is not None else sys.argv[1:])
    benchmarks = get_benchmarks()

    # Without a benchmark name on the command line, run the default one.
    if not any(a in benchmarks for a in args) and not {"-h", "--help"} & set(args):
        args = [DEFAULT_COMMAND] + args

    parser = argparse.ArgumentParser(
        prog="moray-batch-bench",
        description="Sequential vs batched update benchmarks for Moray",
    )
    subparsers = parser.add_subparsers(dest="command")

    # Register each benchmark as a subcommand
    bench_instances: dict[str, BaseBenchmark] = {}
    for name, cls in sorted(benchmarks.items()):
        sub = subparsers.add_parser(name, help=f"Run {name} benchmarks")
        instance = cls()
        instance.register_args(sub)
        bench_instances[name] = instance

    parsed = parser.parse_args(args)

    bench = bench_instances.get(parsed.command)
    if bench is None:
        parser.print_help()
        return

    if not bench.validate(parsed):
        print(f"Validation failed for {parsed.command}. Check prerequisites.")
        sys.exit(1)

    try:
        bench.run(parsed)
    except Exception as e:
        print(f"\nERROR running {parsed.command}: {e}", file=sys.stderr)
        sys.exit(1)


if __name__ == "__main__":
    main()
