"""Average CPU usage measured on every rank and reduced to rank 0."""

from __future__ import annotations

import argparse
import functools
import operator
import re
import subprocess
from typing import Callable

from mpidemos.cluster import Cluster, Communicator

LINE_MAX = 2048

CPU_COMMAND = (
    "top -bn1 | grep 'Cpu(s)' | sed 's/.*, *\\([0-9.]*\\)%* id.*/\\1/' "
    "| awk '{print 100 - $1}'"
)

_LEADING_FLOAT = re.compile(
    r"\s*([+-]?(?:(?:\d+\.?\d*|\.\d+)(?:[eE][+-]?\d+)?|inf(?:inity)?|nan))",
    re.IGNORECASE,
)


def run_command(cmd: str | None, limit: int = LINE_MAX) -> str:
    """Run a shell command and return at most ``limit`` characters of its output."""
    if cmd is None:
        return ""
    if limit <= 0:
        raise ValueError("output limit must be positive")
    try:
        completed = subprocess.run(
            cmd, shell=True, stdout=subprocess.PIPE, text=True, check=False
        )
    except OSError as exc:
        raise OSError(f"failed. cmd={cmd}") from exc
    return completed.stdout[:limit]


def parse_leading_float(text: str) -> float:
    """Read the number at the start of ``text``; 0.0 if there is none."""
    match = _LEADING_FLOAT.match(text)
    return float(match.group(1)) if match else 0.0


def get_cpu_usage(command: str = CPU_COMMAND) -> float:
    """Percentage of CPU in use, as reported by ``command``."""
    return parse_leading_float(run_command(command, LINE_MAX))


def average_cpu(comm: Communicator, sampler: Callable[[], float] | None = None) -> float | None:
    """Rank 0 gets the mean of every rank's sample; other ranks get None."""
    local = sampler() if sampler is not None else get_cpu_usage()
    total = comm.reduce(local, operator.add, 0)
    if comm.rank == 0:
        return total / comm.size
    return None


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description="Average CPU usage over processes.")
    parser.add_argument("-n", "--procs", type=int, default=4, help="number of processes")
    parser.add_argument("--command", default=CPU_COMMAND, help="shell command printing CPU usage")
    args = parser.parse_args(argv)
    sampler = functools.partial(get_cpu_usage, args.command)
    average = Cluster(args.procs).run(average_cpu, sampler)[0]
    print(f"{average:f}", end="")
    return 0