"""Ranks nudge their values towards the global average until they are stable."""

from __future__ import annotations

import argparse
import operator
import random
import time
from typing import Sequence

from mpidemos.cluster import Cluster, Communicator

MAX_ITERATIONS = 20
STABILITY_THRESHOLD = 5.0
SLEEP_TIME = 1.0
STEP = 1.0


def adjust(local_value: float, average: float, threshold: float = STABILITY_THRESHOLD) -> tuple[float, float, bool]:
    """Move one step towards ``average`` if further than ``threshold`` from it.

    Returns the new value, the distance before the step, and whether it moved.
    """
    difference = abs(local_value - average)
    if difference <= threshold:
        return local_value, difference, False
    if local_value > average:
        return local_value - STEP, difference, True
    return local_value + STEP, difference, True


def _average(comm: Communicator, value: float) -> float:
    return comm.allreduce(value, operator.add) / comm.size


def stabilize(
    comm: Communicator,
    initial: Sequence[float] | None = None,
    iterations: int = MAX_ITERATIONS,
    threshold: float = STABILITY_THRESHOLD,
    pause: float = SLEEP_TIME,
) -> float:
    """Run the stabilization rounds and return this rank's final value.

    ``initial`` gives each rank's starting value by rank; without it a rank
    starts at ten times its rank plus a random digit.
    """
    if initial is None:
        local_value = comm.rank * 10.0 + random.randrange(10)
    else:
        if len(initial) != comm.size:
            raise ValueError(f"expected {comm.size} initial values, got {len(initial)}")
        local_value = float(initial[comm.rank])
    print(f"Process {comm.rank}: Initial value = {local_value:.2f}")

    for _ in range(iterations):
        average = _average(comm, local_value)
        local_value, difference, moved = adjust(local_value, average, threshold)
        state = "Value adjusted to" if moved else "Value stable at"
        print(
            f"Process {comm.rank}: {state} {local_value:.2f} "
            f"(avg={average:.2f}, diff={difference:.2f})"
        )
        comm.barrier()
        time.sleep(pause)

    print(f"Process {comm.rank}: Final value = {local_value:.2f}")
    return local_value


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description="Stabilize values towards their average.")
    parser.add_argument("-n", "--procs", type=int, default=4, help="number of processes")
    parser.add_argument("--iterations", type=int, default=MAX_ITERATIONS)
    parser.add_argument("--threshold", type=float, default=STABILITY_THRESHOLD)
    parser.add_argument("--pause", type=float, default=SLEEP_TIME)
    args = parser.parse_args(argv)
    Cluster(args.procs).run(stabilize, None, args.iterations, args.threshold, args.pause)
    return 0