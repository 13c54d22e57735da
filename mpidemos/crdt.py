"""A grow-only counter CRDT merged across ranks with an element-wise maximum."""

from __future__ import annotations

import argparse
import sys
from dataclasses import dataclass, field

from mpidemos.cluster import Cluster, Communicator

MAX_PROCS = 16


@dataclass
class GCounter:
    """One non-decreasing count per rank; the value is their sum."""

    counts: list[int] = field(default_factory=lambda: [0] * MAX_PROCS)

    def increment(self, rank: int, delta: int) -> None:
        """Add ``delta`` to the slot owned by ``rank``."""
        self.counts[rank] += delta

    def value(self, world_size: int) -> int:
        """The counter's value over the first ``world_size`` slots."""
        return sum(self.counts[:world_size])

    def merge(self, other: GCounter) -> GCounter:
        """A new counter holding the element-wise maximum of both."""
        return GCounter([max(mine, theirs) for mine, theirs in zip(self.counts, other.counts)])


def gcounter_demo(comm: Communicator) -> int:
    """Each rank bumps its own slot rank+1 times; return the merged value."""
    if comm.size > MAX_PROCS:
        if comm.rank == 0:
            print(f"MAX_PROCS ({MAX_PROCS}) < world size ({comm.size})", file=sys.stderr)
        comm.abort(1)
    local = GCounter()
    local.increment(comm.rank, comm.rank + 1)
    merged = comm.allreduce(local, GCounter.merge)
    return merged.value(comm.size)


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description="Merge a grow-only counter across processes.")
    parser.add_argument("-n", "--procs", type=int, default=4, help="number of processes")
    args = parser.parse_args(argv)
    for rank, value in enumerate(Cluster(args.procs).run(gcounter_demo)):
        print(f"Rank {rank} sees global counter value = {value}")
    return 0