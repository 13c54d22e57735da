"""Logical clocks passed between ranks: a Lamport broadcast and a vector ring."""

from __future__ import annotations

import argparse
from typing import Sequence

from mpidemos.cluster import ANY_SOURCE, ANY_TAG, Cluster, Communicator


def format_clock(rank: int, clock: Sequence[int]) -> str:
    """Render a clock the way the demos print it."""
    return f"rank: {rank}) [" + "".join(f"{tick} " for tick in clock) + "]"


def lamport_receive(clock: Sequence[int], rank: int, source: int) -> list[int]:
    """Advance the receiver's entry past both its own and the sender's time."""
    updated = list(clock)
    updated[rank] = max(updated[rank], updated[source]) + 1
    return updated


def vector_receive(clock: Sequence[int]) -> list[int]:
    """Merge a received vector with its local copy, advancing every entry."""
    received = list(clock)
    return [max(local + 1, seen) for local, seen in zip(clock, received)]


def lamport_broadcast(comm: Communicator) -> list[list[int]] | None:
    """Rank 0 sends its clock to all, then collects every rank's updated clock.

    Rank 0 returns the clocks in rank order; other ranks return None.
    """
    if comm.rank == 0:
        clock = [0] * comm.size
        clock[0] += 1
        for other in range(comm.size):
            comm.send(other, comm.rank, clock)
        return [comm.recv(other, 0).payload for other in range(comm.size)]

    probed = comm.probe(ANY_SOURCE, ANY_TAG)
    message = comm.recv(probed.source, probed.tag)
    clock = lamport_receive(message.payload, comm.rank, message.source)
    comm.send(0, 0, clock)
    return None


def vector_ring(comm: Communicator) -> tuple[int, list[int]]:
    """Pass a vector clock once around the ring of ranks.

    Every rank returns the sender and the clock it received.
    """
    if comm.size < 2:
        raise ValueError("the ring needs at least two processes")
    if comm.rank == 0:
        clock = [0] * comm.size
        clock[0] += 1
        comm.send(1, comm.rank, clock)
        probed = comm.probe(ANY_SOURCE, ANY_TAG)
        message = comm.recv(probed.source, probed.tag)
        return message.source, list(message.payload)

    probed = comm.probe(ANY_SOURCE, ANY_TAG)
    message = comm.recv(probed.source, probed.tag)
    received = list(message.payload)
    comm.send((comm.rank + 1) % comm.size, comm.rank, vector_receive(received))
    return message.source, received


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description="Pass logical clocks between processes.")
    parser.add_argument("demo", nargs="?", choices=("lamport", "vector"), default="lamport")
    parser.add_argument("-n", "--procs", type=int, default=4, help="number of processes")
    args = parser.parse_args(argv)

    cluster = Cluster(args.procs)
    print(f"We have {args.procs} processes.")
    if args.demo == "lamport":
        clocks = cluster.run(lamport_broadcast)[0]
        for rank, clock in enumerate(clocks):
            print(format_clock(rank, clock))
    else:
        reports = cluster.run(vector_ring)
        for source, clock in reports[1:] + reports[:1]:
            print(format_clock(source, clock))
    return 0