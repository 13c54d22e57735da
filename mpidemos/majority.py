"""Majority agreement on a key-value pair using Lamport timestamps."""

from __future__ import annotations

import argparse
import copy
import random
import sys
from dataclasses import dataclass, field

from mpidemos.cluster import Cluster, Communicator

TABLESIZE = 150
KEYLENGTH = 20
MAXNUMOFTHREADS = 25
DEFAULT_KEY = "KEN"
AGREE_TAG = 0
RAND_MAX = 2**31 - 1

_INITIAL_LARGEST = -99999


def hash_key(key: str) -> int:
    """Slot of ``key`` in a table of TABLESIZE entries (shift-and-add hash)."""
    value = 0
    for byte in key.encode("utf-8"):
        char = byte - 256 if byte > 127 else byte
        value = ((value << 5) + char) & 0xFFFFFFFF
    if value >= 1 << 31:
        value -= 1 << 32
    remainder = abs(value) % TABLESIZE
    if value < 0:
        remainder = -remainder
    return remainder + TABLESIZE if remainder < 0 else remainder


class KeyValueMap:
    """A fixed-size table addressed by key hash; colliding keys share a slot."""

    def __init__(self) -> None:
        self._slots: list[int | None] = [None] * TABLESIZE

    def set(self, key: str, value: int) -> None:
        """Store ``value`` in the slot of ``key``."""
        self._slots[hash_key(key)] = value

    def get(self, key: str) -> int | None:
        """The value in the slot of ``key``, or None if the slot is empty."""
        return self._slots[hash_key(key)]


@dataclass
class DataStamp:
    """A key, its value and the sender's Lamport vector."""

    key: str
    value: int
    lamport_vec: list[int] = field(default_factory=list)

    def __post_init__(self) -> None:
        self.key = self.key[:KEYLENGTH]


def initial_stamp(rank: int, size: int, value: int | None = None) -> DataStamp:
    """The stamp a rank proposes: key KEN, its value and a fresh clock."""
    if size > MAXNUMOFTHREADS:
        raise ValueError(f"at most {MAXNUMOFTHREADS} processes are supported, got {size}")
    if not 0 <= rank < size:
        raise ValueError(f"rank {rank} outside 0..{size - 1}")
    if value is None:
        probability = 0.5 if rank == 0 else 0.1
        value = 40 if random.randint(0, RAND_MAX) > probability else 1
    clock = [0] * size
    clock[rank] = 1
    return DataStamp(DEFAULT_KEY, value, clock)


def agree(comm: Communicator, stamp: DataStamp) -> tuple[DataStamp, KeyValueMap]:
    """Exchange stamps and keep the one carrying the latest timestamp.

    Returns the agreed stamp and the local map it was stored in.
    """
    if len(stamp.lamport_vec) != comm.size:
        raise ValueError(f"clock has {len(stamp.lamport_vec)} entries for {comm.size} processes")
    for other in range(comm.size):
        comm.send(other, AGREE_TAG, stamp)

    table = KeyValueMap()
    agreed = DataStamp("", 0, [0] * comm.size)
    largest = _INITIAL_LARGEST
    rank = comm.rank
    for _ in range(comm.size):
        message = comm.recv()
        source = message.source
        received: DataStamp = message.payload
        clock = received.lamport_vec
        for _ in range(comm.size):
            clock[rank] = max(clock[rank], clock[source]) + 1

        if largest < clock[source]:
            largest = clock[source]
            agreed = copy.deepcopy(received)
            table.set(received.key, received.value)

        if source != rank:
            comm.send(source, AGREE_TAG, received)
    return agreed, table


def describe(rank: int, agreed: DataStamp, table: KeyValueMap) -> list[str]:
    """Lines reporting the agreed pair and what the map holds."""
    lines = [f"latest Agreed key: {agreed.key}, value: {agreed.value} at rank: {rank}"]
    for key in (agreed.key, "dist"):
        stored = table.get(key)
        if stored is not None:
            lines.append(
                f"For key: {key}, retrieved value: {stored}, available in map at rank: {rank}"
            )
        else:
            lines.append(f"For key: {key}, has no value available in map at rank: {rank}")
    return lines


def _node(comm: Communicator) -> DataStamp:
    print(f"You are in rank: {comm.rank} processes.")
    agreed, table = agree(comm, initial_stamp(comm.rank, comm.size))
    for line in describe(comm.rank, agreed, table):
        print(line)
    return agreed


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description="Agree on a key-value pair by Lamport time.")
    parser.add_argument("-n", "--procs", type=int, default=4, help="number of processes")
    args = parser.parse_args(argv)
    if args.procs > MAXNUMOFTHREADS:
        print(f"Must more than {args.procs} process for this example", file=sys.stderr)
        return 1
    Cluster(args.procs).run(_node)
    return 0