"""Leader election by broadcast ballots and a shared quorum counter."""

from __future__ import annotations

import argparse
import time
from dataclasses import dataclass
from typing import Sequence

from mpidemos.cluster import Cluster, Communicator, ReceiveTimeout
from mpidemos.shared import SharedVar

SET_LEADER = 0
NO_LEADER = None
INITIAL_MAX_BALLOT = -10000
ELECTION_WAIT = 2.0


@dataclass(frozen=True)
class Ballot:
    """An election attempt: its ballot number and the candidate's rank."""

    ballot: int
    pid: int


def is_leader_failed(leader: int | None) -> bool:
    """True when no leader is known."""
    return leader is NO_LEADER


def quorum_size(num_procs: int) -> int:
    """Number of participants that make a quorum."""
    return int(max((num_procs + 1) / 2.0, 1))


def _check_counter(comm: Communicator, counter: SharedVar) -> None:
    if counter.size != comm.size:
        raise ValueError(f"counter has {counter.size} slots for {comm.size} processes")


def _broadcast(comm: Communicator, ballot: Ballot) -> None:
    for other in range(comm.size):
        comm.send(other, SET_LEADER, ballot)


class LeaderChecker:
    """Tracks the highest ballot a rank has seen and decides announcements."""

    def __init__(self, rank: int, size: int, counter: SharedVar) -> None:
        self.rank = rank
        self.size = size
        self.counter = counter
        self.max_ballot = INITIAL_MAX_BALLOT

    def check(self, received: Ballot, leader: int | None) -> tuple[int | None, Ballot | None]:
        """Count a response; return the leader and the ballot to announce, if any.

        Only the response that brings the shared count exactly to the quorum
        announces, and then only when it changes the leader.
        """
        accepted = Ballot(0, 0)
        if received.ballot > self.max_ballot:
            self.max_ballot = received.ballot
            accepted = received
        count = self.counter.increment(self.rank, 1)
        if count == quorum_size(self.size) and leader != accepted.pid:
            return accepted.pid, accepted
        return leader, None


def elect_leader(comm: Communicator, counter: SharedVar, wait: float = ELECTION_WAIT) -> int | None:
    """Broadcast election ballots until the shared count reaches a quorum."""
    _check_counter(comm, counter)
    leader: int | None = NO_LEADER
    quorum = quorum_size(comm.size)
    while True:
        if is_leader_failed(leader):
            try:
                comm.probe(timeout=wait)
            except ReceiveTimeout:
                pass
            if is_leader_failed(leader):
                print(
                    f"Process {comm.rank}: A leader process (pid={leader}) has failed "
                    "or no initial leader"
                )
                package = Ballot(int(time.time()), comm.rank)
                print(
                    f"Process {comm.rank}: An election has been triggered with ballot "
                    f"{package.ballot}"
                )
                print(
                    f"Process {package.pid} sending election broadcast with ballot "
                    f"{package.ballot}"
                )
                _broadcast(comm, package)
        if counter.increment(comm.rank, 1) >= quorum:
            return leader


def run_election(
    comm: Communicator,
    counters: Sequence[SharedVar],
    wait: float = ELECTION_WAIT,
) -> int | None:
    """Elect, then settle the leader from one ballot per peer; return it."""
    election, responses = counters
    _check_counter(comm, responses)
    leader = elect_leader(comm, election, wait)
    comm.barrier()
    print(f"Process {comm.rank}: Leader after first phase: {leader}")

    checker = LeaderChecker(comm.rank, comm.size, responses)
    for other in range(comm.size):
        if other == comm.rank:
            continue
        message = comm.recv(other)
        if message.tag != SET_LEADER:
            continue
        leader, announcement = checker.check(message.payload, leader)
        if announcement is not None:
            print(
                f"Process {comm.rank}: Sending broadcast to set leader to "
                f"{announcement.pid} with ballot {announcement.ballot}"
            )
            _broadcast(comm, announcement)

    comm.barrier()
    print(f"Process {comm.rank}: Final Leader: {leader}")
    return leader


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description="Elect a leader among processes.")
    parser.add_argument("-n", "--procs", type=int, default=4, help="number of processes")
    parser.add_argument("--wait", type=float, default=ELECTION_WAIT, help="seconds to wait for ballots")
    args = parser.parse_args(argv)
    counters = (SharedVar(args.procs), SharedVar(args.procs))
    Cluster(args.procs).run(run_election, counters, args.wait)
    return 0