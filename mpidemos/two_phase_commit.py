"""Two-phase commit between a coordinator (rank 0) and participants."""

from __future__ import annotations

import argparse
import sys
from dataclasses import dataclass
from enum import IntEnum
from typing import Callable, Sequence

from mpidemos.cluster import Cluster, Communicator, ReceiveTimeout
from mpidemos.shared import SharedVar

TIMEOUT_SEC = 5.0
PAYLOAD = "hello world\n"
_RULE = "================================"


class Vote(IntEnum):
    """What a rank says about committing."""

    NO = 0
    YES = 1
    NEUTRAL = -1


class Tag(IntEnum):
    """Tags of the commit protocol's messages."""

    CANCOMMIT = 0
    COMMIT = 1
    PRECOMMIT = 2
    ABORT = 3
    VOTE = 4
    NOVOTE = 5


class CommitAborted(RuntimeError):
    """Raised on a rank that decides the transaction must not go ahead."""

    def __init__(self, rank: int, role: str) -> None:
        super().__init__(f"{role} at rank {rank} aborted the commit")
        self.rank = rank
        self.role = role


def create_string(text: str) -> str:
    """Print ``text`` and hand it back."""
    print(text)
    return text


def save_string(text: str) -> int:
    """Print ``text`` twice over; 0 means it was saved."""
    print(f"{text}{text}")
    return 0


@dataclass
class Transaction:
    """The two operations every rank runs once the commit is agreed."""

    create: Callable[[str], str] = create_string
    save: Callable[[str], int] = save_string


def _execute(transaction: Transaction, who: str, rank: int) -> tuple[str, int]:
    print(_RULE)
    print(f"{who} COMMIT SUCCEEDED, rank: {rank}")
    result_str = transaction.create(PAYLOAD)
    print(f"Result str: {result_str}")
    result_int = transaction.save(PAYLOAD)
    print(f"Result int: {result_int}")
    print(_RULE)
    return result_str, result_int


def can_commit(comm: Communicator) -> None:
    """Ask every rank of ``comm`` whether it can commit."""
    for other in range(comm.size):
        comm.send(other, Tag.CANCOMMIT, Vote.NEUTRAL)


def coordinator(
    comm: Communicator,
    participants: Communicator,
    transaction: Transaction | None = None,
    timeout: float | None = TIMEOUT_SEC,
) -> tuple[str, int]:
    """Collect votes on ``comm`` and tell ``participants`` to commit or abort.

    Returns the transaction's results on commit; raises CommitAborted on a
    no-vote, a timeout, or too few votes.
    """
    if transaction is None:
        transaction = Transaction()
    threshold = comm.size - 1
    votes = 0
    count = 0
    results: tuple[str, int] | None = None
    while True:
        try:
            message = comm.recv(timeout=timeout)
        except ReceiveTimeout:
            print(f"Rank {comm.rank}: Timeout waiting for vote.")
            break
        if message.tag == Tag.VOTE:
            votes += 1
        elif message.tag == Tag.NOVOTE:
            break
        count += 1
        print(f"vote: {votes}, cnt: {count}")

        if votes == threshold:
            for other in range(1, participants.size):
                participants.send(other, Tag.COMMIT, Vote.YES)
            results = _execute(transaction, "CORDINATOR", comm.rank)
            break
        if count == threshold:
            break

    if results is None:
        print("CORDINATOR COMMIT FAILED")
        for other in range(1, participants.size):
            participants.send(other, Tag.ABORT, Vote.NO)
        raise CommitAborted(comm.rank, "coordinator")
    return results


def participant_prepare(
    comm: Communicator,
    coordinator_comm: Communicator,
    counter: SharedVar,
    timeout: float | None = TIMEOUT_SEC,
) -> bool:
    """Answer the coordinator's question; return False if it never came.

    A timeout sends a no-vote to the coordinator.
    """
    threshold = comm.size - 1
    count = counter.reset(comm.rank, 0)
    while True:
        try:
            message = comm.recv(timeout=timeout)
        except ReceiveTimeout:
            print(f"Rank {comm.rank}: Timeout waiting for CANCOMMIT.")
            coordinator_comm.send(0, Tag.NOVOTE, Vote.NO)
            return False
        if message.tag == Tag.CANCOMMIT:
            coordinator_comm.send(0, Tag.VOTE, Vote.YES)
        count = counter.increment(comm.rank, 1)
        if count == threshold:
            counter.reset(comm.rank, 0)
            return True


def participant_commit(
    comm: Communicator,
    transaction: Transaction | None,
    counter: SharedVar,
    aborted: SharedVar,
    timeout: float | None = TIMEOUT_SEC,
) -> tuple[str, int]:
    """Wait for the coordinator's decision and carry it out.

    Returns the transaction's results on commit; raises CommitAborted on an
    abort, a timeout, or any other message.
    """
    if transaction is None:
        transaction = Transaction()
    counter.reset(comm.rank, 0)
    is_aborted = aborted.reset(comm.rank, 1)
    results: tuple[str, int] | None = None
    while True:
        try:
            message = comm.recv(timeout=timeout)
        except ReceiveTimeout:
            print(f"Rank {comm.rank}: Timeout waiting for COMMIT or ABORT.")
            is_aborted = aborted.reset(comm.rank, 1)
            break
        if message.tag == Tag.COMMIT:
            results = _execute(transaction, "PARTICIPANT", comm.rank)
            is_aborted = aborted.reset(comm.rank, 0)
            break
        if message.tag == Tag.ABORT:
            is_aborted = aborted.reset(comm.rank, 1)
            break
        if counter.increment(comm.rank, 1) == 1:
            counter.reset(comm.rank, 0)
            break

    if is_aborted or results is None:
        print("PARTICIPANT COMMIT ABORTED")
        raise CommitAborted(comm.rank, "participant")
    return results


def _shared_var(comm: Communicator) -> SharedVar:
    created = SharedVar(comm.size) if comm.rank == 0 else None
    return comm.allreduce(created, lambda first, second: first if first is not None else second)


def run_two_phase_commit(
    comm: Communicator,
    channels: Sequence[Communicator] | None = None,
    shared: Sequence[SharedVar] | None = None,
    transaction: Transaction | None = None,
    timeout: float | None = TIMEOUT_SEC,
) -> tuple[str, int]:
    """Run the whole protocol on every rank; return this rank's results.

    ``channels`` is the (coordinator, participant) pair of communicators and
    ``shared`` the (prepare, commit, aborted) shared variables; both are
    created collectively when omitted.
    """
    if comm.size <= 1:
        raise ValueError("Must more than one process for this example")
    if channels is None:
        coordinator_comm, participant_comm = comm.split(0), comm.split(1)
    else:
        coordinator_comm, participant_comm = channels
    if shared is None:
        prepare_counter = _shared_var(participant_comm)
        commit_counter = _shared_var(participant_comm)
        aborted = _shared_var(participant_comm)
    else:
        prepare_counter, commit_counter, aborted = shared
    if transaction is None:
        transaction = Transaction()

    print(f"Total number of processes: {comm.size}, rank: {comm.rank}")
    if comm.rank == 0:
        print("Entering Coordinator")
        can_commit(participant_comm)
        results = coordinator(coordinator_comm, participant_comm, transaction, timeout)
        print("Leaving Coordinator")
    else:
        print("Entering Participant")
        participant_prepare(participant_comm, coordinator_comm, prepare_counter, timeout)
        results = participant_commit(
            participant_comm, transaction, commit_counter, aborted, timeout
        )
        print("Leaving Participant")

    coordinator_comm.barrier()
    participant_comm.barrier()
    return results


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description="Two-phase commit between processes.")
    parser.add_argument("-n", "--procs", type=int, default=4, help="number of processes")
    parser.add_argument("--timeout", type=float, default=TIMEOUT_SEC, help="seconds to wait")
    args = parser.parse_args(argv)
    if args.procs <= 1:
        print("Must more than one process for this example", file=sys.stderr)
        return 1
    try:
        Cluster(args.procs).run(run_two_phase_commit, None, None, None, args.timeout)
    except CommitAborted as exc:
        print(exc, file=sys.stderr)
        return 1
    return 0