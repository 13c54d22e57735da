"""Sequence Paxos: single-decree Paxos repeated over a list of values in order."""

from __future__ import annotations

import argparse
import sys
import time
from dataclasses import replace
from typing import Any, Sequence

from mpidemos.cluster import Communicator
from mpidemos.roles import DEFAULT_ROLES, EMPTY, Role, Stamp, Tag, get_role, quorum, role_ranks

LIST_SIZE = 100
NUM_OF_ELEM = 6
DEFAULT_SEQUENCE = (10, 20, 30, 40, 50, 60)
_RULE = "===================================="


def _per_role(comm: Communicator) -> int:
    return comm.size // DEFAULT_ROLES


def client(channels: Sequence[Communicator], sequence: Sequence[int] = DEFAULT_SEQUENCE) -> list[int]:
    """Propose each value in turn until the learners report it decided.

    Returns every decided position reported back, in order.
    """
    control = channels[Role.CLIENT]
    proposers = channels[Role.PROPOSER]
    rank = control.rank
    threshold = _per_role(control)
    total = len(sequence)
    if total > LIST_SIZE:
        raise ValueError(f"at most {LIST_SIZE} values can be decided, got {total}")

    position = 0
    reports: list[int] = []
    while position <= total - 1:
        package = Stamp(
            value=sequence[position],
            round_number=int(time.time()),
            custom_round_number=EMPTY,
            total_size=total,
        )
        for other in role_ranks(Role.PROPOSER, proposers.size):
            proposers.send(other, Tag.PROPOSE, package)
            print(
                f"Client {rank}: Sent propose for sequence[{position}] = {package.value} "
                f"to proposer {other}"
            )
        for count in range(1, threshold + 1):
            message = control.recv(tag=Tag.DECIDE_SEQ)
            position = message.payload
            print(f"Client {rank}: Received recv_last_pos: {position} (count: {count})")
            reports.append(position)
    print(f"Client {rank}: Finished processing the sequence.")
    return reports


def proposer(channels: Sequence[Communicator]) -> list[int]:
    """Drive prepare and accept phases for each proposal; return decided values."""
    comm = channels[Role.PROPOSER]
    acceptors = channels[Role.ACCEPTOR]
    learners = channels[Role.LEARNER]
    rank = comm.rank
    per_role = _per_role(comm)
    threshold = 3 * per_role
    majority = quorum(per_role)

    decided: list[int] = []
    total = 0
    accept_value = Stamp()
    print(f"proposer {rank}")

    while True:
        if total != 0 and not 0 <= len(decided) <= total - 1:
            print(f"Proposer {rank} ENDED")
            break

        round_number = EMPTY
        current_value = EMPTY
        max_promise_round_number = EMPTY
        promise_cnt = 0
        acks = 0
        cnt = 0

        while cnt < threshold:
            message = comm.recv()
            tag = message.tag
            stamp: Stamp = message.payload
            total = stamp.total_size
            print(
                f"Proposer {rank}: Received value: {stamp.value}, round: {stamp.round_number}, "
                f"tag: {int(tag)}, last_pos: {len(decided)}"
            )

            if tag == Tag.PROPOSE:
                round_number = stamp.round_number
                current_value = stamp.value
                max_promise_round_number = stamp.round_number
                for other in role_ranks(Role.ACCEPTOR, comm.size):
                    acceptors.send(other, Tag.PREPARE, stamp)
            elif tag == Tag.PROMISE:
                if stamp.custom_round_number == round_number:
                    promise_cnt += 1
                    if max_promise_round_number <= stamp.round_number:
                        max_promise_round_number = stamp.round_number
                        accept_value = replace(stamp)
                    if promise_cnt == majority:
                        if accept_value.value == EMPTY:
                            accept_value.value = current_value
                        accept_value.custom_round_number = round_number
                        for other in role_ranks(Role.ACCEPTOR, comm.size):
                            acceptors.send(other, Tag.ACCEPT, accept_value)
            elif tag == Tag.ACCEPTED:
                if stamp.custom_round_number == round_number:
                    acks += 1
                    if acks == majority:
                        decided.append(accept_value.value)
                        for other in role_ranks(Role.LEARNER, comm.size):
                            learners.send(other, Tag.DECIDE, tuple(decided))
            elif tag == Tag.NACK:
                print(
                    f"Proposer {rank}: Received NACK for round {stamp.custom_round_number}, "
                    f"current round {round_number}"
                )
                if stamp.custom_round_number == round_number:
                    break
            cnt += 1
            print(f"Proposer {rank}: cnt: {cnt}, threshold: {threshold}")

        print(f"Proposer {rank}: End of inner loop, cnt: {cnt}, threshold: {threshold}")
    print(f"Proposer {rank}: Exiting main loop.")
    return decided


def _answer(proposers: Communicator, tag: Tag, payload: Stamp) -> None:
    for other in role_ranks(Role.PROPOSER, proposers.size):
        proposers.send(other, tag, payload)


def acceptor(channels: Sequence[Communicator]) -> list[int]:
    """Promise and accept rounds, one epoch per value; return accepted values."""
    comm = channels[Role.ACCEPTOR]
    proposers = channels[Role.PROPOSER]
    rank = comm.rank
    threshold = 2 * _per_role(comm)
    epochs = 0
    total = 0
    accepted: list[int] = []
    print(f"acceptor {rank}")

    while True:
        print(f"accept_epoch_cnts: {epochs}, recv.total_size: {total}")
        epochs += 1
        if total != 0 and not 0 <= epochs <= total:
            print(f"ACCEPTOR {rank} ENDED")
            break

        round_number_promise = EMPTY
        for cnt in range(1, threshold + 1):
            message = comm.recv()
            tag = message.tag
            stamp: Stamp = message.payload
            total = stamp.total_size

            if tag in (Tag.PREPARE, Tag.ACCEPT):
                if round_number_promise <= stamp.round_number:
                    round_number_promise = stamp.round_number
                    reply = Stamp(
                        value=stamp.value,
                        round_number=stamp.round_number,
                        custom_round_number=stamp.round_number,
                        total_size=stamp.total_size,
                    )
                    if tag == Tag.PREPARE:
                        _answer(proposers, Tag.PROMISE, reply)
                    else:
                        accepted.append(stamp.value)
                        _answer(proposers, Tag.ACCEPTED, reply)
                else:
                    _answer(proposers, Tag.NACK, replace(stamp, custom_round_number=stamp.round_number))
            print(f"Acceptor {rank}: cnt: {cnt}, threshold: {threshold}")
        print(f"Acceptor {rank}: End of inner loop, cnt: {threshold}, threshold: {threshold}")
    print(f"Acceptor {rank}: Exiting main loop.")
    return accepted


def learner(channels: Sequence[Communicator], total: int = NUM_OF_ELEM) -> list[int]:
    """Collect decisions until ``total`` values are known; report progress to clients."""
    comm = channels[Role.LEARNER]
    clients = channels[Role.CLIENT]
    rank = comm.rank
    threshold = _per_role(comm)
    saved: tuple[int, ...] = ()
    print(f"learner {rank}")

    while True:
        if len(saved) >= total:
            comm.abort(1)
        print(f"Learner {rank}: Waiting for decide messages (current last_pos: {len(saved)})")
        for _ in range(threshold):
            message = comm.recv(tag=Tag.DECIDE)
            values = tuple(message.payload)
            print(
                f"Learner {rank}: Received decide message from {message.source}, "
                f"recv.last_pos: {len(values)}"
            )
            if len(saved) < len(values):
                saved = values
                print(f"Learner {rank}: Updated saved_recv.last_pos to {len(saved)}")
        print(
            f"Learner {rank}: Received {threshold} decide messages (threshold: {threshold}), "
            f"current last_pos: {len(saved)}"
        )

        for other in role_ranks(Role.CLIENT, comm.size):
            clients.send(other, Tag.DECIDE_SEQ, len(saved))
            print(f"Learner {rank}: Sent saved_recv.last_pos ({len(saved)}) to client {other}")

        print(f"Learner {rank}: Decided values up to index {len(saved) - 1}:")
        print(_RULE)
        print(_RULE)
        for index, value in enumerate(saved):
            print(f"index: {index}, value: {value}")
        print(_RULE)
        print(_RULE)

        if len(saved) >= total:
            break
    print(f"Learner {rank}: Finished learning all elements.")
    return list(saved)


def run_sequence_paxos(comm: Communicator, sequence: Sequence[int] = DEFAULT_SEQUENCE) -> Any:
    """Play this rank's role in deciding ``sequence``; return the role's result."""
    if comm.size != DEFAULT_ROLES:
        raise ValueError(f"Must be {DEFAULT_ROLES} processes for this example")
    if not sequence:
        raise ValueError("the sequence to decide is empty")
    if len(sequence) > LIST_SIZE:
        raise ValueError(f"at most {LIST_SIZE} values can be decided, got {len(sequence)}")

    print(f"You are in rank: {comm.rank}.")
    role = get_role(comm.rank, DEFAULT_ROLES, comm.size)
    channels = [comm.split(index) for index in range(DEFAULT_ROLES)]

    if role == Role.CLIENT:
        result: Any = client(channels, sequence)
    elif role == Role.PROPOSER:
        result = proposer(channels)
    elif role == Role.ACCEPTOR:
        result = acceptor(channels)
    elif role == Role.LEARNER:
        result = learner(channels, len(sequence))
    else:
        result = None

    for channel in channels:
        channel.barrier()
    return result


def main(argv: list[str] | None = None) -> int:
    from mpidemos.cluster import Cluster

    parser = argparse.ArgumentParser(description="Decide a sequence of values with Paxos.")
    parser.add_argument("-n", "--procs", type=int, default=DEFAULT_ROLES, help="number of processes")
    parser.add_argument("--values", type=int, nargs="+", default=list(DEFAULT_SEQUENCE))
    args = parser.parse_args(argv)
    if args.procs != DEFAULT_ROLES:
        print(f"Must be {DEFAULT_ROLES} processes for this example", file=sys.stderr)
        return 1
    Cluster(args.procs).run(run_sequence_paxos, args.values)
    return 0