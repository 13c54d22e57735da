"""Single-decree Paxos over client, proposer, acceptor, learner and telemetry roles."""

from __future__ import annotations

import argparse
import random
import sys
import time
from typing import Any, Iterable, Mapping, Sequence

from mpidemos.cluster import Cluster, Communicator, ReceiveTimeout
from mpidemos.paxos_agents import (
    ACCEPTOR_VARS,
    LEARNER_VARS,
    PROPOSER_VARS,
    ROLES,
    AcceptorState,
    LearnerState,
    ProposerState,
    Send,
)
from mpidemos.roles import EMPTY, Role, Stamp, Tag, get_role, role_ranks
from mpidemos.shared import SharedVar
from mpidemos.snapshot import handle_snapshot_messages, trigger_snapshot

TIMEOUT_SEC = 5.0
TELEMETRY_VARS = ("msg_cnts",)
_RAND_MAX = 2**31 - 1
_PROBABILITY = 0.9
_RULE = "===================================="

SharedVars = Mapping[Role, Mapping[str, SharedVar]]


def _dispatch(channels: Sequence[Communicator], sends: Iterable[Send]) -> None:
    for role, tag, stamp in sends:
        comm = channels[role]
        for other in role_ranks(role, comm.size, ROLES):
            comm.send(other, tag, stamp)


def _timed_out(rank: int) -> None:
    print(f"Rank {rank}: Timeout waiting for vote.")


def client(
    channels: Sequence[Communicator], value: int | None = None, round_number: int | None = None
) -> Stamp:
    """Propose ``value`` to every proposer; return the proposal sent."""
    if value is None:
        value = 40 if random.randint(0, _RAND_MAX) > _PROBABILITY else 1
    if round_number is None:
        round_number = int(time.time())
    package = Stamp(value=value, round_number=round_number, custom_round_number=EMPTY)
    _dispatch(channels, [(Role.PROPOSER, Tag.PROPOSE, package)])
    return package


def proposer(
    channels: Sequence[Communicator],
    shared: Mapping[str, SharedVar] | None = None,
    timeout: float | None = TIMEOUT_SEC,
) -> ProposerState:
    """Run the proposer until its message quota, a refusal or a timeout."""
    comm = channels[Role.PROPOSER]
    state = ProposerState(comm.rank, comm.size, ROLES, shared)
    print("proposer ")
    while not state.done:
        try:
            message = comm.recv(timeout=timeout)
        except ReceiveTimeout:
            _timed_out(comm.rank)
            break
        stamp: Stamp = message.payload
        if message.tag == Tag.NACK:
            print(
                f"recv.custom_round_number: {stamp.custom_round_number}, "
                f"recv.round_number: {stamp.round_number}, recv.value: {stamp.value}, "
                f"round_number: {state.round_number}"
            )
        _dispatch(channels, state.handle(message.tag, stamp))
        if state.nacked:
            print("nack was received")
            break
        print(f"proposer cnt: {state.cnt}, threshold: {state.threshold}")
    return state


def acceptor(
    channels: Sequence[Communicator],
    shared: Mapping[str, SharedVar] | None = None,
    timeout: float | None = TIMEOUT_SEC,
) -> AcceptorState:
    """Run the acceptor until its message quota or a timeout."""
    comm = channels[Role.ACCEPTOR]
    state = AcceptorState(comm.rank, comm.size, ROLES, shared)
    print("acceptor ")
    while not state.done:
        try:
            message = comm.recv(timeout=timeout)
        except ReceiveTimeout:
            _timed_out(comm.rank)
            break
        _dispatch(channels, state.handle(message.tag, message.payload))
        print(f"acceptors cnt: {state.cnt}, threshold: {state.threshold}")
    return state


def learner(
    channels: Sequence[Communicator],
    shared: Mapping[str, SharedVar] | None = None,
    timeout: float | None = TIMEOUT_SEC,
) -> int:
    """Learn the decided value, then ask telemetry to snapshot it; return it."""
    comm = channels[Role.LEARNER]
    state = LearnerState(comm.rank, comm.size, ROLES, shared)
    print("learner ")
    while not state.done:
        try:
            message = comm.recv(timeout=timeout)
        except ReceiveTimeout:
            _timed_out(comm.rank)
            break
        stamp: Stamp = message.payload
        print(f"recv.value: {stamp.value}, recv.round_number: {stamp.round_number}")
        state.handle(message.tag, stamp)
        print(f"learner cnt: {state.cnt}, threshold: {state.threshold}")

    print(_RULE)
    print(_RULE)
    print(f"Decided value is :{state.decided}")
    print(_RULE)
    print(_RULE)
    trigger_snapshot(channels[Role.TELEMETRY], state.last)
    return state.decided


def _new_shared(size: int) -> dict[Role, dict[str, SharedVar]]:
    layout = {
        Role.PROPOSER: PROPOSER_VARS,
        Role.ACCEPTOR: ACCEPTOR_VARS,
        Role.LEARNER: LEARNER_VARS,
        Role.TELEMETRY: TELEMETRY_VARS,
    }
    return {role: {name: SharedVar(size) for name in names} for role, names in layout.items()}


def _collective_shared(comm: Communicator) -> SharedVars:
    created = _new_shared(comm.size) if comm.rank == 0 else None
    return comm.allreduce(created, lambda first, second: first if first is not None else second)


def run_single_paxos(
    comm: Communicator,
    shared: SharedVars | None = None,
    value: int | None = None,
    round_number: int | None = None,
    timeout: float | None = TIMEOUT_SEC,
) -> tuple[Role, Any, Stamp]:
    """Play this rank's role, then handle one snapshot message.

    ``shared`` maps each of the proposer, acceptor, learner and telemetry
    roles to its named shared variables; it is created collectively when
    omitted. Returns the role, the role's result and the snapshot payload.
    """
    if comm.size % ROLES != 0:
        raise ValueError(f"Must use multiple of {ROLES} processes for this example")
    print(f"You are in rank: {comm.rank}.")
    role = Role(get_role(comm.rank, ROLES, comm.size))
    channels = [comm.split(index) for index in range(ROLES)]

    if shared is None:
        shared = _collective_shared(comm)
    missing = [
        r.name
        for r in (Role.PROPOSER, Role.ACCEPTOR, Role.LEARNER, Role.TELEMETRY)
        if r not in shared
    ]
    if missing:
        raise ValueError(f"missing shared variables for: {', '.join(missing)}")

    result: Any = None
    if role == Role.CLIENT:
        result = client(channels, value, round_number)
    elif role == Role.PROPOSER:
        result = proposer(channels, shared[Role.PROPOSER], timeout)
    elif role == Role.ACCEPTOR:
        result = acceptor(channels, shared[Role.ACCEPTOR], timeout)
    elif role == Role.LEARNER:
        result = learner(channels, shared[Role.LEARNER], timeout)

    snapshot = handle_snapshot_messages(
        channels[Role.TELEMETRY], shared[Role.TELEMETRY]["msg_cnts"], None
    )
    for channel in channels:
        channel.barrier()
    return role, result, snapshot.payload


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description="Decide one value with Paxos.")
    parser.add_argument("-n", "--procs", type=int, default=ROLES, help="number of processes")
    parser.add_argument("--value", type=int, default=None, help="value the clients propose")
    parser.add_argument("--timeout", type=float, default=TIMEOUT_SEC, help="seconds to wait")
    args = parser.parse_args(argv)
    if args.procs < ROLES or args.procs % ROLES != 0:
        print(f"Must use multiple of {ROLES} processes for this example", file=sys.stderr)
        return 1
    Cluster(args.procs).run(run_single_paxos, None, args.value, None, args.timeout)
    return 0