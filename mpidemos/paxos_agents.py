"""Per-role Paxos state machines whose bookkeeping lives in shared variables."""

from __future__ import annotations

from dataclasses import replace
from typing import Mapping, Tuple

from mpidemos.roles import EMPTY, Role, Stamp, Tag, quorum
from mpidemos.shared import SharedVar

ROLES = len(Role)

PROPOSER_VARS = (
    "round_number",
    "current_value",
    "max_promise_round_number",
    "promise_cnt",
    "acks",
    "msg_cnts",
)
ACCEPTOR_VARS = (
    "round_number_promise",
    "round_number_accepted",
    "current_value_accepted",
    "msg_cnts",
)
LEARNER_VARS = ("current_value_decided", "msg_cnts")

Send = Tuple[Role, Tag, Stamp]


def _per_role(size: int, n_roles: int) -> int:
    if n_roles < 1:
        raise ValueError("there must be at least one role")
    per_role = size // n_roles
    if per_role < 1:
        raise ValueError(f"{size} processes cannot fill {n_roles} roles")
    return per_role


def _bind(
    names: tuple[str, ...], size: int, shared: Mapping[str, SharedVar] | None
) -> dict[str, SharedVar]:
    if shared is None:
        return {name: SharedVar(size) for name in names}
    missing = [name for name in names if name not in shared]
    if missing:
        raise ValueError(f"missing shared variables: {', '.join(missing)}")
    return {name: shared[name] for name in names}


class ProposerState:
    """A proposer's round, promises and acknowledgements.

    ``handle`` takes one received message and returns what to send, as
    (role, tag, stamp) triples addressed to every rank of that role.
    """

    def __init__(
        self,
        rank: int,
        size: int,
        n_roles: int = ROLES,
        shared: Mapping[str, SharedVar] | None = None,
    ) -> None:
        self.rank = rank
        self.per_role = _per_role(size, n_roles)
        self.threshold = 3 * self.per_role
        self.majority = quorum(self.per_role)
        self.shared = _bind(PROPOSER_VARS, size, shared)
        self.round_number = EMPTY
        self.current_value = EMPTY
        self.max_promise_round_number = EMPTY
        self.promise_cnt = 0
        self.acks = 0
        self.cnt = 0
        self.accept_value = Stamp()
        self.nacked = False
        self.done = False

    def handle(self, tag: int, stamp: Stamp) -> list[Send]:
        """Process one message; return the messages it causes."""
        shared = self.shared
        sends: list[Send] = []
        if tag == Tag.PROPOSE:
            self.round_number = shared["round_number"].reset(self.rank, stamp.round_number)
            self.current_value = shared["current_value"].reset(self.rank, stamp.value)
            self.max_promise_round_number = shared["max_promise_round_number"].reset(
                self.rank, stamp.round_number
            )
            sends.append((Role.ACCEPTOR, Tag.PREPARE, replace(stamp)))
        elif tag == Tag.PROMISE:
            if stamp.custom_round_number == self.round_number:
                self.promise_cnt = shared["promise_cnt"].increment(self.rank, 1)
                if self.max_promise_round_number <= stamp.round_number:
                    self.max_promise_round_number = shared["max_promise_round_number"].reset(
                        self.rank, stamp.round_number
                    )
                    self.accept_value = replace(stamp)
                if self.promise_cnt == self.majority:
                    if self.accept_value.value == EMPTY:
                        self.accept_value.value = self.current_value
                    sends.append((Role.ACCEPTOR, Tag.ACCEPT, replace(self.accept_value)))
        elif tag == Tag.ACCEPTED:
            if stamp.custom_round_number == self.round_number:
                self.acks = shared["acks"].increment(self.rank, 1)
                if self.acks == self.majority:
                    sends.append((Role.LEARNER, Tag.DECIDE, replace(self.accept_value)))
        elif tag == Tag.NACK:
            if stamp.custom_round_number == self.round_number:
                self.round_number = 0
                self.nacked = True
                self.done = True
                return []
        self.cnt = shared["msg_cnts"].increment(self.rank, 1)
        if self.cnt == self.threshold:
            self.done = True
        return sends


class AcceptorState:
    """An acceptor's promised and accepted rounds and accepted value."""

    def __init__(
        self,
        rank: int,
        size: int,
        n_roles: int = ROLES,
        shared: Mapping[str, SharedVar] | None = None,
    ) -> None:
        self.rank = rank
        self.per_role = _per_role(size, n_roles)
        self.threshold = 2 * self.per_role
        self.shared = _bind(ACCEPTOR_VARS, size, shared)
        self.round_number_promise = EMPTY
        self.round_number_accepted = EMPTY
        self.current_value_accepted = EMPTY
        self.cnt = 0
        self.done = False

    def _take(self, stamp: Stamp) -> Stamp:
        shared = self.shared
        self.round_number_promise = shared["round_number_promise"].reset(
            self.rank, stamp.round_number
        )
        self.current_value_accepted = shared["current_value_accepted"].reset(self.rank, stamp.value)
        self.round_number_accepted = shared["round_number_accepted"].reset(
            self.rank, stamp.round_number
        )
        return Stamp(
            value=self.current_value_accepted,
            round_number=self.round_number_accepted,
            custom_round_number=stamp.round_number,
        )

    def handle(self, tag: int, stamp: Stamp) -> list[Send]:
        """Answer a prepare or accept with a promise, acceptance or refusal."""
        sends: list[Send] = []
        if tag in (Tag.PREPARE, Tag.ACCEPT):
            if self.round_number_promise <= stamp.round_number:
                reply = Tag.PROMISE if tag == Tag.PREPARE else Tag.ACCEPTED
                sends.append((Role.PROPOSER, reply, self._take(stamp)))
            else:
                refusal = replace(stamp, custom_round_number=stamp.round_number)
                sends.append((Role.PROPOSER, Tag.NACK, refusal))
        self.cnt = self.shared["msg_cnts"].increment(self.rank, 1)
        if self.cnt == self.threshold:
            self.done = True
        return sends


class LearnerState:
    """A learner keeps the first value it is told has been decided."""

    def __init__(
        self,
        rank: int,
        size: int,
        n_roles: int = ROLES,
        shared: Mapping[str, SharedVar] | None = None,
    ) -> None:
        self.rank = rank
        self.per_role = _per_role(size, n_roles)
        self.threshold = self.per_role
        self.shared = _bind(LEARNER_VARS, size, shared)
        self.decided = EMPTY
        self.last = Stamp()
        self.cnt = 0
        self.done = False

    def handle(self, tag: int, stamp: Stamp) -> list[Send]:
        """Record a decision; a learner never sends anything in reply."""
        self.last = replace(stamp)
        if tag == Tag.DECIDE and self.decided == EMPTY:
            self.decided = self.shared["current_value_decided"].reset(self.rank, stamp.value)
        self.cnt = self.shared["msg_cnts"].increment(self.rank, 1)
        if self.cnt == self.threshold:
            self.done = True
        return []