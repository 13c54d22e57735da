"""Roles, message tags and the stamp exchanged by the consensus demos."""

from __future__ import annotations

from dataclasses import dataclass
from enum import IntEnum

EMPTY = -999
DEFAULT_ROLES = 4


class Role(IntEnum):
    """The part a rank plays; ranks are grouped into equal blocks by role."""

    CLIENT = 0
    PROPOSER = 1
    ACCEPTOR = 2
    LEARNER = 3
    TELEMETRY = 4


class Tag(IntEnum):
    """Tags of the messages passed between roles."""

    PROPOSE = 0
    PROMISE = 1
    ACCEPTED = 2
    NACK = 3
    PREPARE = 4
    ACCEPT = 5
    DECIDE = 6
    DECIDE_SEQ = 7
    PINGS = 8


@dataclass
class Stamp:
    """A proposed or accepted value with the rounds it belongs to."""

    value: int = 0
    round_number: int = 0
    custom_round_number: int = 0
    total_size: int = 0


def get_role(rank: int, n_roles: int, nproc: int) -> int:
    """Index of the block of ``nproc // n_roles`` ranks that holds ``rank``.

    Ranks past the last full block fall into further blocks of the same size,
    so the result can exceed the number of roles.
    """
    if n_roles < 1:
        raise ValueError("there must be at least one role")
    width = nproc // n_roles
    if width < 1:
        raise ValueError(f"{nproc} processes cannot fill {n_roles} roles")
    index = 0
    end = 0
    while index < n_roles or end < nproc:
        start = index * width
        end = start + width - 1
        if start <= rank <= end:
            return index
        index += 1
    return index


def role_ranks(role: int, nproc: int, n_roles: int = DEFAULT_ROLES) -> range:
    """The ranks that play ``role`` when ``nproc`` ranks share ``n_roles`` roles."""
    if n_roles < 1:
        raise ValueError("there must be at least one role")
    width = nproc // n_roles
    start = int(role) * width
    return range(start, start + width)


def quorum(count: int) -> int:
    """Number of answers out of ``count`` that settle a phase (at least one)."""
    return int(max(count / 2.0, 1))