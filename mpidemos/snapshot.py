"""Telemetry messages that save or discard a snapshot of a decided value."""

from __future__ import annotations

from enum import IntEnum
from typing import Any

from mpidemos.cluster import Communicator, Message
from mpidemos.shared import SharedVar


class ManageTag(IntEnum):
    """Tags of snapshot management messages."""

    SNAPSHOT = 0
    REVERT = 1


_OPEN_SAVE = "#################### SAVING SNAPSHOT ###################"
_OPEN_DELETE = "#################### DELETE SNAPSHOT ###################"
_CLOSE = "##################### END SNAPSHOT ####################"


def trigger_snapshot(comm: Communicator, payload: Any) -> None:
    """Ask every rank of ``comm`` to save ``payload``."""
    for other in range(comm.size):
        comm.send(other, ManageTag.SNAPSHOT, payload)


def reset_snapshot(comm: Communicator) -> None:
    """Ask every rank of ``comm`` to discard its snapshot."""
    for other in range(comm.size):
        comm.send(other, ManageTag.REVERT, None)


def _report(message: Message) -> str:
    try:
        tag = ManageTag(message.tag)
    except ValueError:
        return ""
    if tag is ManageTag.SNAPSHOT:
        stamp = message.payload
        return (
            f"{_OPEN_SAVE}recv.custom_round_number: {stamp.custom_round_number}, "
            f"recv.round_number: {stamp.round_number}, recv.value: {stamp.value}\n{_CLOSE}"
        )
    return f"{_OPEN_DELETE}PERFORM CUSTOM LOGIC FOR MANAGING SNAPSHOT{_CLOSE}"


def handle_snapshot_messages(
    comm: Communicator, counter: SharedVar, timeout: float | None = None
) -> Message:
    """Receive and report one management message; return it.

    Raises ReceiveTimeout if ``timeout`` passes with nothing received.
    """
    while True:
        message = comm.recv(timeout=timeout)
        print(_report(message), end="")
        if counter.increment(comm.rank, 1) > 0:
            return message