from collections import namedtuple

import pytest

from mpidemos.cluster import Cluster, ReceiveTimeout
from mpidemos.shared import SharedVar
from mpidemos.snapshot import (
    ManageTag,
    handle_snapshot_messages,
    reset_snapshot,
    trigger_snapshot,
)

Stamp = namedtuple("Stamp", "value round_number custom_round_number")


def _save(comm, counter, payload):
    if comm.rank == 0:
        trigger_snapshot(comm, payload)
    return handle_snapshot_messages(comm, counter, 5.0)


def test_snapshot_reaches_every_rank(capsys):
    payload = Stamp(40, 1700000000, -999)
    counter = SharedVar(3)
    messages = Cluster(3).run(_save, counter, payload)
    for message in messages:
        assert message.tag == ManageTag.SNAPSHOT
        assert message.source == 0
        assert message.payload == payload
    assert counter.values() == [1, 1, 1]
    out = capsys.readouterr().out
    assert out.count("SAVING SNAPSHOT") == 3
    assert "recv.custom_round_number: -999, recv.round_number: 1700000000, recv.value: 40" in out


def _revert(comm, counter):
    if comm.rank == 1:
        reset_snapshot(comm)
    return handle_snapshot_messages(comm, counter, 5.0)


def test_revert_reaches_every_rank(capsys):
    counter = SharedVar(2)
    messages = Cluster(2).run(_revert, counter)
    assert [m.tag for m in messages] == [ManageTag.REVERT, ManageTag.REVERT]
    assert all(m.payload is None and m.source == 1 for m in messages)
    out = capsys.readouterr().out
    assert out.count("DELETE SNAPSHOT") == 2
    assert "PERFORM CUSTOM LOGIC FOR MANAGING SNAPSHOT" in out


def test_only_one_message_is_handled():
    comm = Cluster(1).communicator(0)
    counter = SharedVar(1)
    trigger_snapshot(comm, Stamp(1, 2, 3))
    reset_snapshot(comm)
    first = handle_snapshot_messages(comm, counter, 1.0)
    assert first.tag == ManageTag.SNAPSHOT
    assert comm.iprobe().tag == ManageTag.REVERT
    assert counter.values() == [1]


def test_unknown_tag_is_counted_silently(capsys):
    comm = Cluster(1).communicator(0)
    counter = SharedVar(1)
    comm.send(0, 7, "other")
    message = handle_snapshot_messages(comm, counter, 1.0)
    assert message.payload == "other"
    assert capsys.readouterr().out == ""
    assert counter.values() == [1]


def test_timeout_without_messages():
    comm = Cluster(1).communicator(0)
    with pytest.raises(ReceiveTimeout):
        handle_snapshot_messages(comm, SharedVar(1), 0.05)