import operator

import pytest

from mpidemos.cluster import (
    ANY_SOURCE,
    AbortError,
    Cluster,
    Message,
    ReceiveTimeout,
    main,
    process_count_report,
)


def test_send_and_recv_between_ranks():
    def target(comm):
        if comm.rank == 0:
            comm.send(1, 7, {"value": 40})
            return None
        return comm.recv(timeout=5)

    results = Cluster(2).run(target)
    assert results[1] == Message(0, 7, {"value": 40})


def test_payload_is_copied_on_send():
    def target(comm):
        data = [1, 2]
        comm.send(0, 0, data)
        data.append(3)
        return comm.recv(timeout=5).payload

    assert Cluster(1).run(target) == [[1, 2]]


def test_messages_from_one_sender_keep_order():
    def target(comm):
        if comm.rank == 0:
            for item in range(5):
                comm.send(1, 0, item)
            return None
        return [comm.recv(0, 0, timeout=5).payload for _ in range(5)]

    assert Cluster(2).run(target)[1] == list(range(5))


def test_recv_matches_tag_and_skips_others():
    def target(comm):
        comm.send(0, 1, "first")
        comm.send(0, 2, "second")
        wanted = comm.recv(ANY_SOURCE, 2, timeout=5)
        rest = comm.recv(timeout=5)
        return wanted.payload, rest.payload

    assert Cluster(1).run(target) == [("second", "first")]


def test_probe_does_not_consume_and_iprobe_empty():
    def target(comm):
        before = comm.iprobe()
        comm.send(0, 3, "x")
        peeked = comm.probe(timeout=5)
        taken = comm.recv(timeout=5)
        return before, peeked, taken, comm.iprobe()

    before, peeked, taken, after = Cluster(1).run(target)[0]
    assert before is None
    assert peeked == taken
    assert after is None


def test_recv_timeout():
    comm = Cluster(1).communicator(0)
    with pytest.raises(ReceiveTimeout):
        comm.recv(timeout=0.05)


def test_allreduce_gives_everyone_the_total():
    results = Cluster(4).run(lambda comm: comm.allreduce(comm.rank, operator.add))
    assert results == [sum(range(4))] * 4


def test_allreduce_max():
    results = Cluster(3).run(lambda comm: comm.allreduce(comm.rank, max))
    assert results == [2, 2, 2]


def test_reduce_only_root_gets_result():
    results = Cluster(3).run(lambda comm: comm.reduce(comm.rank + 1, operator.add, 0))
    assert results[0] == 1 + 2 + 3
    assert results[1:] == [None, None]


def test_split_groups_by_colour():
    def target(comm):
        sub = comm.split(comm.rank % 2)
        total = sub.allreduce(comm.rank, operator.add)
        return sub.rank, sub.size, total

    results = Cluster(4).run(target)
    assert [r[0] for r in results] == [0, 0, 1, 1]
    assert all(r[1] == 2 for r in results)
    assert results[0][2] == 0 + 2
    assert results[1][2] == 1 + 3


def test_split_communicator_is_separate_from_world():
    def target(comm):
        sub = comm.split(0)
        sub.send(0, 0, "sub")
        if comm.rank == 0:
            return comm.iprobe(), sub.recv(timeout=5).payload
        return None

    results = Cluster(2).run(target)
    assert results[0] == (None, "sub")


def test_abort_stops_every_rank():
    def target(comm):
        if comm.rank == 0:
            comm.abort(3)
        comm.recv()

    with pytest.raises(AbortError) as info:
        Cluster(3).run(target)
    assert info.value.code == 3


def test_error_in_one_rank_is_raised():
    def target(comm):
        if comm.rank == 1:
            raise KeyError("boom")
        comm.barrier()

    with pytest.raises(KeyError):
        Cluster(2).run(target)


def test_send_to_missing_rank():
    comm = Cluster(2).communicator(0)
    with pytest.raises(ValueError):
        comm.send(5, 0, None)


def test_cluster_needs_a_process():
    with pytest.raises(ValueError):
        Cluster(0)


def test_process_count_report():
    results = Cluster(3).run(process_count_report)
    assert results == ["Total number of processes: 3", None, None]


def test_main_prints_total(capsys):
    assert main(["-n", "2"]) == 0
    assert capsys.readouterr().out == "Total number of processes: 2\n"