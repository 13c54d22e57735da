import pytest

from mpidemos.cluster import Cluster
from mpidemos.paxos_agents import ACCEPTOR_VARS, LEARNER_VARS, PROPOSER_VARS
from mpidemos.roles import EMPTY, Role, Stamp, Tag
from mpidemos.shared import SharedVar
from mpidemos.single_paxos import (
    client,
    learner,
    main,
    proposer,
    run_single_paxos,
)
from mpidemos.snapshot import ManageTag


def _channels(comm):
    return [comm.split(index) for index in range(5)]


def test_five_processes_decide_the_proposed_value():
    results = Cluster(5).run(run_single_paxos, None, 40, 1000, 5.0)
    roles = [role for role, _, _ in results]
    assert roles == [Role.CLIENT, Role.PROPOSER, Role.ACCEPTOR, Role.LEARNER, Role.TELEMETRY]
    assert results[0][1] == Stamp(40, 1000, EMPTY)
    assert results[1][1].done
    assert results[1][1].accept_value.value == 40
    assert results[2][1].current_value_accepted == 40
    assert results[3][1] == 40
    assert results[4][1] is None
    snapshots = {repr(payload) for _, _, payload in results}
    assert len(snapshots) == 1
    assert results[0][2].value == 40
    assert results[0][2].round_number == 1000


def test_explicit_shared_variables_record_the_run():
    shared = {
        Role.PROPOSER: {name: SharedVar(5) for name in PROPOSER_VARS},
        Role.ACCEPTOR: {name: SharedVar(5) for name in ACCEPTOR_VARS},
        Role.LEARNER: {name: SharedVar(5) for name in LEARNER_VARS},
        Role.TELEMETRY: {"msg_cnts": SharedVar(5)},
    }
    Cluster(5).run(run_single_paxos, shared, 12, 500, 5.0)
    assert shared[Role.LEARNER]["current_value_decided"].values()[3] == 12
    assert sum(shared[Role.PROPOSER]["msg_cnts"].values()) == 3
    assert sum(shared[Role.ACCEPTOR]["msg_cnts"].values()) == 2
    assert shared[Role.TELEMETRY]["msg_cnts"].values() == [1, 1, 1, 1, 1]


def test_missing_role_in_shared_is_rejected():
    shared = {Role.PROPOSER: {name: SharedVar(5) for name in PROPOSER_VARS}}
    with pytest.raises(ValueError):
        Cluster(5).run(run_single_paxos, shared, 1, 1, 1.0)


def test_process_count_must_be_multiple_of_roles():
    with pytest.raises(ValueError):
        Cluster(4).run(run_single_paxos, None, 1, 1, 1.0)


def _client_probe(comm):
    channels = _channels(comm)
    if comm.rank == 0:
        return client(channels, 7, 123)
    if comm.rank == 1:
        return channels[Role.PROPOSER].recv(timeout=5)
    return None


def test_client_sends_proposal_to_proposer():
    results = Cluster(5).run(_client_probe)
    assert results[0] == Stamp(7, 123, EMPTY)
    message = results[1]
    assert message.tag == Tag.PROPOSE
    assert message.source == 0
    assert message.payload == results[0]


def _lonely_learner(comm):
    channels = _channels(comm)
    decided = learner(channels, None, 0.05) if comm.rank == 3 else None
    message = channels[Role.TELEMETRY].recv(timeout=5)
    return decided, message.tag, message.payload


def test_learner_without_decision_still_triggers_snapshot():
    results = Cluster(5).run(_lonely_learner)
    assert results[3][0] == EMPTY
    assert all(tag == ManageTag.SNAPSHOT for _, tag, _ in results)
    assert all(payload == Stamp() for _, _, payload in results)


def _lonely_proposer(comm):
    channels = _channels(comm)
    if comm.rank == 1:
        return proposer(channels, None, 0.05)
    return None


def test_proposer_gives_up_after_timeout():
    state = Cluster(5).run(_lonely_proposer)[1]
    assert state.cnt == 0
    assert not state.done
    assert state.round_number == EMPTY


def test_main_rejects_wrong_process_count():
    assert main(["-n", "4"]) == 1


def test_main_prints_decided_value(capsys):
    assert main(["-n", "5", "--value", "40", "--timeout", "5"]) == 0
    assert "Decided value is :40" in capsys.readouterr().out