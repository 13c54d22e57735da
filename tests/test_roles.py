import pytest

from mpidemos.roles import Role, Stamp, get_role, quorum, role_ranks


@pytest.mark.parametrize("nproc", [4, 8, 12, 20])
def test_every_rank_lies_in_the_ranks_of_its_role(nproc):
    for rank in range(nproc):
        role = get_role(rank, 4, nproc)
        assert rank in role_ranks(role, nproc, 4)


@pytest.mark.parametrize("nproc", [4, 8, 12])
def test_role_ranks_partition_the_processes(nproc):
    ranks = [rank for role in range(4) for rank in role_ranks(role, nproc, 4)]
    assert ranks == list(range(nproc))


def test_one_process_per_role_maps_rank_to_role():
    assert [get_role(rank, 4, 4) for rank in range(4)] == [
        Role.CLIENT,
        Role.PROPOSER,
        Role.ACCEPTOR,
        Role.LEARNER,
    ]


def test_five_roles_include_telemetry():
    assert get_role(14, 5, 15) == Role.TELEMETRY
    assert list(role_ranks(Role.TELEMETRY, 15, 5)) == [12, 13, 14]


def test_rank_beyond_full_blocks_gets_next_index():
    assert get_role(4, 4, 5) == 4


def test_too_few_processes_for_roles():
    with pytest.raises(ValueError):
        get_role(0, 4, 3)


def test_zero_roles_rejected():
    with pytest.raises(ValueError):
        role_ranks(0, 4, 0)


@pytest.mark.parametrize("half", [1, 2, 3, 7])
def test_quorum_of_even_count_is_half(half):
    assert quorum(2 * half) == half


def test_quorum_is_at_least_one():
    assert quorum(0) == 1
    assert quorum(1) == 1
    assert quorum(5) == 2


def test_stamp_defaults_are_zero_and_mutable():
    stamp = Stamp(value=10, round_number=3)
    assert stamp.custom_round_number == 0
    assert stamp.total_size == 0
    stamp.value = 20
    assert stamp == Stamp(20, 3, 0, 0)