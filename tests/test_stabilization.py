import pytest

from mpidemos.cluster import Cluster
from mpidemos.stabilization import STABILITY_THRESHOLD, adjust, stabilize


def test_adjust_moves_down_when_above():
    new, difference, moved = adjust(20.0, 10.0, 5.0)
    assert moved is True
    assert new < 20.0
    assert new == 20.0 - 1.0
    assert difference == abs(20.0 - 10.0)


def test_adjust_moves_up_when_below():
    new, difference, moved = adjust(10.0, 20.0, 5.0)
    assert moved is True
    assert new == 10.0 + 1.0
    assert difference == abs(10.0 - 20.0)


def test_adjust_within_threshold_is_stable():
    new, difference, moved = adjust(12.0, 10.0, 5.0)
    assert (new, moved) == (12.0, False)
    assert difference <= 5.0


def test_adjust_exactly_at_threshold_is_stable():
    new, _, moved = adjust(15.0, 10.0, 5.0)
    assert new == 15.0
    assert moved is False


def test_default_threshold():
    assert adjust(0.0, STABILITY_THRESHOLD)[2] is False
    assert adjust(0.0, STABILITY_THRESHOLD + 0.5)[2] is True


def test_three_rounds_step_each_side():
    results = Cluster(2).run(stabilize, [0.0, 30.0], 3, 5.0, 0.0)
    assert results == [3.0, 27.0]


def test_sum_preserved_for_symmetric_values():
    results = Cluster(2).run(stabilize, [0.0, 30.0], 7, 5.0, 0.0)
    assert sum(results) == 30.0
    assert results[0] < results[1]


def test_converges_within_threshold():
    results = Cluster(2).run(stabilize, [0.0, 30.0], 20, 5.0, 0.0)
    average = sum(results) / len(results)
    assert all(abs(value - average) <= 5.0 for value in results)


def test_no_iterations_keeps_initial_values():
    initial = [4.0, 8.0, 15.0]
    assert Cluster(3).run(stabilize, initial, 0, 5.0, 0.0) == initial


def test_stable_values_do_not_move():
    initial = [10.0, 11.0, 12.0]
    assert Cluster(3).run(stabilize, initial, 5, 5.0, 0.0) == initial


def test_random_initial_values_lie_in_rank_band():
    results = Cluster(3).run(stabilize, None, 0, 5.0, 0.0)
    for rank, value in enumerate(results):
        assert rank * 10.0 <= value < rank * 10.0 + 10.0


def test_wrong_number_of_initial_values():
    with pytest.raises(ValueError):
        Cluster(2).run(stabilize, [1.0], 1, 5.0, 0.0)