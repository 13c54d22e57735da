import pytest

from mpidemos.cluster import Cluster
from mpidemos.stats import (
    average_cpu,
    get_cpu_usage,
    main,
    parse_leading_float,
    run_command,
)


def test_run_command_captures_output():
    assert run_command("echo hello", 100) == "hello\n"


def test_run_command_truncates():
    assert run_command("echo hello", 3) == "hel"


def test_run_command_without_command():
    assert run_command(None, 10) == ""


def test_run_command_rejects_empty_limit():
    with pytest.raises(ValueError):
        run_command("echo hello", 0)


@pytest.mark.parametrize(
    "text, expected",
    [("42.5\n", 42.5), ("  7abc", 7.0), ("-1e2x", -100.0), (".5", 0.5)],
)
def test_parse_leading_float(text, expected):
    assert parse_leading_float(text) == expected


def test_parse_leading_float_without_number():
    assert parse_leading_float("abc") == 0.0
    assert parse_leading_float("") == 0.0


def test_get_cpu_usage_reads_command_output():
    assert get_cpu_usage("echo 12.5") == 12.5


def test_average_cpu_at_root_only():
    results = Cluster(4).run(average_cpu, lambda: 10.0)
    assert results[0] == 10.0
    assert results[1:] == [None, None, None]


def test_average_cpu_is_mean():
    results = Cluster(2).run(lambda comm: average_cpu(comm, lambda: float(comm.rank * 4)))
    assert results[0] == (0.0 + 4.0) / 2


def test_main_prints_average(capsys):
    assert main(["-n", "2", "--command", "echo 50"]) == 0
    assert capsys.readouterr().out == "50.000000"