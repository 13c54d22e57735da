[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "mpidemos"
version = "0.1.0"
description = "Distributed-systems algorithms run over an in-process message-passing cluster"
requires-python = ">=3.10"
dependencies = []
keywords = [
    "distributed-systems",
    "message-passing",
    "paxos",
    "two-phase-commit",
    "leader-election",
    "vector-clock",
    "lamport-clock",
    "crdt",
]
classifiers = [
    "Development Status :: 3 - Alpha",
    "Intended Audience :: Education",
    "Intended Audience :: Developers",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: System :: Distributed Computing",
    "Topic :: Education",
]

[project.optional-dependencies]
test = ["pytest"]

[project.scripts]
mpidemos-sample = "mpidemos.cluster:main"
mpidemos-clocks = "mpidemos.clocks:main"
mpidemos-gcounter = "mpidemos.crdt:main"
mpidemos-cpu-stats = "mpidemos.stats:main"
mpidemos-stabilization = "mpidemos.stabilization:main"
mpidemos-leader-election = "mpidemos.leader_election:main"
mpidemos-majority = "mpidemos.majority:main"
mpidemos-two-phase-commit = "mpidemos.two_phase_commit:main"
mpidemos-sequence-paxos = "mpidemos.sequence_paxos:main"
mpidemos-single-paxos = "mpidemos.single_paxos:main"

[tool.hatch.build.targets.wheel]
packages = ["mpidemos"]

[tool.pytest.ini_options]
addopts = "-ra"

[tool.ruff]
line-length = 88
target-version = "py310"

[tool.mypy]
python_version = "3.10"
warn_unused_ignores = true
