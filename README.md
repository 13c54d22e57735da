# mpidemos

This package runs classic distributed-systems algorithms as small programs on a
simulated message-passing cluster. Each rank is a thread in one Python
process. Ranks talk to each other through a `Communicator`. It offers
point-to-point `send`/`recv`, `probe`/`iprobe`, the collectives `allreduce`,
`reduce` and `barrier`, `split` into sub-communicators, and `abort`.

## What is included

| Module | Algorithm |
| --- | --- |
| `mpidemos.cluster` | The cluster runtime (`Cluster`, `Communicator`, `Message`) and a report of the process count |
| `mpidemos.shared` | `SharedVar`, an integer array with one slot per rank, with locked `increment`, `modify` (maximum) and `reset` |
| `mpidemos.clocks` | A Lamport clock broadcast and a vector clock passed around a ring |
| `mpidemos.crdt` | A grow-only counter (`GCounter`), merged by element-wise maximum |
| `mpidemos.stats` | Average CPU usage, sampled on every rank and reduced to rank 0 |
| `mpidemos.stabilization` | Ranks that step their values towards the global average |
| `mpidemos.leader_election` | Leader election with ballots and a shared quorum counter |
| `mpidemos.majority` | Agreement on a key–value pair, picked by Lamport timestamp |
| `mpidemos.snapshot` | Snapshot and revert messages for a telemetry group |
| `mpidemos.roles` | Roles, message tags and the `Stamp` used by the Paxos demos |
| `mpidemos.two_phase_commit` | Two-phase commit between a coordinator (rank 0) and participants |
| `mpidemos.sequence_paxos` | Sequence Paxos, which decides an ordered list of values |
| `mpidemos.paxos_agents` | Proposer, acceptor and learner state machines |
| `mpidemos.single_paxos` | Single-decree Paxos with shared role state and a snapshot at the end |

## Installation

```
pip install .
```

The package uses only the standard library.

## Running the demos

Each demo can be started as a command. Most commands take `-n`/`--procs` to set
the number of processes.

```
mpidemos-sample                     # rank 0 prints the process count
mpidemos-clocks [lamport|vector]    # Lamport broadcast (default) or vector ring
mpidemos-gcounter                   # at most 16 processes
mpidemos-cpu-stats [--command CMD]  # runs a shell pipeline built on top, grep, sed and awk by default
mpidemos-stabilization [--iterations N] [--threshold T] [--pause S]
mpidemos-leader-election [--wait S]
mpidemos-majority                   # at most 25 processes
mpidemos-two-phase-commit [--timeout S]
mpidemos-sequence-paxos [--values V ...]   # exactly 4 processes
mpidemos-single-paxos [--value V] [--timeout S]   # a multiple of 5 processes
```

## Using the runtime from Python

```python
from mpidemos.cluster import Cluster
from mpidemos.crdt import gcounter_demo

results = Cluster(4).run(gcounter_demo)
```

`Cluster.run(target, *args)` calls `target(comm, *args)` once for each rank and
returns the results in rank order. An exception in any rank ends the run, and
`run` raises it again. Once a rank calls `Communicator.abort`, every waiting
rank raises `AbortError`. A receive that waits longer than its timeout raises
`ReceiveTimeout`. `two_phase_commit` raises `CommitAborted` on a rank that
decides against the commit.

## What it does not do

- Every rank is a thread in one process. The package does not carry messages
  between machines or separate operating-system processes.
- It has no heartbeat failure detector. Leader election treats "no leader
  known" as a failed leader and detects nothing else.

## Tests

```
pip install .[test]
pytest
```