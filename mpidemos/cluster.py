"""A small in-process message-passing runtime with ranks, tags and collectives."""

from __future__ import annotations

import argparse
import copy
import functools
import threading
import time
from collections import deque
from dataclasses import dataclass
from typing import Any, Callable, Hashable

ANY_SOURCE = -1
ANY_TAG = -1


@dataclass(frozen=True)
class Message:
    """A delivered message: who sent it, with which tag, carrying what."""

    source: int
    tag: int
    payload: Any = None


class AbortError(RuntimeError):
    """Raised in every rank once any rank aborts the run."""

    def __init__(self, code: int = 1) -> None:
        super().__init__(f"run aborted with code {code}")
        self.code = code


class ReceiveTimeout(TimeoutError):
    """Raised when no matching message arrives in time."""


class _AbortState:
    def __init__(self) -> None:
        self.lock = threading.Lock()
        self.code: int | None = None
        self.groups: list[_Group] = []

    def trigger(self, code: int) -> None:
        with self.lock:
            if self.code is None:
                self.code = code
            groups = list(self.groups)
        for group in groups:
            group.wake()

    def check(self) -> None:
        if self.code is not None:
            raise AbortError(self.code)


class _Group:
    def __init__(self, size: int, abort: _AbortState) -> None:
        self.size = size
        self.abort = abort
        self.cond = threading.Condition()
        self.mailboxes: list[deque[Message]] = [deque() for _ in range(size)]
        self.barrier = threading.Barrier(size)
        self.slots: list[Any] = [None] * size
        self.children: dict[tuple[int, Hashable], _Group] = {}
        self.children_lock = threading.Lock()
        with abort.lock:
            abort.groups.append(self)
            aborted = abort.code is not None
        if aborted:
            self.wake()

    def wake(self) -> None:
        self.barrier.abort()
        with self.cond:
            self.cond.notify_all()

    def sync(self) -> None:
        self.abort.check()
        try:
            self.barrier.wait()
        except threading.BrokenBarrierError:
            raise AbortError(self.abort.code if self.abort.code is not None else 1) from None
        self.abort.check()

    def exchange(self, rank: int, value: Any) -> list[Any]:
        self.slots[rank] = value
        self.sync()
        gathered = list(self.slots)
        self.sync()
        return gathered

    def child(self, key: tuple[int, Hashable], size: int) -> _Group:
        with self.children_lock:
            if key not in self.children:
                self.children[key] = _Group(size, self.abort)
            return self.children[key]

    def deliver(self, dest: int, message: Message) -> None:
        with self.cond:
            self.abort.check()
            self.mailboxes[dest].append(message)
            self.cond.notify_all()

    def _match(self, rank: int, source: int, tag: int) -> Message | None:
        box = self.mailboxes[rank]
        for message in box:
            if source in (ANY_SOURCE, message.source) and tag in (ANY_TAG, message.tag):
                return message
        return None

    def wait_for(self, rank: int, source: int, tag: int, timeout: float | None, remove: bool) -> Message:
        deadline = None if timeout is None else time.monotonic() + timeout
        with self.cond:
            while True:
                self.abort.check()
                message = self._match(rank, source, tag)
                if message is not None:
                    if remove:
                        self.mailboxes[rank].remove(message)
                    return message
                if deadline is None:
                    self.cond.wait()
                    continue
                remaining = deadline - time.monotonic()
                if remaining <= 0:
                    raise ReceiveTimeout(f"rank {rank}: no message from {source} with tag {tag}")
                self.cond.wait(remaining)

    def peek(self, rank: int, source: int, tag: int) -> Message | None:
        with self.cond:
            self.abort.check()
            return self._match(rank, source, tag)


class Communicator:
    """One rank's view of a group of cooperating ranks."""

    def __init__(self, group: _Group, rank: int) -> None:
        self._group = group
        self._rank = rank
        self._splits = 0

    @property
    def rank(self) -> int:
        return self._rank

    @property
    def size(self) -> int:
        return self._group.size

    def _check_rank(self, rank: int, what: str) -> None:
        if not 0 <= rank < self.size:
            raise ValueError(f"{what} {rank} outside 0..{self.size - 1}")

    def send(self, dest: int, tag: int, payload: Any = None) -> None:
        """Queue a copy of ``payload`` for ``dest``; never blocks."""
        self._check_rank(dest, "destination")
        self._group.deliver(dest, Message(self._rank, tag, copy.deepcopy(payload)))

    def recv(self, source: int = ANY_SOURCE, tag: int = ANY_TAG, timeout: float | None = None) -> Message:
        """Take the oldest matching message, waiting for one if needed."""
        return self._group.wait_for(self._rank, source, tag, timeout, remove=True)

    def iprobe(self, source: int = ANY_SOURCE, tag: int = ANY_TAG) -> Message | None:
        """Return the oldest matching message without taking it, or None."""
        return self._group.peek(self._rank, source, tag)

    def probe(self, source: int = ANY_SOURCE, tag: int = ANY_TAG, timeout: float | None = None) -> Message:
        """Wait for a matching message and return it without taking it."""
        return self._group.wait_for(self._rank, source, tag, timeout, remove=False)

    def allreduce(self, value: Any, op: Callable[[Any, Any], Any]) -> Any:
        """Combine every rank's value with ``op``; every rank gets the result."""
        return functools.reduce(op, self._group.exchange(self._rank, value))

    def reduce(self, value: Any, op: Callable[[Any, Any], Any], root: int = 0) -> Any:
        """Combine every rank's value with ``op``; only ``root`` gets the result."""
        self._check_rank(root, "root")
        result = functools.reduce(op, self._group.exchange(self._rank, value))
        return result if self._rank == root else None

    def barrier(self) -> None:
        """Wait until every rank of the group has reached the barrier."""
        self._group.sync()

    def split(self, color: Hashable) -> Communicator:
        """Collectively split into groups of equal colour, ordered by rank."""
        colors = self._group.exchange(self._rank, color)
        members = [rank for rank, other in enumerate(colors) if other == color]
        key = (self._splits, color)
        self._splits += 1
        return Communicator(self._group.child(key, len(members)), members.index(self._rank))

    def abort(self, code: int = 1) -> None:
        """Stop every rank of the run; raises AbortError here."""
        self._group.abort.trigger(code)
        raise AbortError(code)


class Cluster:
    """A fixed number of ranks that run one function side by side in threads."""

    def __init__(self, size: int) -> None:
        if size < 1:
            raise ValueError("a cluster needs at least one process")
        self.size = size
        self._abort = _AbortState()
        world = _Group(size, self._abort)
        self._comms = [Communicator(world, rank) for rank in range(size)]

    def communicator(self, rank: int) -> Communicator:
        """The world communicator seen by ``rank``."""
        if not 0 <= rank < self.size:
            raise ValueError(f"rank {rank} outside 0..{self.size - 1}")
        return self._comms[rank]

    def run(self, target: Callable[..., Any], *args: Any) -> list[Any]:
        """Call ``target(comm, *args)`` on every rank; return results by rank."""
        results: list[Any] = [None] * self.size
        errors: list[BaseException | None] = [None] * self.size

        def worker(comm: Communicator) -> None:
            try:
                results[comm.rank] = target(comm, *args)
            except AbortError as exc:
                errors[comm.rank] = exc
            except BaseException as exc:  # noqa: BLE001 - reported to the caller
                errors[comm.rank] = exc
                self._abort.trigger(1)

        threads = [
            threading.Thread(target=worker, args=(comm,), daemon=True, name=f"rank-{comm.rank}")
            for comm in self._comms
        ]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        failures = [exc for exc in errors if exc is not None and not isinstance(exc, AbortError)]
        if failures:
            raise failures[0]
        aborts = [exc for exc in errors if isinstance(exc, AbortError)]
        if aborts:
            code = self._abort.code if self._abort.code is not None else aborts[0].code
            raise AbortError(code)
        return results


def process_count_report(comm: Communicator) -> str | None:
    """Rank 0 reports the number of processes; other ranks report nothing."""
    if comm.rank == 0:
        return f"Total number of processes: {comm.size}"
    return None


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description="Report how many processes were started.")
    parser.add_argument("-n", "--procs", type=int, default=4, help="number of processes")
    args = parser.parse_args(argv)
    for line in Cluster(args.procs).run(process_count_report):
        if line is not None:
            print(line)
    return 0