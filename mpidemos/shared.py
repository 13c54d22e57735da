"""A shared integer array with one slot per rank, updated under a lock."""

from __future__ import annotations

import threading


class SharedVar:
    """One slot per rank held by a host, plus each rank's own cached value.

    Updates to a rank's slot add or take the maximum; the cached value is what
    the rank itself believes, and it stands in for its own slot when results
    are formed.
    """

    def __init__(self, size: int) -> None:
        if size < 1:
            raise ValueError("a shared variable needs at least one rank")
        self.size = size
        self._window = [0] * size
        self._local = [0] * size
        self._lock = threading.Lock()

    def _check(self, rank: int) -> None:
        if not 0 <= rank < self.size:
            raise ValueError(f"rank {rank} outside 0..{self.size - 1}")

    def _view(self, rank: int) -> list[int]:
        view = list(self._window)
        view[rank] = self._local[rank]
        return view

    def increment(self, rank: int, delta: int = 1) -> int:
        """Add ``delta`` to the rank's slot and return the sum over all ranks."""
        with self._lock:
            self._check(rank)
            self._window[rank] += delta
            self._local[rank] += delta
            return sum(self._view(rank))

    def modify(self, rank: int, value: int) -> int:
        """Raise the rank's slot to ``value``; return the largest value, at least 0."""
        with self._lock:
            self._check(rank)
            self._window[rank] = max(self._window[rank], value)
            self._local[rank] = max(self._local[rank], value)
            return max([0, *self._view(rank)])

    def reset(self, rank: int, value: int) -> int:
        """Set the rank's own value to ``value`` and return it.

        The shared slot only ever grows, so it keeps the larger of the two.
        """
        with self._lock:
            self._check(rank)
            self._window[rank] = max(self._window[rank], value)
            self._local[rank] = value
            return value

    def values(self) -> list[int]:
        """A copy of the shared slots."""
        with self._lock:
            return list(self._window)