"""Deduplicating work queue with delayed and rate limited re-adds."""

from __future__ import annotations

import heapq
import itertools
import threading
import time
from collections import deque
from typing import Callable, Generic, Hashable, TypeVar

from .. import metrics

_K = TypeVar("_K", bound=Hashable)

# Exponential backoff for failed keys: 1s, 2s, 4s, ... 60s (max)
DEFAULT_MIN_RETRY_DELAY = 1.0
DEFAULT_MAX_RETRY_DELAY = 60.0
DEFAULT_RETRY_BACKOFF = 2.0


class WorkQueue(Generic[_K]):
    """Queue of reconcile keys.

    A key is queued at most once and is never handed to two workers at the
    same time. A key added while a worker processes it is queued again when
    the worker calls :meth:`done`.
    """

    def __init__(
        self,
        min_retry_delay: float = DEFAULT_MIN_RETRY_DELAY,
        max_retry_delay: float = DEFAULT_MAX_RETRY_DELAY,
        retry_backoff: float = DEFAULT_RETRY_BACKOFF,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.min_retry_delay = min_retry_delay
        self.max_retry_delay = max_retry_delay
        self.retry_backoff = retry_backoff
        self._clock = clock

        self._cond = threading.Condition()
        self._queue: deque[_K] = deque()
        self._dirty: set[_K] = set()
        self._processing: set[_K] = set()
        self._waiting: list[tuple[float, int, _K]] = []
        self._seq = itertools.count()
        self._failures: dict[_K, int] = {}
        self._shutting_down = False

    def __len__(self) -> int:
        with self._cond:
            return len(self._queue)

    @property
    def shutting_down(self) -> bool:
        with self._cond:
            return self._shutting_down

    def _add_locked(self, key: _K) -> None:
        if self._shutting_down or key in self._dirty:
            return
        self._dirty.add(key)
        if key in self._processing:
            return
        self._queue.append(key)
        metrics.workqueue_depth.set(len(self._queue))
        self._cond.notify()

    def _promote_ready_locked(self) -> None:
        now = self._clock()
        while self._waiting and self._waiting[0][0] <= now:
            _, _, key = heapq.heappop(self._waiting)
            self._add_locked(key)

    def add(self, key: _K) -> None:
        """Queue a key for processing."""
        with self._cond:
            self._add_locked(key)

    def add_after(self, key: _K, delay: float) -> None:
        """Queue a key once ``delay`` seconds have passed."""
        if delay <= 0:
            self.add(key)
            return
        with self._cond:
            if self._shutting_down:
                return
            heapq.heappush(self._waiting, (self._clock() + delay, next(self._seq), key))
            self._cond.notify_all()

    def add_rate_limited(self, key: _K) -> float:
        """Queue a failed key with per-key exponential backoff.

        Returns:
            The delay the key was queued with
        """
        with self._cond:
            failures = self._failures.get(key, 0)
            self._failures[key] = failures + 1
        delay = min(self.min_retry_delay * self.retry_backoff**failures, self.max_retry_delay)
        self.add_after(key, delay)
        return delay

    def forget(self, key: _K) -> None:
        """Reset the backoff of a key."""
        with self._cond:
            self._failures.pop(key, None)

    def num_requeues(self, key: _K) -> int:
        with self._cond:
            return self._failures.get(key, 0)

    def get(self, timeout: float | None = None) -> _K | None:
        """Block until a key is ready and mark it as processing.

        Returns:
            The key, or None on shutdown or when ``timeout`` expires
        """
        deadline = None if timeout is None else self._clock() + timeout
        with self._cond:
            while True:
                self._promote_ready_locked()
                if self._queue:
                    break
                if self._shutting_down:
                    return None

                wait_for = None
                if self._waiting:
                    wait_for = max(self._waiting[0][0] - self._clock(), 0.0)
                if deadline is not None:
                    remaining = deadline - self._clock()
                    if remaining <= 0:
                        return None
                    wait_for = remaining if wait_for is None else min(wait_for, remaining)
                self._cond.wait(wait_for)

            key = self._queue.popleft()
            metrics.workqueue_depth.set(len(self._queue))
            self._processing.add(key)
            self._dirty.discard(key)
            return key

    def done(self, key: _K) -> None:
        """Mark a key returned by :meth:`get` as processed."""
        with self._cond:
            self._processing.discard(key)
            if key in self._dirty:
                self._queue.append(key)
                metrics.workqueue_depth.set(len(self._queue))
                self._cond.notify()

    def shutdown(self) -> None:
        """Stop accepting keys and wake up all waiting workers."""
        with self._cond:
            self._shutting_down = True
            self._cond.notify_all()
