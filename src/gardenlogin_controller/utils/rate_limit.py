"""Per-namespace admission control for concurrent reconciles."""

from __future__ import annotations

import random
import threading
from contextlib import contextmanager
from typing import Iterator

from .errors import NamespaceCounterError, NamespaceLimitReached

# Deferred reconciles are requeued after 100ms - 5.1s
REQUEUE_BASE_DELAY = 0.1
REQUEUE_MAX_FACTOR = 50.0


def jittered_delay(
    base: float = REQUEUE_BASE_DELAY,
    max_factor: float = REQUEUE_MAX_FACTOR,
    rand: random.Random | None = None,
) -> float:
    """Return a delay between ``base`` and ``base * (1 + max_factor)`` seconds."""
    value = (rand or random).random()
    return base + value * max_factor * base


class NamespaceAdmissionController:
    """Bounds the number of concurrent reconciles per namespace.

    The global bound (``max_concurrent_reconciles``) is enforced by the worker
    pool; it is kept here for reference only.
    """

    def __init__(self, max_concurrent_reconciles: int, max_concurrent_reconciles_per_namespace: int):
        self.max_concurrent_reconciles = max_concurrent_reconciles
        self.max_per_namespace = max_concurrent_reconciles_per_namespace
        self._counts: dict[str, int] = {}
        self._lock = threading.Lock()

    def enter(self, namespace: str) -> bool:
        """Record a reconcile for ``namespace``.

        Returns:
            False if the namespace is at its limit; nothing is recorded then
        """
        with self._lock:
            counter = self._counts.get(namespace, 0) + 1
            if counter > self.max_per_namespace:
                return False
            self._counts[namespace] = counter
            return True

    def exit(self, namespace: str) -> None:
        """Release a reconcile recorded by :meth:`enter`.

        Raises:
            NamespaceCounterError: If no reconcile is recorded for the namespace
        """
        with self._lock:
            counter = self._counts.get(namespace)
            if counter is None:
                raise NamespaceCounterError(f"no active reconcile recorded for namespace {namespace!r}")
            counter -= 1
            if counter == 0:
                del self._counts[namespace]
            else:
                self._counts[namespace] = counter

    def active(self, namespace: str) -> int:
        with self._lock:
            return self._counts.get(namespace, 0)

    def snapshot(self) -> dict[str, int]:
        with self._lock:
            return dict(self._counts)

    @contextmanager
    def admitted(self, namespace: str) -> Iterator[None]:
        """Hold a reconcile slot for the duration of the block.

        Raises:
            NamespaceLimitReached: If the namespace is at its limit
        """
        if not self.enter(namespace):
            raise NamespaceLimitReached(namespace)
        try:
            yield
        finally:
            self.exit(namespace)
