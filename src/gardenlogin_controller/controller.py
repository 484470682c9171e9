"""Shoot controller: watch event filtering, work queue and worker pool."""

from __future__ import annotations

import contextvars
import logging
import threading
from typing import Any, Callable, TypeVar

from .constants import KIND_CONFIG_MAP, KIND_SHOOT, KIND_SHOOT_STATE
from .handlers.predicates import kubeconfig_config_map_changed, shoot_addresses_changed, shoot_state_ca_changed
from .handlers.shoot import ShootReconciler
from .models import ConfigMap, ReconcileKey, Shoot, ShootState
from .utils.errors import NamespaceCounterError
from .utils.workqueue import WorkQueue

logger = logging.getLogger(__name__)

EVENT_ADDED = "ADDED"
EVENT_MODIFIED = "MODIFIED"
EVENT_DELETED = "DELETED"

_O = TypeVar("_O", Shoot, ShootState, ConfigMap)


class ShootController:
    """Runs the Shoot reconciler for keys triggered by watch events.

    Watch events arrive as raw bodies. The controller remembers the last seen
    revision of every object so the update predicates get typed old and new
    objects. Create, delete and initial listing events always enqueue.
    """

    def __init__(
        self,
        reconciler: ShootReconciler,
        max_concurrent_reconciles: int,
        queue: WorkQueue[ReconcileKey] | None = None,
    ):
        self.reconciler = reconciler
        self.max_concurrent_reconciles = max_concurrent_reconciles
        self.queue: WorkQueue[ReconcileKey] = queue if queue is not None else WorkQueue()
        self._last_seen: dict[tuple[str, ReconcileKey], Any] = {}
        self._last_seen_lock = threading.Lock()
        self._workers: list[threading.Thread] = []

    # Watch events

    def _remember(self, kind: str, obj: _O, event_type: str | None) -> _O | None:
        """Store the new revision of an object and return the previous one."""
        cache_key = (kind, ReconcileKey(obj.namespace, obj.name))
        with self._last_seen_lock:
            if event_type == EVENT_DELETED:
                return self._last_seen.pop(cache_key, None)
            old = self._last_seen.get(cache_key)
            self._last_seen[cache_key] = obj
            return old

    def _forget(self, kind: str, obj: Any) -> None:
        with self._last_seen_lock:
            self._last_seen.pop((kind, ReconcileKey(obj.namespace, obj.name)), None)

    def _dispatch(
        self,
        kind: str,
        event_type: str | None,
        new: _O,
        key: ReconcileKey,
        predicate: Callable[[_O, _O], bool],
    ) -> bool:
        old = self._remember(kind, new, event_type)
        if event_type == EVENT_MODIFIED and old is not None and not predicate(old, new):
            logger.debug(f"Suppressed {kind} update event for {key}")
            return False
        self.queue.add(key)
        return True

    def on_shoot_event(self, event_type: str | None, body: dict[str, Any]) -> bool:
        """Handle a Shoot watch event.

        Returns:
            True if a reconcile was enqueued
        """
        shoot = Shoot.from_body(body)
        return self._dispatch(KIND_SHOOT, event_type, shoot, shoot.key, shoot_addresses_changed)

    def on_shoot_state_event(self, event_type: str | None, body: dict[str, Any]) -> bool:
        """Handle a ShootState watch event; ShootStates map 1:1 to Shoot keys."""
        shoot_state = ShootState.from_body(body)
        return self._dispatch(KIND_SHOOT_STATE, event_type, shoot_state, shoot_state.key, shoot_state_ca_changed)

    def on_config_map_event(self, event_type: str | None, body: dict[str, Any]) -> bool:
        """Handle a ConfigMap watch event.

        Only ConfigMaps controlled by a Shoot are considered; they map to the
        key of their owner.
        """
        config_map = ConfigMap.from_body(body)
        key = config_map.owner_shoot_key()
        if key is None:
            # may have lost its owner reference since the last event
            self._forget(KIND_CONFIG_MAP, config_map)
            return False
        return self._dispatch(KIND_CONFIG_MAP, event_type, config_map, key, kubeconfig_config_map_changed)

    # Workers

    def process_next(self, timeout: float | None = None) -> bool:
        """Reconcile the next key of the queue.

        Returns:
            False when the queue is shut down or ``timeout`` expired

        Raises:
            NamespaceCounterError: On a broken enter/exit pairing; the
                worker stops
        """
        key = self.queue.get(timeout=timeout)
        if key is None:
            return False

        try:
            result = self.reconciler.reconcile(key)
        except NamespaceCounterError:
            logger.critical(f"Namespace counter invariant violated while reconciling {key} - stopping worker")
            raise
        except Exception as e:
            delay = self.queue.add_rate_limited(key)
            logger.warning(f"Reconcile of {key} failed, retrying in {delay:.1f}s: {e}")
        else:
            self.queue.forget(key)
            if result.deferred:
                self.queue.add_after(key, result.requeue_after)
        finally:
            self.queue.done(key)
        return True

    def _run_worker(self) -> None:
        while self.process_next():
            pass

    def start(self) -> None:
        """Start ``max_concurrent_reconciles`` worker threads."""
        if self._workers:
            return
        for n in range(self.max_concurrent_reconciles):
            # Each thread runs in its own copy of the caller's context, so
            # kopf's event posting works from the workers.
            ctx = contextvars.copy_context()
            thread = threading.Thread(
                target=ctx.run,
                args=(self._run_worker,),
                name=f"shoot-reconciler-{n}",
                daemon=True,
            )
            thread.start()
            self._workers.append(thread)
        logger.info(f"Started {self.max_concurrent_reconciles} shoot reconcile workers")

    def stop(self, timeout: float = 10.0) -> None:
        """Shut down the queue and wait for the workers to finish."""
        self.queue.shutdown()
        for thread in self._workers:
            thread.join(timeout)
        self._workers = []

    def is_ready(self) -> bool:
        return bool(self._workers) and any(t.is_alive() for t in self._workers) and not self.queue.shutting_down
