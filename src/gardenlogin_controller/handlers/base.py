"""Base handler class with common functionality for all handlers."""

from __future__ import annotations

import logging
import time
from typing import Any, Callable, TypeVar

from .. import metrics
from ..constants import CONTROLLER_NAME
from ..logging import log_resource_event
from ..models import ReconcileKey

_T = TypeVar("_T")


class BaseHandler:
    """Base class for handlers with structured logging and metrics."""

    def __init__(self, kind: str):
        """Initialize base handler.

        Args:
            kind: The Kubernetes resource kind (e.g., "Shoot", "ConfigMap")
        """
        self.kind = kind
        self.logger = logging.getLogger(__name__)

    def _log(
        self,
        level: int,
        key: ReconcileKey,
        message: str,
        event: str,
        reason: str,
        **kwargs: Any,
    ) -> None:
        log_resource_event(
            self.logger,
            controller=CONTROLLER_NAME,
            resource_kind=self.kind,
            resource_name=key.name,
            namespace=key.namespace,
            event=event,
            reason=reason,
            message=message,
            level=level,
            **kwargs,
        )

    def log_info(
        self,
        key: ReconcileKey,
        message: str,
        event: str = "info",
        reason: str = "Info",
        **kwargs: Any,
    ) -> None:
        """Log an info-level structured log message.

        Args:
            key: Namespace and name of the resource
            message: Log message
            event: Event type (default: "info")
            reason: Reason for the event (default: "Info")
            **kwargs: Additional fields to include in the log
        """
        self._log(logging.INFO, key, message, event, reason, **kwargs)

    def log_warning(
        self,
        key: ReconcileKey,
        message: str,
        event: str = "warning",
        reason: str = "Warning",
        **kwargs: Any,
    ) -> None:
        """Log a warning-level structured log message."""
        self._log(logging.WARNING, key, message, event, reason, **kwargs)

    def log_error(
        self,
        key: ReconcileKey,
        message: str,
        error: BaseException | None = None,
        event: str = "error",
        reason: str = "Error",
        **kwargs: Any,
    ) -> None:
        """Log an error-level structured log message.

        Args:
            key: Namespace and name of the resource
            message: Log message
            error: Optional exception to include in the log
            event: Event type (default: "error")
            reason: Reason for the event (default: "Error")
            **kwargs: Additional fields to include in the log
        """
        log_data = kwargs.copy()
        if error is not None:
            log_data["error"] = str(error)
            log_data["error_type"] = type(error).__name__
        self._log(logging.ERROR, key, message, event, reason, **log_data)

    def reconcile_with_metrics(self, key: ReconcileKey, reconcile_fn: Callable[[], _T]) -> _T:
        """Execute a reconciliation, recording its outcome and duration.

        Exceptions are logged, counted and re-raised.
        """
        start_time = time.time()
        try:
            result = reconcile_fn()
            metrics.reconcile_total.labels(result="success").inc()
            return result
        except Exception as e:
            metrics.error_total.labels(error_type=type(e).__name__).inc()
            metrics.reconcile_total.labels(result="error").inc()
            self.log_error(key, "Reconciliation failed", error=e, reason="ReconciliationFailed")
            raise
        finally:
            duration = time.time() - start_time
            metrics.reconcile_duration_seconds.observe(duration)
