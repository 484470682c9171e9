"""Utility functions for the gardenlogin controller."""

from .certificates import cluster_ca_cert, validate_certificate
from .events import emit_event
from .rate_limit import NamespaceAdmissionController, jittered_delay
from .workqueue import WorkQueue

__all__ = [
    "cluster_ca_cert",
    "validate_certificate",
    "emit_event",
    "NamespaceAdmissionController",
    "jittered_delay",
    "WorkQueue",
]
