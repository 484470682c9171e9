"""Utilities for emitting Kubernetes events."""

from __future__ import annotations

from typing import Any

import kopf

from ..constants import (
    EVENT_REASON_KUBECONFIG_CREATED,
    EVENT_REASON_KUBECONFIG_DELETED,
    EVENT_REASON_KUBECONFIG_UPDATED,
    EVENT_REASON_RECONCILE_FAILED,
    KIND_SHOOT,
    SHOOT_API_VERSION,
)
from ..models import Shoot


def shoot_reference(shoot: Shoot) -> dict[str, Any]:
    """Minimal object body kopf needs to attach an event to a Shoot."""
    return {
        "apiVersion": SHOOT_API_VERSION,
        "kind": KIND_SHOOT,
        "metadata": {
            "name": shoot.name,
            "namespace": shoot.namespace,
            "uid": shoot.uid,
        },
    }


def emit_event(
    body: dict[str, Any],
    reason: str,
    message: str,
    type_: str = "Normal",
) -> None:
    """Emit a Kubernetes event.

    Args:
        body: Object the event refers to
        reason: Event reason
        message: Event message
        type_: Event type (Normal or Warning)
    """
    kopf.event(
        body,
        reason=reason,
        message=message,
        type=type_,
    )


def emit_kubeconfig_created(shoot: Shoot, config_map_name: str) -> None:
    emit_event(shoot_reference(shoot), EVENT_REASON_KUBECONFIG_CREATED, f"Kubeconfig ConfigMap {config_map_name} created")


def emit_kubeconfig_updated(shoot: Shoot, config_map_name: str) -> None:
    emit_event(shoot_reference(shoot), EVENT_REASON_KUBECONFIG_UPDATED, f"Kubeconfig ConfigMap {config_map_name} updated")


def emit_kubeconfig_deleted(shoot: Shoot, config_map_name: str) -> None:
    emit_event(shoot_reference(shoot), EVENT_REASON_KUBECONFIG_DELETED, f"Kubeconfig ConfigMap {config_map_name} deleted")


def emit_reconcile_failed(shoot: Shoot, message: str) -> None:
    """Emit reconcile failed event."""
    emit_event(shoot_reference(shoot), EVENT_REASON_RECONCILE_FAILED, message, type_="Warning")
