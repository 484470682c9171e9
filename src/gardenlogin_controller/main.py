"""Main entry point for the gardenlogin controller manager."""

from __future__ import annotations

import logging
import os
from typing import Any

import kopf

from . import logging as structured_logging
from .config import read_controller_manager_configuration
from .constants import (
    GARDENER_CORE_GROUP,
    LABEL_OPERATIONS_ROLE,
    OPERATIONS_ROLE_KUBECONFIG,
    PLURAL_SHOOT_STATES,
    PLURAL_SHOOTS,
    SHOOT_STATE_VERSION,
    SHOOT_VERSION,
)
from .controller import ShootController
from .handlers.configmap_validation import AdmissionRequest, ConfigMapValidator, raw_object
from .handlers.shared import REQUEST_TIMEOUT, get_k8s_clients
from .handlers.shoot import ShootReconciler
from .health import start_health_server
from .utils.rate_limit import NamespaceAdmissionController

_controller: ShootController | None = None
_validator: ConfigMapValidator | None = None
_health_server: Any = None


@kopf.on.startup()
def configure(settings: kopf.OperatorSettings, **_: Any) -> None:
    """Configure the operator and start the reconcile workers."""
    global _controller, _validator, _health_server

    structured_logging.setup_structured_logging()
    cfg = read_controller_manager_configuration()

    # Only explicit kopf.event calls are posted, not log records.
    settings.posting.level = logging.CRITICAL
    settings.networking.request_timeout = REQUEST_TIMEOUT
    settings.execution.max_workers = cfg.shoot.max_concurrent_reconciles

    certfile = os.getenv("WEBHOOK_CERT_FILE")
    pkeyfile = os.getenv("WEBHOOK_KEY_FILE")
    if certfile and pkeyfile:
        settings.admission.server = kopf.WebhookServer(
            addr="0.0.0.0",
            port=int(os.getenv("WEBHOOK_PORT", "9443")),
            host=os.getenv("WEBHOOK_HOST"),
            certfile=certfile,
            pkeyfile=pkeyfile,
        )

    core_api, custom_api = get_k8s_clients()
    admission = NamespaceAdmissionController(
        cfg.shoot.max_concurrent_reconciles,
        cfg.shoot.max_concurrent_reconciles_per_namespace,
    )
    reconciler = ShootReconciler(core_api, custom_api, admission)
    _validator = ConfigMapValidator(cfg.config_map_validation.max_object_size)
    _controller = ShootController(reconciler, cfg.shoot.max_concurrent_reconciles)
    _controller.start()

    # Metrics and health endpoints on port 8080
    _health_server = start_health_server(int(os.getenv("METRICS_PORT", "8080")), _controller.is_ready)


@kopf.on.cleanup()
def shutdown(**_: Any) -> None:
    """Stop the reconcile workers and the health server."""
    if _controller is not None:
        _controller.stop()
    if _health_server is not None:
        _health_server.shutdown()


@kopf.on.event(GARDENER_CORE_GROUP, SHOOT_VERSION, PLURAL_SHOOTS)
def handle_shoot_event(event: dict[str, Any], body: kopf.Body, **_: Any) -> None:
    """Forward Shoot watch events to the controller."""
    if _controller is not None:
        _controller.on_shoot_event(event.get("type"), dict(body))


@kopf.on.event(GARDENER_CORE_GROUP, SHOOT_STATE_VERSION, PLURAL_SHOOT_STATES)
def handle_shoot_state_event(event: dict[str, Any], body: kopf.Body, **_: Any) -> None:
    """Forward ShootState watch events to the controller."""
    if _controller is not None:
        _controller.on_shoot_state_event(event.get("type"), dict(body))


@kopf.on.event("v1", "configmaps")
def handle_config_map_event(event: dict[str, Any], body: kopf.Body, **_: Any) -> None:
    """Forward ConfigMap watch events to the controller."""
    if _controller is not None:
        _controller.on_config_map_event(event.get("type"), dict(body))


@kopf.on.validate(
    "v1",
    "configmaps",
    id="validate-kubeconfig-configmap",
    operations=["CREATE", "UPDATE"],
    labels={LABEL_OPERATIONS_ROLE: OPERATIONS_ROLE_KUBECONFIG},
)
def validate_config_map(
    body: kopf.Body,
    operation: str | None,
    old: Any = None,
    **_: Any,
) -> None:
    """Reject kubeconfig ConfigMaps that are too large or incomplete."""
    if _validator is None:
        raise kopf.AdmissionError("validator is not initialized", code=500)

    request = AdmissionRequest(
        uid="",
        operation=operation or "",
        object_raw=raw_object(dict(body)) or b"",
        old_object_raw=raw_object(dict(old)) if old else None,
        namespace=body.get("metadata", {}).get("namespace", ""),
        name=body.get("metadata", {}).get("name", ""),
    )
    response = _validator.validate(request)
    if not response.allowed:
        raise kopf.AdmissionError(response.reason, code=response.code)
