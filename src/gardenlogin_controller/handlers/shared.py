"""Shared Kubernetes API access for handlers."""

from __future__ import annotations

import os
import time
from contextlib import contextmanager
from typing import Any, Iterator

from kubernetes import client

from .. import metrics
from ..constants import (
    FIELD_MANAGER,
    GARDENER_CORE_GROUP,
    PLURAL_SHOOT_STATES,
    PLURAL_SHOOTS,
    SHOOT_STATE_VERSION,
    SHOOT_VERSION,
)
from ..utils.errors import is_not_found

# Timeout for a single Kubernetes API request, in seconds
REQUEST_TIMEOUT = float(os.getenv("K8S_REQUEST_TIMEOUT_SECONDS", "30.0"))


@contextmanager
def api_call(operation: str) -> Iterator[None]:
    """Record count, result and duration of a Kubernetes API call."""
    start_time = time.time()
    try:
        yield
        metrics.api_call_total.labels(operation=operation, result="success").inc()
    except client.exceptions.ApiException as e:
        result = "not_found" if is_not_found(e) else "error"
        metrics.api_call_total.labels(operation=operation, result=result).inc()
        raise
    except Exception:
        metrics.api_call_total.labels(operation=operation, result="error").inc()
        raise
    finally:
        duration = time.time() - start_time
        metrics.api_call_duration_seconds.labels(operation=operation).observe(duration)


def get_shoot(api: client.CustomObjectsApi, namespace: str, name: str) -> dict[str, Any] | None:
    """Get a Shoot, or None if it does not exist."""
    try:
        with api_call("get_shoot"):
            return api.get_namespaced_custom_object(
                group=GARDENER_CORE_GROUP,
                version=SHOOT_VERSION,
                namespace=namespace,
                plural=PLURAL_SHOOTS,
                name=name,
                _request_timeout=REQUEST_TIMEOUT,
            )
    except client.exceptions.ApiException as e:
        if is_not_found(e):
            return None
        raise


def get_shoot_state(api: client.CustomObjectsApi, namespace: str, name: str) -> dict[str, Any] | None:
    """Get a ShootState, or None if it does not exist."""
    try:
        with api_call("get_shoot_state"):
            return api.get_namespaced_custom_object(
                group=GARDENER_CORE_GROUP,
                version=SHOOT_STATE_VERSION,
                namespace=namespace,
                plural=PLURAL_SHOOT_STATES,
                name=name,
                _request_timeout=REQUEST_TIMEOUT,
            )
    except client.exceptions.ApiException as e:
        if is_not_found(e):
            return None
        raise


def read_config_map(api: client.CoreV1Api, namespace: str, name: str) -> dict[str, Any] | None:
    """Read a ConfigMap as a plain dict, or None if it does not exist."""
    try:
        with api_call("get_config_map"):
            config_map = api.read_namespaced_config_map(
                name=name,
                namespace=namespace,
                _request_timeout=REQUEST_TIMEOUT,
            )
    except client.exceptions.ApiException as e:
        if is_not_found(e):
            return None
        raise
    return api.api_client.sanitize_for_serialization(config_map)


def create_config_map(api: client.CoreV1Api, namespace: str, body: dict[str, Any]) -> None:
    with api_call("create_config_map"):
        api.create_namespaced_config_map(
            namespace=namespace,
            body=body,
            field_manager=FIELD_MANAGER,
            _request_timeout=REQUEST_TIMEOUT,
        )


def replace_config_map(api: client.CoreV1Api, namespace: str, name: str, body: dict[str, Any]) -> None:
    """Replace a ConfigMap.

    The body carries the resourceVersion that was read, so concurrent writers
    get a 409 conflict instead of overwriting each other.
    """
    with api_call("replace_config_map"):
        api.replace_namespaced_config_map(
            name=name,
            namespace=namespace,
            body=body,
            field_manager=FIELD_MANAGER,
            _request_timeout=REQUEST_TIMEOUT,
        )


def delete_config_map(api: client.CoreV1Api, namespace: str, name: str) -> bool:
    """Delete a ConfigMap.

    Returns:
        False if the ConfigMap did not exist
    """
    try:
        with api_call("delete_config_map"):
            api.delete_namespaced_config_map(
                name=name,
                namespace=namespace,
                _request_timeout=REQUEST_TIMEOUT,
            )
    except client.exceptions.ApiException as e:
        if is_not_found(e):
            return False
        raise
    return True


def load_kube_config() -> None:
    """Load in-cluster configuration, falling back to the local kubeconfig."""
    from kubernetes import config

    try:
        config.load_incluster_config()
    except config.ConfigException:
        config.load_kube_config()


def get_k8s_clients() -> tuple[client.CoreV1Api, client.CustomObjectsApi]:
    """Get Kubernetes CoreV1Api and CustomObjectsApi clients.

    Returns:
        CoreV1Api and CustomObjectsApi instances
    """
    load_kube_config()
    return client.CoreV1Api(), client.CustomObjectsApi()
