"""Reconciler keeping the kubeconfig ConfigMap of a Shoot up to date."""

from __future__ import annotations

import copy
import random
from dataclasses import dataclass
from typing import Any

from kubernetes import client

from .. import metrics
from ..builders.kubeconfig import build_kubeconfig_request
from ..constants import (
    BLOCK_OWNER_DELETION,
    CLUSTER_IDENTITY,
    CLUSTER_IDENTITY_NAMESPACE,
    DATA_KEY_KUBECONFIG,
    KIND_SHOOT,
    LABEL_OPERATIONS_ROLE,
    OPERATIONS_ROLE_KUBECONFIG,
    SHOOT_API_VERSION,
)
from ..models import ReconcileKey, Shoot, ShootState
from ..utils.certificates import cluster_ca_cert, validate_certificate
from ..utils.errors import ClusterIdentityError, KubeconfigUpsertError, NoAdvertisedAddressesError
from ..utils.events import (
    emit_kubeconfig_created,
    emit_kubeconfig_deleted,
    emit_kubeconfig_updated,
    emit_reconcile_failed,
)
from ..utils.rate_limit import NamespaceAdmissionController, jittered_delay
from .base import BaseHandler
from .shared import (
    create_config_map,
    delete_config_map,
    get_shoot,
    get_shoot_state,
    read_config_map,
    replace_config_map,
)

UPSERT_CREATED = "created"
UPSERT_UPDATED = "updated"
UPSERT_UNCHANGED = "unchanged"


@dataclass(frozen=True)
class ReconcileResult:
    """Outcome of a successful reconcile.

    ``requeue_after`` is set when the key was deferred and must be retried
    after that many seconds.
    """

    requeue_after: float | None = None

    @property
    def deferred(self) -> bool:
        return self.requeue_after is not None


def owner_reference(shoot: Shoot) -> dict[str, Any]:
    """Controller owner reference of the kubeconfig ConfigMap."""
    return {
        "apiVersion": SHOOT_API_VERSION,
        "kind": KIND_SHOOT,
        "name": shoot.name,
        "uid": shoot.uid,
        "controller": True,
        "blockOwnerDeletion": BLOCK_OWNER_DELETION,
    }


def desired_config_map(existing: dict[str, Any] | None, shoot: Shoot, kubeconfig: str) -> dict[str, Any]:
    """Apply the owner reference, role label and kubeconfig data to a ConfigMap body.

    Fields other than these are kept as they are on ``existing``.
    """
    if existing is None:
        body: dict[str, Any] = {
            "apiVersion": "v1",
            "kind": "ConfigMap",
            "metadata": {
                "name": ReconcileKey(shoot.namespace, shoot.name).config_map_name,
                "namespace": shoot.namespace,
            },
        }
    else:
        body = copy.deepcopy(existing)

    metadata = body.setdefault("metadata", {})
    metadata["ownerReferences"] = [owner_reference(shoot)]
    labels = metadata.get("labels") or {}
    labels[LABEL_OPERATIONS_ROLE] = OPERATIONS_ROLE_KUBECONFIG
    metadata["labels"] = labels

    data = body.get("data") or {}
    data[DATA_KEY_KUBECONFIG] = kubeconfig
    body["data"] = data
    return body


class ShootReconciler(BaseHandler):
    """Reconciles the kubeconfig ConfigMap of a Shoot.

    The kubeconfig is stored in a ConfigMap as it does not contain any
    credentials; clients obtain them through the exec plugin it references.
    """

    def __init__(
        self,
        core_api: client.CoreV1Api,
        custom_api: client.CustomObjectsApi,
        admission: NamespaceAdmissionController,
        record_events: bool = True,
        rand: random.Random | None = None,
    ):
        super().__init__(KIND_SHOOT)
        self.core_api = core_api
        self.custom_api = custom_api
        self.admission = admission
        self.record_events = record_events
        self._rand = rand

    def reconcile(self, key: ReconcileKey) -> ReconcileResult:
        """Reconcile one key, deferring it when its namespace is at capacity.

        Raises:
            Exception: Any reconcile error; the caller requeues with backoff
        """
        if not self.admission.enter(key.namespace):
            delay = jittered_delay(rand=self._rand)
            metrics.namespace_limit_hits_total.inc()
            metrics.reconcile_total.labels(result="deferred").inc()
            self.log_warning(
                key,
                "maximum parallel reconciles reached for namespace - requeuing the request",
                event="deferred",
                reason="NamespaceLimitReached",
                requeue_after=round(delay, 3),
            )
            return ReconcileResult(requeue_after=delay)

        try:
            return self.reconcile_with_metrics(key, lambda: self._handle(key))
        finally:
            self.admission.exit(key.namespace)

    def _handle(self, key: ReconcileKey) -> ReconcileResult:
        shoot_body = get_shoot(self.custom_api, key.namespace, key.name)
        if shoot_body is None:
            # shoot does not exist anymore - cleanup kubeconfig configmap
            self._cleanup(key, None, "Shoot not found")
            return ReconcileResult()
        shoot = Shoot.from_body(shoot_body)

        shoot_state_body = get_shoot_state(self.custom_api, key.namespace, key.name)
        if shoot_state_body is None:
            self._cleanup(key, shoot, "ShootState not found")
            return ReconcileResult()
        shoot_state = ShootState.from_body(shoot_state_body)

        if shoot_state.is_deleting:
            self._cleanup(key, shoot, "ShootState is in deletion")
            return ReconcileResult()

        if shoot.is_deleting:
            self._cleanup(key, shoot, "Shoot is in deletion")
            return ReconcileResult()

        try:
            kubeconfig = self._generate_kubeconfig(shoot, shoot_state)
            outcome = self._upsert(shoot, kubeconfig)
        except Exception as e:
            if self.record_events:
                emit_reconcile_failed(shoot, f"Reconciliation failed: {e}")
            raise

        metrics.kubeconfig_operations_total.labels(operation=outcome).inc()
        if outcome != UPSERT_UNCHANGED:
            self.log_info(key, f"Kubeconfig ConfigMap {key.config_map_name} {outcome}", event=outcome, reason="Reconciled")
        if self.record_events:
            if outcome == UPSERT_CREATED:
                emit_kubeconfig_created(shoot, key.config_map_name)
            elif outcome == UPSERT_UPDATED:
                emit_kubeconfig_updated(shoot, key.config_map_name)
        return ReconcileResult()

    def _generate_kubeconfig(self, shoot: Shoot, shoot_state: ShootState) -> str:
        if not shoot.advertised_addresses:
            raise NoAdvertisedAddressesError()

        ca_cert = cluster_ca_cert(shoot_state)
        validate_certificate(ca_cert)

        request = build_kubeconfig_request(shoot, ca_cert, self.garden_cluster_identity())
        request.validate()
        return request.generate().decode("utf-8")

    def garden_cluster_identity(self) -> str:
        """Read the identity of the garden cluster.

        Returns:
            The identity; empty if the ConfigMap lacks the key, which fails
            request validation

        Raises:
            ClusterIdentityError: If the identity ConfigMap cannot be read
        """
        try:
            config_map = read_config_map(self.core_api, CLUSTER_IDENTITY_NAMESPACE, CLUSTER_IDENTITY)
        except client.exceptions.ApiException as e:
            raise ClusterIdentityError(f"failed to fetch garden cluster identity: {e}") from e

        if config_map is None:
            raise ClusterIdentityError(
                f"failed to fetch garden cluster identity: configmap "
                f"{CLUSTER_IDENTITY_NAMESPACE}/{CLUSTER_IDENTITY} not found"
            )

        data = config_map.get("data")
        if data is None:
            raise ClusterIdentityError("cluster identity configmap data not set")

        return data.get(CLUSTER_IDENTITY) or ""

    def _upsert(self, shoot: Shoot, kubeconfig: str) -> str:
        """Create or update the kubeconfig ConfigMap, writing only on change."""
        key = shoot.key
        name = key.config_map_name
        try:
            existing = read_config_map(self.core_api, key.namespace, name)
            desired = desired_config_map(existing, shoot, kubeconfig)

            if existing is None:
                create_config_map(self.core_api, key.namespace, desired)
                return UPSERT_CREATED

            if desired == existing:
                return UPSERT_UNCHANGED

            replace_config_map(self.core_api, key.namespace, name, desired)
            return UPSERT_UPDATED
        except client.exceptions.ApiException as e:
            raise KubeconfigUpsertError(
                f"failed to create or update kubeconfig configmap {key.namespace}/{name}: {e.reason}"
            ) from e

    def _cleanup(self, key: ReconcileKey, shoot: Shoot | None, reason: str) -> None:
        """Delete the kubeconfig ConfigMap; a missing ConfigMap is fine."""
        deleted = delete_config_map(self.core_api, key.namespace, key.config_map_name)
        if not deleted:
            return

        metrics.kubeconfig_operations_total.labels(operation="deleted").inc()
        self.log_info(
            key,
            f"Kubeconfig ConfigMap {key.config_map_name} deleted: {reason}",
            event="deleted",
            reason="Cleanup",
        )
        if shoot is not None and self.record_events:
            emit_kubeconfig_deleted(shoot, key.config_map_name)
