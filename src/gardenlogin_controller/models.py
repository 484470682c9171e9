"""Typed views of the Kubernetes objects the controller watches."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from .constants import (
    DATA_KEY_KUBECONFIG,
    GARDENER_CORE_GROUP,
    KIND_SHOOT,
    KUBECONFIG_CONFIG_MAP_SUFFIX,
    LABEL_OPERATIONS_ROLE,
    OPERATIONS_ROLE_KUBECONFIG,
)


def _get(obj: Any, *keys: str) -> Any:
    """Walk nested mappings, returning None when a level is missing."""
    for key in keys:
        if not isinstance(obj, dict):
            return None
        obj = obj.get(key)
    return obj


@dataclass(frozen=True)
class ReconcileKey:
    """Namespace and name of the Shoot a reconcile applies to."""

    namespace: str
    name: str

    def __str__(self) -> str:
        return f"{self.namespace}/{self.name}"

    @property
    def config_map_name(self) -> str:
        return kubeconfig_config_map_name(self.name)


@dataclass(frozen=True)
class AdvertisedAddress:
    """An address under which a Shoot's kube-apiserver is reachable."""

    name: str
    url: str


@dataclass(frozen=True)
class Shoot:
    namespace: str
    name: str
    uid: str = ""
    advertised_addresses: tuple[AdvertisedAddress, ...] = ()
    deletion_timestamp: str | None = None

    @classmethod
    def from_body(cls, body: Any) -> Shoot:
        """Build a Shoot from a raw Kubernetes object body."""
        addresses = _get(body, "status", "advertisedAddresses") or []
        return cls(
            namespace=_get(body, "metadata", "namespace") or "",
            name=_get(body, "metadata", "name") or "",
            uid=_get(body, "metadata", "uid") or "",
            advertised_addresses=tuple(
                AdvertisedAddress(name=a.get("name") or "", url=a.get("url") or "")
                for a in addresses
                if isinstance(a, dict)
            ),
            deletion_timestamp=_get(body, "metadata", "deletionTimestamp"),
        )

    @property
    def key(self) -> ReconcileKey:
        return ReconcileKey(self.namespace, self.name)

    @property
    def is_deleting(self) -> bool:
        return self.deletion_timestamp is not None


@dataclass(frozen=True)
class ShootState:
    """A ShootState holding secret-derivation metadata of a Shoot.

    ``gardener_resources`` is the opaque ``spec.gardener`` list of
    ``{name, type, data}`` resource data entries.
    """

    namespace: str
    name: str
    gardener_resources: tuple[dict[str, Any], ...] = ()
    deletion_timestamp: str | None = None

    @classmethod
    def from_body(cls, body: Any) -> ShootState:
        resources = _get(body, "spec", "gardener") or []
        return cls(
            namespace=_get(body, "metadata", "namespace") or "",
            name=_get(body, "metadata", "name") or "",
            gardener_resources=tuple(r for r in resources if isinstance(r, dict)),
            deletion_timestamp=_get(body, "metadata", "deletionTimestamp"),
        )

    @property
    def key(self) -> ReconcileKey:
        return ReconcileKey(self.namespace, self.name)

    @property
    def is_deleting(self) -> bool:
        return self.deletion_timestamp is not None


@dataclass(frozen=True)
class ConfigMap:
    namespace: str
    name: str
    labels: dict[str, str] = field(default_factory=dict)
    data: dict[str, str] = field(default_factory=dict)
    owner_references: tuple[dict[str, Any], ...] = ()

    @classmethod
    def from_body(cls, body: Any) -> ConfigMap:
        return cls(
            namespace=_get(body, "metadata", "namespace") or "",
            name=_get(body, "metadata", "name") or "",
            labels=dict(_get(body, "metadata", "labels") or {}),
            data=dict(_get(body, "data") or {}),
            owner_references=tuple(_get(body, "metadata", "ownerReferences") or ()),
        )

    @property
    def role(self) -> str | None:
        return self.labels.get(LABEL_OPERATIONS_ROLE)

    @property
    def has_kubeconfig_role(self) -> bool:
        return self.role == OPERATIONS_ROLE_KUBECONFIG

    @property
    def kubeconfig(self) -> str | None:
        return self.data.get(DATA_KEY_KUBECONFIG)

    def owner_shoot_key(self) -> ReconcileKey | None:
        """Return the key of the Shoot controlling this ConfigMap, if any."""
        for ref in self.owner_references:
            if not isinstance(ref, dict) or not ref.get("controller"):
                continue
            # any version of the Gardener core group
            group = (ref.get("apiVersion") or "").partition("/")[0]
            if ref.get("kind") == KIND_SHOOT and group == GARDENER_CORE_GROUP:
                return ReconcileKey(self.namespace, ref.get("name") or "")
        return None


def kubeconfig_config_map_name(shoot_name: str) -> str:
    """Name of the kubeconfig ConfigMap derived from a Shoot."""
    return f"{shoot_name}{KUBECONFIG_CONFIG_MAP_SUFFIX}"
