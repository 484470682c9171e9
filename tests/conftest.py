"""Shared fixtures and fake Kubernetes APIs for the unit tests."""

from __future__ import annotations

import base64
import copy
from datetime import datetime, timedelta, timezone
from typing import Any
from unittest.mock import Mock

import pytest
from cryptography import x509
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import ec
from cryptography.x509.oid import NameOID
from kubernetes.client.exceptions import ApiException


def make_ca_pem(common_name: str = "ca") -> bytes:
    """Create a self-signed CA certificate in PEM format."""
    key = ec.generate_private_key(ec.SECP256R1())
    name = x509.Name([x509.NameAttribute(NameOID.COMMON_NAME, common_name)])
    now = datetime.now(timezone.utc)
    cert = (
        x509.CertificateBuilder()
        .subject_name(name)
        .issuer_name(name)
        .public_key(key.public_key())
        .serial_number(x509.random_serial_number())
        .not_valid_before(now - timedelta(days=1))
        .not_valid_after(now + timedelta(days=1))
        .add_extension(x509.BasicConstraints(ca=True, path_length=None), critical=True)
        .sign(key, hashes.SHA256())
    )
    return cert.public_bytes(serialization.Encoding.PEM)


def shoot_body(
    namespace: str = "garden-ns1",
    name: str = "shoot-a",
    addresses: list[tuple[str, str]] | None = None,
    deletion_timestamp: str | None = None,
    uid: str = "shoot-uid",
) -> dict[str, Any]:
    if addresses is None:
        addresses = [("external", "https://api.example.com:443")]
    metadata: dict[str, Any] = {"namespace": namespace, "name": name, "uid": uid}
    if deletion_timestamp:
        metadata["deletionTimestamp"] = deletion_timestamp
    return {
        "apiVersion": "core.gardener.cloud/v1beta1",
        "kind": "Shoot",
        "metadata": metadata,
        "status": {"advertisedAddresses": [{"name": n, "url": u} for n, u in addresses]},
    }


def shoot_state_body(
    ca_pem: bytes | None,
    namespace: str = "garden-ns1",
    name: str = "shoot-a",
    deletion_timestamp: str | None = None,
    resource_type: str = "certificate",
) -> dict[str, Any]:
    gardener = []
    if ca_pem is not None:
        gardener.append(
            {
                "name": "ca-cluster",
                "type": resource_type,
                "data": {
                    "certificate": base64.b64encode(ca_pem).decode("ascii"),
                    "privateKey": base64.b64encode(b"key").decode("ascii"),
                },
            }
        )
    metadata: dict[str, Any] = {"namespace": namespace, "name": name}
    if deletion_timestamp:
        metadata["deletionTimestamp"] = deletion_timestamp
    return {
        "apiVersion": "core.gardener.cloud/v1alpha1",
        "kind": "ShootState",
        "metadata": metadata,
        "spec": {"gardener": gardener},
    }


class FakeCoreV1Api:
    """In-memory ConfigMap store standing in for CoreV1Api."""

    def __init__(self) -> None:
        self.config_maps: dict[tuple[str, str], dict[str, Any]] = {}
        self.calls: list[str] = []
        self.api_client = Mock()
        self.api_client.sanitize_for_serialization.side_effect = copy.deepcopy
        self._version = 0

    def _next_version(self) -> str:
        self._version += 1
        return str(self._version)

    def read_namespaced_config_map(self, name: str, namespace: str, **_: Any) -> dict[str, Any]:
        self.calls.append("read")
        try:
            return copy.deepcopy(self.config_maps[(namespace, name)])
        except KeyError:
            raise ApiException(status=404, reason="Not Found") from None

    def create_namespaced_config_map(self, namespace: str, body: dict[str, Any], **_: Any) -> None:
        self.calls.append("create")
        name = body["metadata"]["name"]
        if (namespace, name) in self.config_maps:
            raise ApiException(status=409, reason="AlreadyExists")
        stored = copy.deepcopy(body)
        stored["metadata"]["resourceVersion"] = self._next_version()
        self.config_maps[(namespace, name)] = stored

    def replace_namespaced_config_map(self, name: str, namespace: str, body: dict[str, Any], **_: Any) -> None:
        self.calls.append("replace")
        current = self.config_maps.get((namespace, name))
        if current is None:
            raise ApiException(status=404, reason="Not Found")
        if body["metadata"].get("resourceVersion") != current["metadata"]["resourceVersion"]:
            raise ApiException(status=409, reason="Conflict")
        stored = copy.deepcopy(body)
        stored["metadata"]["resourceVersion"] = self._next_version()
        self.config_maps[(namespace, name)] = stored

    def delete_namespaced_config_map(self, name: str, namespace: str, **_: Any) -> None:
        self.calls.append("delete")
        if self.config_maps.pop((namespace, name), None) is None:
            raise ApiException(status=404, reason="Not Found")

    def writes(self) -> list[str]:
        return [c for c in self.calls if c != "read"]


class FakeCustomObjectsApi:
    """In-memory custom object store standing in for CustomObjectsApi."""

    def __init__(self) -> None:
        self.objects: dict[tuple[str, str, str], dict[str, Any]] = {}

    def put(self, plural: str, body: dict[str, Any]) -> None:
        meta = body["metadata"]
        self.objects[(plural, meta["namespace"], meta["name"])] = body

    def get_namespaced_custom_object(
        self, group: str, version: str, namespace: str, plural: str, name: str, **_: Any
    ) -> dict[str, Any]:
        try:
            return copy.deepcopy(self.objects[(plural, namespace, name)])
        except KeyError:
            raise ApiException(status=404, reason="Not Found") from None


@pytest.fixture(scope="session")
def ca_pem() -> bytes:
    return make_ca_pem()


@pytest.fixture
def core_api() -> FakeCoreV1Api:
    api = FakeCoreV1Api()
    api.config_maps[("kube-system", "cluster-identity")] = {
        "metadata": {"name": "cluster-identity", "namespace": "kube-system", "resourceVersion": "0"},
        "data": {"cluster-identity": "garden-1"},
    }
    return api


@pytest.fixture
def custom_api() -> FakeCustomObjectsApi:
    return FakeCustomObjectsApi()
