"""Builder for exec-credential based kubeconfig documents."""

from __future__ import annotations

import base64
from dataclasses import dataclass, field
from urllib.parse import urlsplit

import yaml

from ..constants import EXEC_API_VERSION, EXEC_ARGS, EXEC_COMMAND, EXEC_EXTENSION_NAME
from ..models import Shoot
from ..utils.errors import KubeconfigGenerationError, KubeconfigRequestInvalidError


@dataclass(frozen=True)
class ClusterEndpoint:
    """Data to describe and connect to one kube-apiserver address."""

    # name of the advertised address, usually "external", "internal" or "unmanaged"
    name: str
    host: str
    ca_cert: bytes | None = None


@dataclass
class KubeconfigRequest:
    """Information about a kubeconfig to be generated for a Shoot."""

    namespace: str
    shoot_name: str
    garden_cluster_identity: str
    clusters: list[ClusterEndpoint] = field(default_factory=list)

    @property
    def auth_name(self) -> str:
        return f"{self.namespace}--{self.shoot_name}"

    def validate(self) -> None:
        """Ensure all required fields are set.

        Raises:
            KubeconfigRequestInvalidError: For the first missing field
        """
        if not self.clusters:
            raise KubeconfigRequestInvalidError("missing clusters")

        for n, cluster in enumerate(self.clusters):
            if not cluster.name:
                raise KubeconfigRequestInvalidError(f"no name defined for cluster[{n}]")
            if not cluster.host:
                raise KubeconfigRequestInvalidError(f"no api server host defined for cluster[{n}]")

        if not self.namespace:
            raise KubeconfigRequestInvalidError("no namespace defined for kubeconfig request")

        if not self.shoot_name:
            raise KubeconfigRequestInvalidError("no shoot name defined for kubeconfig request")

        if not self.garden_cluster_identity:
            raise KubeconfigRequestInvalidError("no garden cluster identity defined for kubeconfig request")

    def exec_plugin_config(self) -> dict[str, object]:
        """Cluster extension telling the credential plugin which Shoot it authenticates for."""
        return {
            "shootRef": {
                "namespace": self.namespace,
                "name": self.shoot_name,
            },
            "gardenClusterIdentity": self.garden_cluster_identity,
        }

    def to_dict(self) -> dict[str, object]:
        """Build the kubeconfig document.

        The current context is derived from the first cluster, so callers put
        the preferred address first.
        """
        auth_name = self.auth_name
        extension = self.exec_plugin_config()

        clusters = []
        contexts = []
        for cluster in self.clusters:
            name = f"{auth_name}-{cluster.name}"
            cluster_entry: dict[str, object] = {"server": f"https://{cluster.host}"}
            if cluster.ca_cert:
                cluster_entry["certificate-authority-data"] = base64.b64encode(cluster.ca_cert).decode("ascii")
            cluster_entry["extensions"] = [{"name": EXEC_EXTENSION_NAME, "extension": extension}]

            clusters.append({"name": name, "cluster": cluster_entry})
            contexts.append({"name": name, "context": {"cluster": name, "user": auth_name}})

        return {
            "apiVersion": "v1",
            "kind": "Config",
            "preferences": {},
            "clusters": clusters,
            "contexts": contexts,
            "current-context": f"{auth_name}-{self.clusters[0].name}",
            "users": [
                {
                    "name": auth_name,
                    "user": {
                        "exec": {
                            "apiVersion": EXEC_API_VERSION,
                            "command": EXEC_COMMAND,
                            "args": list(EXEC_ARGS),
                            "env": None,
                            "provideClusterInfo": True,
                        },
                    },
                },
            ],
        }

    def generate(self) -> bytes:
        """Serialize the kubeconfig for this request.

        Returns:
            The kubeconfig as UTF-8 encoded YAML

        Raises:
            KubeconfigRequestInvalidError: If the request has no clusters
            KubeconfigGenerationError: If the document cannot be serialized
        """
        if not self.clusters:
            raise KubeconfigRequestInvalidError("missing clusters")
        try:
            return yaml.safe_dump(self.to_dict(), sort_keys=False, default_flow_style=False).encode("utf-8")
        except yaml.YAMLError as e:
            raise KubeconfigGenerationError(f"could not serialize kubeconfig: {e}") from e


def build_kubeconfig_request(
    shoot: Shoot,
    ca_cert: bytes,
    garden_cluster_identity: str,
) -> KubeconfigRequest:
    """Create a kubeconfig request with one cluster per advertised address.

    Address order is kept.

    Raises:
        KubeconfigRequestInvalidError: If an address URL cannot be parsed
    """
    request = KubeconfigRequest(
        namespace=shoot.namespace,
        shoot_name=shoot.name,
        garden_cluster_identity=garden_cluster_identity,
    )

    for address in shoot.advertised_addresses:
        try:
            host = urlsplit(address.url).netloc
        except ValueError as e:
            raise KubeconfigRequestInvalidError(f"could not parse shoot server url: {e}") from e
        request.clusters.append(ClusterEndpoint(name=address.name, host=host, ca_cert=ca_cert))

    return request
