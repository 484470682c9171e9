"""Error types raised while reconciling kubeconfig ConfigMaps."""

from __future__ import annotations


class GardenloginError(Exception):
    """Base class for all controller errors."""


class CertificateNotProvisionedError(GardenloginError):
    """The cluster CA has not been written to the ShootState yet.

    Expected to resolve on its own once the Shoot is provisioned.
    """

    def __init__(self, message: str = "certificate authority not yet provisioned"):
        super().__init__(message)


class CertificateConversionError(GardenloginError):
    """The CA resource data entry exists but has an unexpected shape."""


class InvalidCertificateError(GardenloginError):
    """The CA bytes do not parse as an X.509 certificate."""


class NoAdvertisedAddressesError(GardenloginError):
    """The Shoot does not advertise any kube-apiserver address."""

    def __init__(self) -> None:
        super().__init__("no kube-apiserver advertised addresses in Shoot .status.advertisedAddresses")


class KubeconfigRequestInvalidError(GardenloginError):
    """A kubeconfig request is missing required data."""


class KubeconfigGenerationError(GardenloginError):
    """Serializing a kubeconfig document failed."""


class ClusterIdentityError(GardenloginError):
    """The garden cluster identity could not be determined."""


class KubeconfigUpsertError(GardenloginError):
    """Creating or updating the kubeconfig ConfigMap failed."""


class NamespaceLimitReached(GardenloginError):
    """Too many reconciles are in flight for a namespace.

    Not a failure: callers defer the key with a jittered delay.
    """

    def __init__(self, namespace: str):
        super().__init__(f"maximum parallel reconciles reached for namespace {namespace}")
        self.namespace = namespace


class NamespaceCounterError(GardenloginError):
    """An exit was recorded for a namespace without a matching enter."""


class ConfigurationError(GardenloginError):
    """The controller manager configuration is invalid."""

    def __init__(self, field_path: str, value: object, detail: str):
        super().__init__(f"{field_path}: Invalid value: {value!r}: {detail}")
        self.field_path = field_path
        self.value = value
        self.detail = detail


def is_not_found(error: BaseException) -> bool:
    """Return True if the error is a Kubernetes API 404."""
    return getattr(error, "status", None) == 404
