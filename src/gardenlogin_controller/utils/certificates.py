"""Cluster CA extraction from ShootStates and certificate validation."""

from __future__ import annotations

import base64
import binascii

from cryptography import x509

from ..constants import RESOURCE_DATA_TYPE_CERTIFICATE, SECRET_NAME_CA_CLUSTER
from ..models import ShootState
from .errors import CertificateConversionError, CertificateNotProvisionedError, InvalidCertificateError


def cluster_ca_cert(shoot_state: ShootState) -> bytes:
    """Read the cluster CA certificate from the ShootState resource data.

    Args:
        shoot_state: ShootState of the Shoot

    Returns:
        PEM encoded CA certificate

    Raises:
        CertificateNotProvisionedError: If the CA entry does not exist yet
        CertificateConversionError: If the CA entry is not certificate data
    """
    entry = next(
        (r for r in shoot_state.gardener_resources if r.get("name") == SECRET_NAME_CA_CLUSTER),
        None,
    )
    if entry is None:
        raise CertificateNotProvisionedError()

    if entry.get("type") != RESOURCE_DATA_TYPE_CERTIFICATE:
        raise CertificateConversionError(
            f"could not convert resource data entry {SECRET_NAME_CA_CLUSTER} of type "
            f"{entry.get('type')!r} to certificate data"
        )

    data = entry.get("data")
    if not isinstance(data, dict):
        raise CertificateConversionError(f"resource data entry {SECRET_NAME_CA_CLUSTER} has no data")

    certificate = data.get("certificate")
    if not isinstance(certificate, str):
        raise CertificateConversionError(
            f"resource data entry {SECRET_NAME_CA_CLUSTER} has no certificate"
        )

    try:
        return base64.b64decode(certificate, validate=True)
    except (binascii.Error, ValueError) as e:
        raise CertificateConversionError(
            f"failed to decode certificate of resource data entry {SECRET_NAME_CA_CLUSTER}: {e}"
        ) from e


def validate_certificate(pem: bytes) -> x509.Certificate:
    """Check that the bytes hold a PEM encoded X.509 certificate.

    Raises:
        InvalidCertificateError: If the certificate cannot be parsed
    """
    if not pem:
        raise InvalidCertificateError("certificate is empty")
    try:
        return x509.load_pem_x509_certificate(pem)
    except ValueError as e:
        raise InvalidCertificateError(f"failed to parse certificate: {e}") from e
