"""Update predicates deciding whether a watch event triggers a reconcile.

Create and delete events always pass; these functions are only consulted for
updates and receive the typed old and new objects.
"""

from __future__ import annotations

import logging

from .. import metrics
from ..constants import KIND_CONFIG_MAP, KIND_SHOOT, KIND_SHOOT_STATE
from ..models import ConfigMap, Shoot, ShootState
from ..utils.certificates import cluster_ca_cert
from ..utils.errors import CertificateConversionError, CertificateNotProvisionedError

logger = logging.getLogger(__name__)


def shoot_addresses_changed(old: Shoot, new: Shoot) -> bool:
    """Pass when the advertised addresses changed in length, name or URL."""
    if len(old.advertised_addresses) != len(new.advertised_addresses):
        decision = True
    else:
        decision = any(
            a.name != b.name or a.url != b.url
            for a, b in zip(old.advertised_addresses, new.advertised_addresses)
        )
    metrics.events_total.labels(kind=KIND_SHOOT, decision="pass" if decision else "suppress").inc()
    return decision


def kubeconfig_config_map_changed(old: ConfigMap, new: ConfigMap) -> bool:
    """Pass when the kubeconfig role label or the kubeconfig data changed.

    ConfigMaps carrying the kubeconfig role on neither side are ignored.
    """
    if not old.has_kubeconfig_role and not new.has_kubeconfig_role:
        decision = False
    elif old.role != new.role:
        decision = True
    else:
        decision = old.kubeconfig != new.kubeconfig
    metrics.events_total.labels(kind=KIND_CONFIG_MAP, decision="pass" if decision else "suppress").inc()
    return decision


def shoot_state_ca_changed(old: ShootState, new: ShootState) -> bool:
    """Compare the cluster CA of two ShootState revisions.

    NOTE: the event passes when both CAs are *equal*, and a CA that cannot be
    read on either side suppresses the event. This mirrors the behavior the
    controller has always had and looks inverted for a change detector; it is
    kept until the intended semantics are confirmed.
    """
    try:
        old_ca = cluster_ca_cert(old)
    except (CertificateNotProvisionedError, CertificateConversionError) as e:
        logger.error(
            "Update event failed to read cluster ca from old ShootState %s/%s: %s",
            old.namespace,
            old.name,
            e,
        )
        metrics.events_total.labels(kind=KIND_SHOOT_STATE, decision="error").inc()
        return False

    try:
        new_ca = cluster_ca_cert(new)
    except (CertificateNotProvisionedError, CertificateConversionError) as e:
        logger.error(
            "Update event failed to read cluster ca from new ShootState %s/%s: %s",
            new.namespace,
            new.name,
            e,
        )
        metrics.events_total.labels(kind=KIND_SHOOT_STATE, decision="error").inc()
        return False

    decision = old_ca == new_ca
    metrics.events_total.labels(kind=KIND_SHOOT_STATE, decision="pass" if decision else "suppress").inc()
    return decision
