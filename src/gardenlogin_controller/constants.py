"""Constants for the gardenlogin controller."""

# Gardener API groups
GARDENER_CORE_GROUP = "core.gardener.cloud"
SHOOT_VERSION = "v1beta1"
SHOOT_STATE_VERSION = "v1alpha1"
SHOOT_API_VERSION = f"{GARDENER_CORE_GROUP}/{SHOOT_VERSION}"
PLURAL_SHOOTS = "shoots"
PLURAL_SHOOT_STATES = "shootstates"

# Resource Kinds
KIND_SHOOT = "Shoot"
KIND_SHOOT_STATE = "ShootState"
KIND_CONFIG_MAP = "ConfigMap"

# Labels
LABEL_OPERATIONS_ROLE = "operations.gardener.cloud/role"
OPERATIONS_ROLE_KUBECONFIG = "kubeconfig"

# Derived kubeconfig ConfigMap
DATA_KEY_KUBECONFIG = "kubeconfig"
KUBECONFIG_CONFIG_MAP_SUFFIX = ".kubeconfig"

# Owner references of the derived ConfigMap do not block deletion of the Shoot
BLOCK_OWNER_DELETION = False

# Garden cluster identity
CLUSTER_IDENTITY = "cluster-identity"
CLUSTER_IDENTITY_NAMESPACE = "kube-system"

# ShootState resource data
SECRET_NAME_CA_CLUSTER = "ca-cluster"
RESOURCE_DATA_TYPE_CERTIFICATE = "certificate"

# Generated kubeconfig
EXEC_COMMAND = "kubectl"
EXEC_ARGS = ["gardenlogin", "get-client-certificate"]
EXEC_API_VERSION = "client.authentication.k8s.io/v1beta1"
EXEC_EXTENSION_NAME = "client.authentication.k8s.io/exec"

# Field Manager
FIELD_MANAGER = "gardenlogin-controller-manager"
CONTROLLER_NAME = "gardenlogin-controller-manager"

# Event Reasons
EVENT_REASON_RECONCILE_FAILED = "ReconcileFailed"
EVENT_REASON_KUBECONFIG_CREATED = "KubeconfigCreated"
EVENT_REASON_KUBECONFIG_UPDATED = "KubeconfigUpdated"
EVENT_REASON_KUBECONFIG_DELETED = "KubeconfigDeleted"
