"""Constants for the Image Registry Operator."""

# API Group
API_GROUP = "imageregistry.operator.openshift.io"
API_VERSION = "v1"
API_GROUP_VERSION = f"{API_GROUP}/{API_VERSION}"
CONFIG_PLURAL = "configs"

# Resource Kinds
KIND_CONFIG = "Config"
KIND_CLUSTER_ROLE = "ClusterRole"
KIND_CLUSTER_ROLE_BINDING = "ClusterRoleBinding"
KIND_SERVICE_ACCOUNT = "ServiceAccount"
KIND_CONFIG_MAP = "ConfigMap"
KIND_SECRET = "Secret"
KIND_SERVICE = "Service"
KIND_DEPLOYMENT = "Deployment"
KIND_ROUTE = "Route"
KIND_CLUSTER_OPERATOR = "ClusterOperator"
KIND_NAMESPACE = "Namespace"
KIND_IMAGE_CONFIG = "Image"

# Well-known object names
CONFIG_NAME = "cluster"
CLUSTER_OPERATOR_NAME = "image-registry"
IMAGE_CONFIG_NAME = "cluster"
CLUSTER_ROLE_NAME = "system:registry"
CLUSTER_ROLE_BINDING_NAME = "registry-registry-role"
SERVICE_CA_CONFIG_MAP_NAME = "serviceca"
CERTIFICATES_CONFIG_MAP_NAME = "image-registry-certificates"
PRIVATE_CONFIGURATION_SECRET_NAME = "image-registry-private-configuration"
USER_CONFIGURATION_SECRET_NAME = "image-registry-private-configuration-user"
CONFIG_STATE_NAME = "image-registry-config-state"
TLS_SECRET_NAME = "image-registry-tls"
DEFAULT_ROUTE_NAME = "default-route"

# Management states
MANAGEMENT_STATE_MANAGED = "Managed"
MANAGEMENT_STATE_REMOVED = "Removed"
MANAGEMENT_STATE_UNMANAGED = "Unmanaged"

# Labels
LABEL_CREATED_BY_OPERATOR = f"{API_GROUP}/created-by-operator"

# Annotations
ANNOTATION_CHECKSUM = f"{API_GROUP}/checksum"
ANNOTATION_STORAGE_TYPE = f"{API_GROUP}/storagetype"
ANNOTATION_SECRET_CHECKSUM = f"{API_GROUP}/secret-checksum"
ANNOTATION_CONFIG_MAP_CHECKSUM = f"{API_GROUP}/configmap-checksum"
ANNOTATION_SUPPLEMENTAL_GROUPS = "openshift.io/sa.scc.supplemental-groups"
ANNOTATION_SERVICE_CA_INJECT = "service.alpha.openshift.io/inject-cabundle"
ANNOTATION_SERVING_CERT_SECRET = "service.alpha.openshift.io/serving-cert-secret-name"

# Finalizers
FINALIZER = f"{API_GROUP}/finalizer"

# Field Manager
FIELD_MANAGER = "image-registry-operator"

# Condition Types
COND_AVAILABLE = "Available"
COND_PROGRESSING = "Progressing"
COND_DEGRADED = "Degraded"

# Condition Statuses
STATUS_TRUE = "True"
STATUS_FALSE = "False"
STATUS_UNKNOWN = "Unknown"

# Event Reasons
EVENT_REASON_RECONCILE_STARTED = "ReconcileStarted"
EVENT_REASON_RECONCILE_FAILED = "ReconcileFailed"
EVENT_REASON_RECONCILE_SUCCEEDED = "ReconcileSucceeded"
EVENT_REASON_VALIDATE_FAILED = "ValidateFailed"
EVENT_REASON_STORAGE_CREATED = "StorageCreated"
EVENT_REASON_STORAGE_REMOVED = "StorageRemoved"
EVENT_REASON_RESOURCES_REMOVED = "ResourcesRemoved"
