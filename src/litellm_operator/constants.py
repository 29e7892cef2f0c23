"""Constants for the LiteLLM Operator."""

import os

# API Groups
AUTH_API_GROUP = "auth.litellm.ai"
AUTH_API_VERSION = "v1alpha1"
AUTH_API_GROUP_VERSION = f"{AUTH_API_GROUP}/{AUTH_API_VERSION}"

LITELLM_API_GROUP = "litellm.litellm.ai"
LITELLM_API_VERSION = "v1alpha1"
LITELLM_API_GROUP_VERSION = f"{LITELLM_API_GROUP}/{LITELLM_API_VERSION}"

# Resource Kinds
KIND_VIRTUAL_KEY = "VirtualKey"
KIND_MODEL = "Model"
KIND_TEAM = "Team"
KIND_USER = "User"
KIND_TEAM_MEMBER_ASSOCIATION = "TeamMemberAssociation"
KIND_INSTANCE = "LiteLLMInstance"

# Resource Plurals
PLURAL_VIRTUAL_KEY = "virtualkeys"
PLURAL_MODEL = "models"
PLURAL_TEAM = "teams"
PLURAL_USER = "users"
PLURAL_TEAM_MEMBER_ASSOCIATION = "teammemberassociations"
PLURAL_INSTANCE = "litellminstances"

# Finalizers
FINALIZER = "litellm-operator.litellm.ai/finalizer"

# Field Manager
FIELD_MANAGER = "litellm-operator"
CONTROLLER_NAME = "litellm-operator"

# Metadata stamped on every external record
MANAGED_BY_KEY = "managed_by"
MANAGED_BY_VALUE = "litellm-operator"

# Suffix appended to model names owned by a Model resource
MODEL_TAG = "-[crd]"

# Annotations
ANNOTATION_CONFIG_HASH = "litellm.ai/config-hash"

# Condition Types
COND_READY = "Ready"
COND_PROGRESSING = "Progressing"
COND_DEGRADED = "Degraded"

# Condition Reasons
REASON_READY = "Ready"
REASON_RECONCILING = "Reconciling"
REASON_DELETING = "Deleting"
REASON_CONNECTION_ERROR = "ConnectionError"
REASON_CONFIG_ERROR = "ConfigError"
REASON_SERVICE_ERROR = "ServiceError"
REASON_WRITE_CONFLICT = "WriteConflict"
REASON_DELETE_FAILED = "DeleteFailed"
REASON_RECONCILE_TIMEOUT = "ReconcileTimeout"
REASON_RECONCILE_ERROR = "ReconcileError"
REASON_SECRET_MISSING = "SecretMissing"

# Event Reasons
EVENT_REASON_RECONCILE_STARTED = "ReconcileStarted"
EVENT_REASON_RECONCILE_FAILED = "ReconcileFailed"
EVENT_REASON_EXTERNAL_CREATED = "ExternalCreated"
EVENT_REASON_EXTERNAL_UPDATED = "ExternalUpdated"
EVENT_REASON_EXTERNAL_DELETED = "ExternalDeleted"
EVENT_REASON_DRIFT_DETECTED = "DriftDetected"
EVENT_REASON_SECRET_WRITTEN = "SecretWritten"

# Instance child objects
CONFIG_MAP_SUFFIX = "-config"
SECRET_SUFFIX = "-secrets"
DEPLOYMENT_SUFFIX = "-deployment"
SERVICE_SUFFIX = "-service"
CONTAINER_PORT = 4000
SERVICE_PORT = 80
CONFIG_FILE_NAME = "proxy_server_config.yaml"
CONFIG_MOUNT_PATH = "/etc/litellm"
MASTER_KEY_FIELD = "masterkey"
URL_FIELD = "url"
LIVENESS_PATH = "/health/liveness"
READINESS_PATH = "/health/readiness"

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")

# Timing (seconds)
RECONCILE_TIMEOUT_SECONDS = float(os.getenv("RECONCILE_TIMEOUT_SECONDS", "20"))
RECHECK_INTERVAL_SECONDS = float(os.getenv("RECHECK_INTERVAL_SECONDS", "60"))
CONNECTION_RETRY_SECONDS = float(os.getenv("CONNECTION_RETRY_SECONDS", "30"))
SERVICE_RETRY_SECONDS = float(os.getenv("SERVICE_RETRY_SECONDS", "30"))
CONFLICT_RETRY_SECONDS = float(os.getenv("CONFLICT_RETRY_SECONDS", "1"))
DEPENDENCY_RETRY_SECONDS = float(os.getenv("DEPENDENCY_RETRY_SECONDS", "10"))
LITELLM_REQUEST_TIMEOUT_SECONDS = float(os.getenv("LITELLM_REQUEST_TIMEOUT_SECONDS", "10"))

# Conflict-retry writer
WRITE_MAX_ATTEMPTS = 5
WRITE_BACKOFF_SECONDS = 0.1
