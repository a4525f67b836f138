"""CRD schema constants and fixed workload names."""

# CRD Group, Version, and Kind
GROUP = "operator.ibm.com"
VERSION = "v1alpha1"
PLURAL = "managementingresses"
KIND = "ManagementIngress"

# API version string
API_VERSION = f"{GROUP}/{VERSION}"

# Status phases
PHASE_RUNNING = "Running"
PHASE_FAILED = "Failed"

# Managed workload
APP_NAME = "management-ingress"
SERVICE_ACCOUNT_NAME = "management-ingress"
CONFIGMAP_NAME = "management-ingress"
TLS_SECRET_NAME = "icp-management-ingress-tls-secret"
ENTRYPOINT = "/icp-management-ingress"

HTTPS_PORT = 8443
HTTP_PORT = 8080
HEALTH_PATH = "/healthz"

CRITICAL_POD_ANNOTATION = "scheduler.alpha.kubernetes.io/critical-pod"

# Upstream identity provider objects
AUTH_IDP_CONFIGMAP = "platform-auth-idp"
OIDC_CREDENTIALS_SECRET = "platform-oidc-credentials"
