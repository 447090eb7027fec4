"""Shared constants for ArgoDeploy."""

ARGOCD_VERSION = "2.13.3"

DEFAULT_NAMESPACE = "argocd"
DEFAULT_HUB_CONTEXT = "kubernetes-admin@kubernetes"
ADMIN_USERNAME = "admin"

BOOTSTRAP_SECRET_NAME = "argocd-initial-admin-secret"
BOOTSTRAP_SECRET_KEY = "password"
BOOTSTRAP_SECRET_ATTEMPTS = 5
BOOTSTRAP_SECRET_BACKOFF_SECONDS = 2.0

INGRESS_NAME = "argocd-ingress"
FALLBACK_SERVER_ADDRESS = "https://localhost:8080"

SERVER_DEPLOYMENT = "argocd-server"
SERVER_POD_SELECTOR = "app.kubernetes.io/name=argocd-server"
APPLICATION_CRD = "applications.argoproj.io"
CLUSTER_SECRET_SELECTOR = "argocd.argoproj.io/secret-type=cluster"

RBAC_CONFIGMAP = "argocd-rbac-cm"
RBAC_POLICY_KEY = "policy.csv"
ACCOUNTS_CONFIGMAP = "argocd-cm"
DEFAULT_ROLE = "role:developer"
ACCOUNT_CAPABILITIES = "apiKey,login"

GATE_CRD_ESTABLISHED = "crd-established"
GATE_POD_READY = "pod-ready"

READINESS_BEST_EFFORT = "best-effort"
READINESS_STRICT = "strict"
READINESS_POLICIES = (READINESS_BEST_EFFORT, READINESS_STRICT)

CRD_TIMEOUT_SECONDS = 60
POD_READY_TIMEOUT_SECONDS = 300
ROLLOUT_TIMEOUT_SECONDS = 300
POLL_INTERVAL_SECONDS = 2.0

BACKUP_PREFIX = "argocd-backup"
BACKUP_SUFFIX = ".yaml"
BACKUP_TIMESTAMP_FORMAT = "%Y%m%d-%H%M%S"

DEFAULT_LOG_FILE = "logs/deploy.log"
DEFAULT_BACKUP_DIR = "backups"
DEFAULT_HUB_MANIFESTS_DIR = "k8s-main"
DEFAULT_SPOKE_MANIFESTS_DIR = "k8s-remotes"
DEFAULT_TOKEN_DIR = "~/.argocd"

DIR_MODE = 0o750
TOKEN_DIR_MODE = 0o700
TOKEN_FILE_MODE = 0o600
