import requests

from argodeploy.errors import AuthenticationFailedError
from argodeploy.models import DeploymentContext, Session
from argodeploy.services.diagnostics import DiagnosticsService


class DummyLogger:
    def info(self, *_args, **_kwargs):
        return None

    def warning(self, *_args, **_kwargs):
        return None


class DummyConsole:
    def print(self, *_args, **_kwargs):
        return None


class FakeKubectl:
    def __init__(self, namespace_present=True, ingress_host="argocd.lab", tls_host="argocd.lab"):
        self.namespace_present = namespace_present
        self.ingress_host = ingress_host
        self.tls_host = tls_host

    def namespace_exists(self, context, namespace):
        return self.namespace_present

    def list_names(self, context, kind, namespace=None, selector=None):
        return {
            "pods": ["argocd-server-1", "argocd-repo-server-1"],
            "services": ["argocd-server"],
            "deployments": ["argocd-server"],
            "statefulsets": ["argocd-application-controller"],
            "ingress": ["argocd-ingress"],
            "serviceaccounts": ["argocd-manager", "default"],
            "clusterroles": ["argocd-manager-role", "admin"],
            "clusterrolebindings": ["argocd-manager-role-binding"],
        }.get(kind, [])

    def get_table(self, context, kind, namespace=None):
        return "NAME READY"

    def get_jsonpath(self, context, kind, name, jsonpath, namespace=None):
        if "tls" in jsonpath:
            return self.tls_host
        return self.ingress_host

    def cluster_secret_servers(self, context, namespace):
        return {"cluster-10.0.0.5": "https://10.0.0.5:6443"}


class FakeArgoCD:
    def list_clusters(self, session):
        return [{"name": "in-cluster", "server": "https://kubernetes.default.svc"}]


class FakeCredentials:
    def __init__(self, fail=False):
        self.fail = fail

    def open_admin_session(self, context):
        if self.fail:
            raise AuthenticationFailedError("login failed")
        return Session(server="argocd.lab", username="admin"), "pw"

    def get_bootstrap_password(self, context):
        return "pw"

    def resolve_server_address(self, context):
        return "https://argocd.lab"


class FakeResponse:
    def raise_for_status(self):
        return None


class FakeRequests:
    RequestException = requests.RequestException

    def __init__(self, fail=False):
        self.fail = fail
        self.urls = []

    def get(self, url, timeout=None, verify=True):
        self.urls.append((url, verify))
        if self.fail:
            raise requests.ConnectionError("unreachable")
        return FakeResponse()


CONTEXT = DeploymentContext(name="hub")


def build(kubectl=None, credentials=None, requests_module=None):
    return DiagnosticsService(
        kubectl or FakeKubectl(),
        FakeArgoCD(),
        credentials or FakeCredentials(),
        DummyLogger(),
        DummyConsole(),
        requests_module=requests_module or FakeRequests(),
    )


def test_check_status_counts_workloads_and_clusters():
    counts = build().check_status(CONTEXT)

    assert counts == {
        "pods": 2,
        "services": 1,
        "deployments": 1,
        "statefulsets": 1,
        "ingress": 1,
        "clusters": 1,
    }


def test_check_status_falls_back_to_cluster_secrets_when_login_fails():
    service = build(credentials=FakeCredentials(fail=True))

    clusters = service.report_clusters(CONTEXT)

    assert clusters == [{"name": "cluster-10.0.0.5", "server": "https://10.0.0.5:6443"}]


def test_check_status_without_namespace_reports_nothing():
    assert build(kubectl=FakeKubectl(namespace_present=False)).check_status(CONTEXT) == {}


def test_check_ingress_probes_health_endpoint():
    fake_requests = FakeRequests()

    host = build(requests_module=fake_requests).check_ingress(CONTEXT)

    assert host == "argocd.lab"
    assert fake_requests.urls == [("https://argocd.lab/healthz", False)]


def test_unreachable_ingress_is_only_a_warning():
    assert build(requests_module=FakeRequests(fail=True)).check_ingress(CONTEXT) == "argocd.lab"


def test_missing_ingress_returns_none():
    fake_requests = FakeRequests()

    assert build(kubectl=FakeKubectl(ingress_host=""), requests_module=fake_requests).check_ingress(CONTEXT) is None
    assert fake_requests.urls == []


def test_show_credentials_returns_login_details():
    assert build().show_credentials(CONTEXT) == {
        "url": "https://argocd.lab",
        "username": "admin",
        "password": "pw",
    }


def test_spoke_access_summary_filters_argocd_resources():
    summary = build().spoke_access_summary(CONTEXT)

    assert summary == {
        "serviceaccounts": ["argocd-manager"],
        "clusterroles": ["argocd-manager-role"],
        "clusterrolebindings": ["argocd-manager-role-binding"],
    }
