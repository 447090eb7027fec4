import os
import stat
import sys

import pytest

import argodeploy.services.accounts as accounts_module
from argodeploy.errors import (
    AccountAlreadyExistsError,
    AccountNotFoundError,
    DeployerError,
)
from argodeploy.models import DeploymentContext, Session
from argodeploy.services.accounts import AccountService, format_validity, role_bindings
from argodeploy.services.filesystem import FileSystemService


class DummyLogger:
    def info(self, *_args, **_kwargs):
        return None

    def error(self, *_args, **_kwargs):
        return None

    def warning(self, *_args, **_kwargs):
        return None

    def debug(self, *_args, **_kwargs):
        return None


class DummyConsole:
    def print(self, *_args, **_kwargs):
        return None


class FakeKubectl:
    def __init__(self, policy="p, role:developer, applications, get, */*, allow", fail_on=None):
        self.configmaps = {
            "argocd-rbac-cm": {"policy.csv": policy} if policy is not None else None,
            "argocd-cm": {},
        }
        self.fail_on = fail_on
        self.patches = []

    def get_configmap_value(self, context, name, namespace, key):
        data = self.configmaps.get(name)
        if data is None:
            return None
        return data.get(key, "")

    def patch_configmap(self, context, name, namespace, data):
        self.patches.append((name, dict(data)))
        if name == self.fail_on:
            raise DeployerError(f"patch {name} failed")
        self.configmaps[name].update(data)


class FakeArgoCD:
    def __init__(self, accounts=("admin",)):
        self.accounts = list(accounts)
        self.password_updates = []
        self.tokens = []

    def list_accounts(self, session):
        return list(self.accounts)

    def update_password(self, session, account, new_password, current_password):
        self.password_updates.append((account, new_password, current_password))

    def generate_token(self, session, account, ttl_seconds=None):
        self.tokens.append((account, ttl_seconds))
        return "tok.en.value"

    def get_account(self, session, account):
        return f"Name: {account}\nTokens:\nID  ISSUED-AT"

    def revoke_token(self, session, account, token_id):
        self.tokens.append(("revoked", account, token_id))


class FakeCredentials:
    def __init__(self):
        self.logins = 0

    def open_admin_session(self, context):
        self.logins += 1
        return Session(server="argocd.lab", username="admin"), "adminpw"

    def login(self, server, username, password):
        self.logins += 1
        return Session(server=server, username=username)


class FakeReadiness:
    def __init__(self):
        self.restarts = 0

    def restart_server(self, context):
        self.restarts += 1
        return True


@pytest.fixture(autouse=True)
def no_sleep(monkeypatch):
    monkeypatch.setattr(accounts_module.time, "sleep", lambda _seconds: None)


CONTEXT = DeploymentContext(name="hub")


def build(kubectl=None, argocd=None, **kwargs):
    return AccountService(
        kubectl=kubectl or FakeKubectl(),
        argocd=argocd or FakeArgoCD(),
        credentials=FakeCredentials(),
        readiness=FakeReadiness(),
        filesystem=FileSystemService(DummyLogger(), DummyConsole()),
        logger=DummyLogger(),
        console=DummyConsole(),
        **kwargs,
    )


def test_format_validity():
    assert format_validity(3600) == "1h 0m"
    assert format_validity(5400) == "1h 30m"
    assert format_validity(None) == "valid until revocation"
    assert format_validity(0) == "valid until revocation"


def test_create_account_patches_policy_and_registry_then_sets_password():
    kubectl = FakeKubectl()
    argocd = FakeArgoCD()
    service = build(kubectl, argocd)

    service.create_account(CONTEXT, "devuser", "Dev@2025")

    policy = kubectl.configmaps["argocd-rbac-cm"]["policy.csv"]
    assert policy.splitlines()[-1] == "g, devuser, role:developer"
    assert kubectl.configmaps["argocd-cm"] == {"accounts.devuser": "apiKey,login"}
    assert service.readiness.restarts == 1
    assert argocd.password_updates == [("devuser", "Dev@2025", "adminpw")]


def test_second_create_with_same_name_raises_without_patching_again():
    kubectl = FakeKubectl()
    service = build(kubectl)

    service.create_account(CONTEXT, "devuser", "Dev@2025")
    patches_after_first = len(kubectl.patches)

    with pytest.raises(AccountAlreadyExistsError, match="devuser"):
        service.create_account(CONTEXT, "devuser", "Other@2025")

    assert len(kubectl.patches) == patches_after_first


def test_indented_existing_binding_is_detected():
    kubectl = FakeKubectl(policy="p, role:developer, applications, get, */*, allow\n    g, devuser, role:developer")

    with pytest.raises(AccountAlreadyExistsError):
        build(kubectl).create_account(CONTEXT, "devuser", "pw")

    assert kubectl.patches == []


def test_prefix_of_existing_account_is_not_a_duplicate():
    kubectl = FakeKubectl(policy="g, devuser2, role:developer")

    build(kubectl).create_account(CONTEXT, "devuser", "pw")

    assert "g, devuser, role:developer" in kubectl.configmaps["argocd-rbac-cm"]["policy.csv"]


def test_registry_patch_failure_restores_policy():
    original = "p, role:developer, applications, get, */*, allow"
    kubectl = FakeKubectl(policy=original, fail_on="argocd-cm")
    argocd = FakeArgoCD()

    with pytest.raises(DeployerError, match="patch argocd-cm failed"):
        build(kubectl, argocd).create_account(CONTEXT, "devuser", "pw")

    assert kubectl.configmaps["argocd-rbac-cm"]["policy.csv"] == original
    assert [name for name, _ in kubectl.patches] == ["argocd-rbac-cm", "argocd-cm", "argocd-rbac-cm"]
    assert argocd.password_updates == []


def test_missing_rbac_configmap_is_an_error():
    with pytest.raises(DeployerError, match="argocd-rbac-cm"):
        build(FakeKubectl(policy=None)).create_account(CONTEXT, "devuser", "pw")


def test_rotate_password_requires_existing_account():
    argocd = FakeArgoCD(accounts=("admin", "devuser"))
    service = build(argocd=argocd)

    service.rotate_password(CONTEXT, "devuser", "New@2025")
    assert argocd.password_updates == [("devuser", "New@2025", "adminpw")]

    with pytest.raises(AccountNotFoundError):
        service.rotate_password(CONTEXT, "ghost", "x")


def test_issue_token_reports_validity_without_saving_by_default(tmp_path):
    argocd = FakeArgoCD(accounts=("admin", "devuser"))
    service = build(argocd=argocd, token_dir=str(tmp_path / "tokens"))

    timed = service.issue_token(CONTEXT, "devuser", 3600)
    permanent = service.issue_token(CONTEXT, "devuser")

    assert timed.validity == "1h 0m"
    assert permanent.validity == "valid until revocation"
    assert timed.token == "tok.en.value"
    assert timed.saved_to is None
    assert not (tmp_path / "tokens").exists()
    assert argocd.tokens == [("devuser", 3600), ("devuser", None)]


def test_issue_token_saves_private_file_when_enabled(tmp_path):
    service = build(
        argocd=FakeArgoCD(accounts=("devuser",)), save_tokens=True, token_dir=str(tmp_path / "tokens")
    )

    issued = service.issue_token(CONTEXT, "devuser")

    assert issued.saved_to == str(tmp_path / "tokens" / "devuser-token.txt")
    assert open(issued.saved_to, encoding="utf-8").read() == "tok.en.value\n"
    if sys.platform != "win32":
        assert stat.S_IMODE(os.stat(issued.saved_to).st_mode) == 0o600


def test_issue_token_for_unknown_account_fails():
    with pytest.raises(AccountNotFoundError):
        build().issue_token(CONTEXT, "ghost", 60)


def test_list_accounts_returns_role_bindings():
    kubectl = FakeKubectl(policy="p, role:developer, applications, get, */*, allow\ng, devuser, role:developer")
    accounts, bindings = build(kubectl, FakeArgoCD(accounts=("admin", "devuser"))).list_accounts(CONTEXT)

    assert accounts == ["admin", "devuser"]
    assert bindings == ["g, devuser, role:developer"]


def test_role_bindings_ignores_policy_rules():
    assert role_bindings("p, a, b\n  g, x, role:y\n") == ["g, x, role:y"]
