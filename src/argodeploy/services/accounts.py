"""Local account and API token lifecycle on the control plane."""

import os
import time
from typing import List, Optional, Tuple

from argodeploy.constants import (
    ACCOUNT_CAPABILITIES,
    ACCOUNTS_CONFIGMAP,
    DEFAULT_ROLE,
    DEFAULT_TOKEN_DIR,
    RBAC_CONFIGMAP,
    RBAC_POLICY_KEY,
    TOKEN_DIR_MODE,
    TOKEN_FILE_MODE,
)
from argodeploy.errors import (
    AccountAlreadyExistsError,
    AccountNotFoundError,
    DeployerError,
)
from argodeploy.errors_catalog import actionable_error
from argodeploy.models import DeploymentContext, IssuedToken


def format_validity(ttl_seconds: Optional[int]) -> str:
    if not ttl_seconds or ttl_seconds <= 0:
        return "valid until revocation"
    hours, remainder = divmod(int(ttl_seconds), 3600)
    return f"{hours}h {remainder // 60}m"


def role_bindings(policy: str) -> List[str]:
    return [line.strip() for line in policy.splitlines() if line.strip().startswith("g,")]


def binding_subject(line: str) -> str:
    parts = [part.strip() for part in line.split(",")]
    return parts[1] if len(parts) > 1 else ""


class AccountService:
    """Creates accounts, rotates passwords and manages API tokens.

    Account creation patches two configmaps: the RBAC policy and the account
    registry. They are treated as one update, so a failure on the second patch
    puts the first one back.
    """

    def __init__(
        self,
        kubectl,
        argocd,
        credentials,
        readiness,
        filesystem,
        logger,
        console,
        settle_seconds: float = 5.0,
        save_tokens: bool = False,
        token_dir: str = DEFAULT_TOKEN_DIR,
    ):
        self.kubectl = kubectl
        self.argocd = argocd
        self.credentials = credentials
        self.readiness = readiness
        self.filesystem = filesystem
        self.logger = logger
        self.console = console
        self.settle_seconds = settle_seconds
        self.save_tokens = save_tokens
        self.token_dir = token_dir

    def _read_policy(self, context: DeploymentContext) -> str:
        policy = self.kubectl.get_configmap_value(
            context.name, RBAC_CONFIGMAP, context.namespace, RBAC_POLICY_KEY
        )
        if policy is None:
            raise DeployerError(
                actionable_error(
                    "rbac_configmap_missing",
                    configmap=RBAC_CONFIGMAP,
                    namespace=context.namespace,
                )
            )
        return policy

    def _require_account(self, session, name: str):
        accounts = self.argocd.list_accounts(session)
        if name not in accounts:
            raise AccountNotFoundError(f"Account '{name}' was not found.")

    def create_account(self, context: DeploymentContext, name: str, password: str):
        session, admin_password = self.credentials.open_admin_session(context)

        policy = self._read_policy(context)
        if any(binding_subject(line) == name for line in role_bindings(policy)):
            raise AccountAlreadyExistsError(f"Account '{name}' already exists in the RBAC policy.")

        binding = f"g, {name}, {DEFAULT_ROLE}"
        new_policy = f"{policy.rstrip()}\n{binding}" if policy.strip() else binding
        self.logger.info("Adding '%s' to %s with %s", name, RBAC_CONFIGMAP, DEFAULT_ROLE)
        self.kubectl.patch_configmap(
            context.name, RBAC_CONFIGMAP, context.namespace, {RBAC_POLICY_KEY: new_policy}
        )

        try:
            self.kubectl.patch_configmap(
                context.name,
                ACCOUNTS_CONFIGMAP,
                context.namespace,
                {f"accounts.{name}": ACCOUNT_CAPABILITIES},
            )
        except DeployerError:
            self.logger.error("Registering account '%s' failed. Reverting RBAC policy.", name)
            self.kubectl.patch_configmap(
                context.name, RBAC_CONFIGMAP, context.namespace, {RBAC_POLICY_KEY: policy}
            )
            raise
        self.console.print(f"[green]Account '{name}' registered.[/green]")

        self.readiness.restart_server(context)
        if self.settle_seconds > 0:
            time.sleep(self.settle_seconds)

        session = self.credentials.login(session.server, session.username, admin_password)
        self.argocd.update_password(session, name, password, admin_password)
        self.logger.info("Account '%s' created with role %s", name, DEFAULT_ROLE)
        self.console.print(f"[green]Password set for '{name}'.[/green]")

    def rotate_password(self, context: DeploymentContext, name: str, new_password: str):
        session, admin_password = self.credentials.open_admin_session(context)
        self._require_account(session, name)
        self.argocd.update_password(session, name, new_password, admin_password)
        self.logger.info("Password changed for '%s'", name)
        self.console.print(f"[green]Password changed for '{name}'.[/green]")

    def _token_path(self, name: str) -> str:
        return os.path.join(os.path.expanduser(self.token_dir), f"{name}-token.txt")

    def issue_token(
        self, context: DeploymentContext, name: str, ttl_seconds: Optional[int] = None
    ) -> IssuedToken:
        session, _ = self.credentials.open_admin_session(context)
        self._require_account(session, name)

        self.logger.info("Generating token for '%s'", name)
        token = self.argocd.generate_token(session, name, ttl_seconds)
        validity = format_validity(ttl_seconds)

        saved_to = None
        if self.save_tokens:
            saved_to = self._token_path(name)
            self.filesystem.write_private_file(saved_to, token, TOKEN_FILE_MODE, TOKEN_DIR_MODE)
            self.logger.info("Token saved to %s", saved_to)

        self.logger.info("Token issued for '%s' (%s)", name, validity)
        return IssuedToken(account=name, token=token, validity=validity, saved_to=saved_to)

    def list_tokens(self, context: DeploymentContext, name: str) -> str:
        session, _ = self.credentials.open_admin_session(context)
        return self.argocd.get_account(session, name)

    def revoke_token(self, context: DeploymentContext, name: str, token_id: str):
        session, _ = self.credentials.open_admin_session(context)
        self.argocd.revoke_token(session, name, token_id)
        self.logger.info("Token '%s' revoked for '%s'", token_id, name)
        self.console.print(f"[green]Token '{token_id}' revoked.[/green]")

    def list_accounts(self, context: DeploymentContext) -> Tuple[List[str], List[str]]:
        session, _ = self.credentials.open_admin_session(context)
        accounts = self.argocd.list_accounts(session)
        policy = self.kubectl.get_configmap_value(
            context.name, RBAC_CONFIGMAP, context.namespace, RBAC_POLICY_KEY
        )
        return accounts, role_bindings(policy or "")
