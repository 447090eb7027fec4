import logging
from typing import Callable, Optional

import requests
from rich.console import Console

from . import plans
from .constants import (
    DEFAULT_BACKUP_DIR,
    DEFAULT_HUB_CONTEXT,
    DEFAULT_HUB_MANIFESTS_DIR,
    DEFAULT_NAMESPACE,
    DEFAULT_SPOKE_MANIFESTS_DIR,
    DEFAULT_TOKEN_DIR,
    READINESS_BEST_EFFORT,
)
from .errors import DeployerError
from .models import DeploymentContext
from .services.accounts import AccountService
from .services.argocd_client import ArgoCDClient
from .services.backup import BackupService
from .services.command_runner import CommandRunner
from .services.credentials import CredentialResolver
from .services.diagnostics import DiagnosticsService
from .services.filesystem import FileSystemService
from .services.kubectl import KubectlService
from .services.readiness import ReadinessService
from .services.registration import RegistrationCoordinator
from .services.step_executor import StepExecutor
from .services.toolchain import ToolchainService

console = Console()
logger = logging.getLogger("argodeploy")


class ArgoDeployer:
    """Operator-facing operations over a hub and its spoke clusters.

    Every public operation returns a process exit code: 0 on success and 1 on
    any fatal error. Warnings never change the exit code.
    """

    def __init__(
        self,
        hub_context: str = DEFAULT_HUB_CONTEXT,
        namespace: str = DEFAULT_NAMESPACE,
        server: Optional[str] = None,
        hub_manifests_dir: str = DEFAULT_HUB_MANIFESTS_DIR,
        spoke_manifests_dir: str = DEFAULT_SPOKE_MANIFESTS_DIR,
        backup_dir: str = DEFAULT_BACKUP_DIR,
        readiness_policy: str = READINESS_BEST_EFFORT,
        settle_seconds: float = 2.0,
        save_tokens: bool = False,
        token_dir: str = DEFAULT_TOKEN_DIR,
        insecure: bool = True,
        command_timeout: Optional[float] = None,
        assume_yes: bool = False,
        confirm: Optional[Callable[[str], bool]] = None,
    ):
        self.hub_context = hub_context
        self.namespace = namespace
        self.hub_manifests_dir = hub_manifests_dir
        self.spoke_manifests_dir = spoke_manifests_dir
        self.assume_yes = assume_yes
        self.confirm = confirm

        self.command_runner = CommandRunner(logger=logger, default_timeout=command_timeout)
        self.filesystem_service = FileSystemService(logger=logger, console=console)
        self.kubectl = KubectlService(run_cmd=self._run_cmd, logger=logger)
        self.argocd = ArgoCDClient(run_cmd=self._run_cmd, logger=logger, insecure=insecure)
        self.toolchain_service = ToolchainService(argocd=self.argocd, logger=logger, console=console)
        self.readiness_service = ReadinessService(
            kubectl=self.kubectl,
            logger=logger,
            console=console,
            policy=readiness_policy,
        )
        self.step_executor = StepExecutor(
            kubectl=self.kubectl,
            readiness=self.readiness_service,
            logger=logger,
            console=console,
            settle_seconds=settle_seconds,
        )
        self.credentials = CredentialResolver(
            kubectl=self.kubectl,
            argocd=self.argocd,
            logger=logger,
            console=console,
            server_override=server,
        )
        self.registration = RegistrationCoordinator(
            kubectl=self.kubectl,
            argocd=self.argocd,
            credentials=self.credentials,
            logger=logger,
            console=console,
        )
        self.backup_service = BackupService(
            argocd=self.argocd,
            kubectl=self.kubectl,
            readiness=self.readiness_service,
            filesystem=self.filesystem_service,
            logger=logger,
            console=console,
            backup_dir=backup_dir,
        )
        self.account_service = AccountService(
            kubectl=self.kubectl,
            argocd=self.argocd,
            credentials=self.credentials,
            readiness=self.readiness_service,
            filesystem=self.filesystem_service,
            logger=logger,
            console=console,
            save_tokens=save_tokens,
            token_dir=token_dir,
        )
        self.diagnostics = DiagnosticsService(
            kubectl=self.kubectl,
            argocd=self.argocd,
            credentials=self.credentials,
            logger=logger,
            console=console,
            requests_module=requests,
            verify_tls=not insecure,
        )

    def _run_cmd(self, cmd, **kwargs):
        return self.command_runner.run(cmd, **kwargs)

    def _context(self, name: Optional[str] = None) -> DeploymentContext:
        return DeploymentContext(name=name or self.hub_context, namespace=self.namespace)

    def _require_tools(self, argocd: bool = False):
        if argocd:
            self.toolchain_service.ensure_binaries(("kubectl", "argocd"))
            self.toolchain_service.check_argocd_version()
        else:
            self.toolchain_service.ensure_binaries(("kubectl",))

    def _confirmed(self, prompt: str) -> bool:
        if self.assume_yes:
            return True
        if self.confirm is None:
            raise DeployerError("Confirmation required. Re-run with --yes to proceed.")
        return bool(self.confirm(prompt))

    @staticmethod
    def _cancelled():
        console.print("[yellow]Operation cancelled. Nothing was changed.[/yellow]")
        logger.info("Operation declined by operator")

    def _execute(self, title: str, callback, *args) -> int:
        try:
            logger.info("Starting %s", title)
            callback(*args)
            logger.info("Finished %s", title)
            return 0
        except KeyboardInterrupt:
            console.print("[bold red]Operation cancelled by user.[/bold red]")
            logger.info("Operation cancelled by user")
            return 1
        except DeployerError as exc:
            console.print(f"[bold red]Error:[/bold red] {exc}")
            logger.error(str(exc))
            return 1
        except Exception as exc:
            console.print(f"[bold red]Unexpected error:[/bold red] {exc}")
            logger.exception("Unexpected error")
            return 1

    # Install / uninstall ------------------------------------------------
    def _install_hub(self, context: DeploymentContext):
        self._require_tools()
        steps = plans.hub_install_steps(self.hub_manifests_dir, context.namespace)
        report = self.step_executor.run_steps(context, steps, StepExecutor.APPLY)
        if not report.ok:
            raise DeployerError(
                f"Hub install failed at {', '.join(report.failed)}. "
                f"Skipped: {', '.join(report.skipped) or '<none>'}."
            )
        console.print("[green]Hub installed.[/green]")
        self.diagnostics.check_ingress(context)
        console.print("[blue]Run `argodeploy show-credentials` to get the admin login.[/blue]")

    def install_hub(self, context: Optional[str] = None) -> int:
        return self._execute("hub install", self._install_hub, self._context(context))

    def _install_spoke(self, context: DeploymentContext):
        self._require_tools()
        steps = plans.spoke_install_steps(self.spoke_manifests_dir, context.namespace)
        self.step_executor.preflight(context, steps)
        if self.kubectl.ensure_namespace(context.name, context.namespace):
            console.print(f"[green]Namespace '{context.namespace}' created.[/green]")
        report = self.step_executor.run_steps(context, steps, StepExecutor.APPLY)
        if not report.ok:
            raise DeployerError(f"Spoke install failed at {', '.join(report.failed)}.")
        self.diagnostics.spoke_access_summary(context)
        console.print(
            f"[green]Spoke ready. Register it with `argodeploy register-cluster {context.name}`.[/green]"
        )

    def install_spoke(self, spoke_context: str) -> int:
        return self._execute("spoke install", self._install_spoke, self._context(spoke_context))

    def _remove(self, context: DeploymentContext, steps, role: str):
        report = self.step_executor.run_steps(
            context, plans.uninstall_steps(steps), StepExecutor.DELETE
        )
        if not report.ok:
            raise DeployerError(f"{role} uninstall could not remove: {', '.join(report.failed)}.")

    def _uninstall_hub(self, context: DeploymentContext):
        self._require_tools()
        steps = plans.hub_install_steps(self.hub_manifests_dir, context.namespace)
        self.step_executor.preflight(context, plans.uninstall_steps(steps))
        if not self._confirmed(f"Remove ArgoCD from '{context.name}'?"):
            self._cancelled()
            return

        try:
            self.backup_service.snapshot(context, BackupService.UNINSTALL_REASON)
        except DeployerError as exc:
            logger.warning("Backup before uninstall failed: %s", exc)
            console.print("[yellow]Backup failed. Continuing with the confirmed uninstall.[/yellow]")

        self._remove(context, steps, "Hub")
        console.print("[green]Hub uninstalled.[/green]")

    def uninstall_hub(self, context: Optional[str] = None) -> int:
        return self._execute("hub uninstall", self._uninstall_hub, self._context(context))

    def _uninstall_spoke(self, context: DeploymentContext):
        self._require_tools()
        steps = plans.spoke_install_steps(self.spoke_manifests_dir, context.namespace)
        self.step_executor.preflight(context, plans.uninstall_steps(steps))
        if not self._confirmed(f"Remove ArgoCD access resources from '{context.name}'?"):
            self._cancelled()
            return

        self._remove(context, steps, "Spoke")
        self.kubectl.delete_namespace(context.name, context.namespace)
        console.print("[green]Spoke uninstalled.[/green]")

    def uninstall_spoke(self, spoke_context: str) -> int:
        return self._execute("spoke uninstall", self._uninstall_spoke, self._context(spoke_context))

    # Registration -------------------------------------------------------
    def _register_cluster(self, spoke: DeploymentContext, cluster_name: str):
        self._require_tools(argocd=True)
        self.registration.register_spoke(self._context(), spoke, cluster_name)

    def register_cluster(self, spoke_context: str, cluster_name: Optional[str] = None) -> int:
        return self._execute(
            "cluster registration",
            self._register_cluster,
            self._context(spoke_context),
            cluster_name or spoke_context,
        )

    # Diagnostics --------------------------------------------------------
    def _with_tools(self, callback, argocd: bool = False):
        def run(*args):
            self._require_tools(argocd=argocd)
            callback(*args)

        return run

    def check_status(self, context: Optional[str] = None) -> int:
        return self._execute(
            "status check",
            self._with_tools(self.diagnostics.check_status),
            self._context(context),
        )

    def check_ingress(self, context: Optional[str] = None) -> int:
        return self._execute(
            "ingress check",
            self._with_tools(self.diagnostics.check_ingress),
            self._context(context),
        )

    def check_clusters(self, context: Optional[str] = None) -> int:
        return self._execute(
            "cluster check",
            self._with_tools(self.diagnostics.check_clusters, argocd=True),
            self._context(context),
        )

    def _print_admin_password(self, context: DeploymentContext):
        console.print(self.credentials.get_bootstrap_password(context), markup=False)

    def get_admin_password(self, context: Optional[str] = None) -> int:
        return self._execute(
            "admin password lookup",
            self._with_tools(self._print_admin_password),
            self._context(context),
        )

    def show_credentials(self, context: Optional[str] = None) -> int:
        return self._execute(
            "credential display",
            self._with_tools(self.diagnostics.show_credentials),
            self._context(context),
        )

    def login(self, context: Optional[str] = None) -> int:
        return self._execute(
            "login",
            self._with_tools(self.diagnostics.login, argocd=True),
            self._context(context),
        )

    # Accounts and tokens ------------------------------------------------
    def create_user(self, name: str, password: str) -> int:
        return self._execute(
            "account creation",
            self._with_tools(self.account_service.create_account, argocd=True),
            self._context(),
            name,
            password,
        )

    def change_password(self, name: str, new_password: str) -> int:
        return self._execute(
            "password change",
            self._with_tools(self.account_service.rotate_password, argocd=True),
            self._context(),
            name,
            new_password,
        )

    def _list_users(self, context: DeploymentContext):
        accounts, bindings = self.account_service.list_accounts(context)
        console.print(f"[blue]Accounts:[/blue] {', '.join(accounts) or '<none>'}")
        for binding in bindings:
            console.print(f"  {binding}", markup=False)

    def list_users(self) -> int:
        return self._execute(
            "account listing", self._with_tools(self._list_users, argocd=True), self._context()
        )

    def _generate_token(self, context: DeploymentContext, name: str, ttl_seconds: Optional[int]):
        issued = self.account_service.issue_token(context, name, ttl_seconds)
        console.print(f"[green]Token generated for '{issued.account}' ({issued.validity}).[/green]")
        console.print(issued.token, markup=False, soft_wrap=True)
        console.print("[yellow]Store this token in your CI/CD secrets. Never commit it.[/yellow]")
        if issued.saved_to:
            console.print(f"[green]Token saved to {issued.saved_to}[/green]")

    def generate_token(self, name: str, ttl_seconds: Optional[int] = None) -> int:
        return self._execute(
            "token generation",
            self._with_tools(self._generate_token, argocd=True),
            self._context(),
            name,
            ttl_seconds,
        )

    def _list_tokens(self, context: DeploymentContext, name: str):
        console.print(self.account_service.list_tokens(context, name), markup=False)

    def list_tokens(self, name: str) -> int:
        return self._execute(
            "token listing", self._with_tools(self._list_tokens, argocd=True), self._context(), name
        )

    def revoke_token(self, name: str, token_id: str) -> int:
        return self._execute(
            "token revocation",
            self._with_tools(self.account_service.revoke_token, argocd=True),
            self._context(),
            name,
            token_id,
        )

    # Backups ------------------------------------------------------------
    def backup(self, reason: str = BackupService.MANUAL_REASON) -> int:
        return self._execute(
            "backup",
            self._with_tools(self.backup_service.snapshot, argocd=True),
            self._context(),
            reason,
        )

    def _list_backups(self):
        artifacts = self.backup_service.list_backups()
        if not artifacts:
            console.print("[yellow]No backups found.[/yellow]")
            return
        for artifact in artifacts:
            console.print(
                f"{artifact.path}  {artifact.size_bytes} bytes  {artifact.created_at}", markup=False
            )

    def list_backups(self) -> int:
        return self._execute("backup listing", self._list_backups)

    def _restore(self, context: DeploymentContext, artifact_path: str):
        self._require_tools(argocd=True)
        self.step_executor.validate_context(context)
        if not self._confirmed(f"Restore '{artifact_path}' into '{context.name}'?"):
            self._cancelled()
            return
        safety = self.backup_service.restore(artifact_path, context)
        console.print(f"[blue]Safety backup: {safety.path}[/blue]")

    def restore(self, artifact_path: str) -> int:
        return self._execute("restore", self._restore, self._context(), artifact_path)

    def prune_backups(self, max_age_days: int = 7) -> int:
        return self._execute("backup pruning", self.backup_service.prune, max_age_days)
