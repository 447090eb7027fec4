"""Spoke cluster registration on the hub control plane."""

from argodeploy.constants import ADMIN_USERNAME
from argodeploy.errors import (
    DeployerError,
    HubAuthFailedError,
    RegistrationFailedError,
    UnknownContextError,
)
from argodeploy.errors_catalog import actionable_error
from argodeploy.models import DeploymentContext


class RegistrationCoordinator:
    """Cross-cluster handshake that registers a spoke as a managed target.

    The hub session is opened against the hub's external address, the
    kubeconfig is switched to the spoke only for the ``cluster add`` call and
    is always switched back to the hub afterwards, whether registration
    succeeded or not.
    """

    def __init__(self, kubectl, argocd, credentials, logger, console):
        self.kubectl = kubectl
        self.argocd = argocd
        self.credentials = credentials
        self.logger = logger
        self.console = console

    def validate_contexts(self, hub: DeploymentContext, spoke: DeploymentContext):
        available = self.kubectl.list_contexts()
        for role, context in (("hub", hub), ("spoke", spoke)):
            if context.name not in available:
                self.logger.error("The %s context '%s' was not found", role, context.name)
                raise UnknownContextError(actionable_error("unknown_context", context=context.name))

    def register_spoke(
        self, hub: DeploymentContext, spoke: DeploymentContext, cluster_name: str
    ) -> bool:
        self.validate_contexts(hub, spoke)

        server = self.credentials.resolve_server_address(hub)
        self.logger.info("ArgoCD server: %s", server)
        self.console.print(f"[blue]ArgoCD server: {server}[/blue]")

        try:
            password = self.credentials.get_bootstrap_password(hub)
            session = self.credentials.login(server, ADMIN_USERNAME, password)
        except DeployerError as exc:
            raise HubAuthFailedError(f"Could not authenticate on hub '{hub.name}': {exc}") from exc

        self.logger.info("Switching to spoke context: %s", spoke.name)
        with self.kubectl.switched_context(spoke.name, restore_to=hub.name):
            self.logger.info("Registering cluster '%s' from context %s", cluster_name, spoke.name)
            self.console.print(f"[blue]Registering cluster {cluster_name}...[/blue]")
            result = self.argocd.add_cluster(session, spoke.name, cluster_name)
            output = "\n".join(part for part in (result.stdout, result.stderr) if part).strip()
            if output:
                self.logger.info("argocd cluster add: %s", output)
            if result.returncode != 0:
                raise RegistrationFailedError(
                    f"Failed to register cluster '{cluster_name}' from context '{spoke.name}'. {output}".strip()
                )

        self.console.print(f"[green]Cluster '{cluster_name}' registered.[/green]")
        return self.verify_visibility(session, cluster_name)

    def verify_visibility(self, session, cluster_name: str) -> bool:
        try:
            clusters = self.argocd.list_clusters(session)
        except DeployerError as exc:
            self.logger.warning("Could not list registered clusters: %s", exc)
            self.console.print("[yellow]Could not verify cluster visibility.[/yellow]")
            return False

        for cluster in clusters:
            self.logger.info("Registered cluster: %s -> %s", cluster["name"], cluster["server"])

        if any(cluster["name"] == cluster_name for cluster in clusters):
            self.console.print(f"[green]Cluster '{cluster_name}' is visible on the hub.[/green]")
            return True

        self.logger.warning(
            "Cluster '%s' is not listed yet. Registration may still be propagating.", cluster_name
        )
        self.console.print(
            f"[yellow]Cluster '{cluster_name}' is not listed yet (may still be propagating).[/yellow]"
        )
        return False
