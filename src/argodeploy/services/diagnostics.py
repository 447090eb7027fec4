"""Status, ingress and registered-cluster diagnostics."""

from typing import Dict, List, Optional

import requests
from rich.table import Table

from argodeploy.constants import ADMIN_USERNAME, INGRESS_NAME
from argodeploy.errors import DeployerError
from argodeploy.models import DeploymentContext

STATUS_KINDS = ("pods", "services", "deployments", "statefulsets")
SPOKE_ACCESS_KINDS = ("serviceaccounts", "clusterroles", "clusterrolebindings")


class DiagnosticsService:
    """Read-only reporting over the control plane and its registrations."""

    def __init__(
        self,
        kubectl,
        argocd,
        credentials,
        logger,
        console,
        requests_module=requests,
        verify_tls: bool = False,
        probe_timeout: float = 10.0,
    ):
        self.kubectl = kubectl
        self.argocd = argocd
        self.credentials = credentials
        self.logger = logger
        self.console = console
        self.requests = requests_module
        self.verify_tls = verify_tls
        self.probe_timeout = probe_timeout

    def check_status(self, context: DeploymentContext) -> Dict[str, int]:
        namespace = context.namespace
        self.console.print(f"[bold blue]ArgoCD status on {context.name}[/bold blue]")

        if not self.kubectl.namespace_exists(context.name, namespace):
            self.logger.warning("Namespace %s does not exist on %s", namespace, context.name)
            self.console.print(f"[yellow]Namespace '{namespace}' does not exist.[/yellow]")
            return {}

        counts: Dict[str, int] = {}
        table = Table(title=f"Namespace {namespace}")
        table.add_column("Kind")
        table.add_column("Count", justify="right")
        for kind in STATUS_KINDS:
            counts[kind] = len(self.kubectl.list_names(context.name, kind, namespace=namespace))
            table.add_row(kind, str(counts[kind]))
        ingresses = self.kubectl.list_names(context.name, "ingress", namespace=namespace)
        counts["ingress"] = 1 if INGRESS_NAME in ingresses else 0
        table.add_row("ingress", str(counts["ingress"]))
        self.console.print(table)

        if counts["pods"]:
            self.console.print(self.kubectl.get_table(context.name, "pods", namespace))
        else:
            self.console.print("[yellow]No pods found.[/yellow]")

        counts["clusters"] = len(self.report_clusters(context))
        for kind, count in counts.items():
            self.logger.info("%s: %s", kind, count)
        return counts

    def report_clusters(self, context: DeploymentContext) -> List[Dict[str, str]]:
        """List registrations via the API, or from cluster secrets when login fails."""
        try:
            session, _ = self.credentials.open_admin_session(context)
            clusters = self.argocd.list_clusters(session)
        except DeployerError as exc:
            self.logger.warning("Login unavailable (%s). Reading cluster secrets instead.", exc)
            servers = self.kubectl.cluster_secret_servers(context.name, context.namespace)
            clusters = [{"name": name, "server": server} for name, server in servers.items()]

        if not clusters:
            self.console.print("[yellow]No clusters registered.[/yellow]")
            return clusters

        table = Table(title="Registered clusters")
        table.add_column("Name")
        table.add_column("Server")
        for cluster in clusters:
            table.add_row(cluster["name"], cluster["server"])
        self.console.print(table)
        return clusters

    def check_clusters(self, context: DeploymentContext) -> List[Dict[str, str]]:
        session, _ = self.credentials.open_admin_session(context)
        clusters = self.argocd.list_clusters(session)
        table = Table(title="Registered clusters")
        table.add_column("Name")
        table.add_column("Server")
        for cluster in clusters:
            table.add_row(cluster["name"], cluster["server"])
        self.console.print(table)
        return clusters

    def probe_health(self, host: str) -> bool:
        url = f"https://{host}/healthz"
        try:
            response = self.requests.get(url, timeout=self.probe_timeout, verify=self.verify_tls)
            response.raise_for_status()
        except self.requests.RequestException as exc:
            self.logger.warning("Health probe %s failed: %s", url, exc)
            return False
        return True

    def check_ingress(self, context: DeploymentContext) -> Optional[str]:
        host = self.kubectl.get_jsonpath(
            context.name,
            "ingress",
            INGRESS_NAME,
            "{.spec.rules[0].host}",
            namespace=context.namespace,
        )
        if not host:
            self.logger.warning("Ingress %s not found in %s", INGRESS_NAME, context.namespace)
            self.console.print(
                f"[yellow]No ingress '{INGRESS_NAME}' found. It is defined by the on-premises manifest.[/yellow]"
            )
            return None

        self.console.print(f"[green]Ingress configured for https://{host}[/green]")
        tls_host = self.kubectl.get_jsonpath(
            context.name,
            "ingress",
            INGRESS_NAME,
            "{.spec.tls[0].hosts[0]}",
            namespace=context.namespace,
        )
        if tls_host:
            self.console.print(f"[green]TLS configured for {tls_host}[/green]")

        if self.probe_health(host):
            self.console.print(f"[green]https://{host}/healthz is reachable.[/green]")
        else:
            self.console.print(
                f"[yellow]https://{host}/healthz is not reachable yet (DNS or certificate may be pending).[/yellow]"
            )
        return host

    def show_credentials(self, context: DeploymentContext) -> Dict[str, str]:
        password = self.credentials.get_bootstrap_password(context)
        url = self.credentials.resolve_server_address(context)
        self.console.print(f"[blue]URL:[/blue] {url}")
        self.console.print(f"[blue]Username:[/blue] {ADMIN_USERNAME}")
        self.console.print(f"[yellow]Password:[/yellow] {password}")
        return {"url": url, "username": ADMIN_USERNAME, "password": password}

    def login(self, context: DeploymentContext) -> List[Dict[str, str]]:
        return self.check_clusters(context)

    def spoke_access_summary(self, context: DeploymentContext) -> Dict[str, List[str]]:
        summary: Dict[str, List[str]] = {}
        for kind in SPOKE_ACCESS_KINDS:
            namespace = context.namespace if kind == "serviceaccounts" else None
            names = [
                name
                for name in self.kubectl.list_names(context.name, kind, namespace=namespace)
                if "argocd" in name
            ]
            summary[kind] = names
            self.console.print(f"[blue]{kind}:[/blue] {', '.join(names) or '<none>'}")
        return summary
