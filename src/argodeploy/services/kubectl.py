"""kubectl adapter for ArgoDeploy.

Every call carries an explicit ``--context`` so operations never depend on
the kubeconfig's current context. The only ambient mutation is
:meth:`KubectlService.switched_context`, which always restores the context it
was asked to restore.
"""

import base64
import json
import subprocess
from contextlib import contextmanager
from typing import Callable, Dict, Iterator, List, Optional

from argodeploy.constants import CLUSTER_SECRET_SELECTOR
from argodeploy.errors import DeployerError


class KubectlService:
    """Builds and runs kubectl command lines."""

    def __init__(self, run_cmd: Callable[..., subprocess.CompletedProcess], logger):
        self.run_cmd = run_cmd
        self.logger = logger

    @staticmethod
    def _cmd(context: str, *args: str) -> List[str]:
        return ["kubectl", "--context", context, *args]

    # Kubeconfig ---------------------------------------------------------
    def list_contexts(self) -> List[str]:
        result = self.run_cmd(
            ["kubectl", "config", "get-contexts", "-o", "name"],
            check=False,
            capture_output=True,
        )
        if result.returncode != 0:
            return []
        return [line.strip() for line in (result.stdout or "").splitlines() if line.strip()]

    def use_context(self, name: str):
        self.run_cmd(["kubectl", "config", "use-context", name], check=True, capture_output=True)
        self.logger.info("Active context: %s", name)

    @contextmanager
    def switched_context(self, target: str, restore_to: str) -> Iterator[None]:
        self.use_context(target)
        try:
            yield
        finally:
            self.use_context(restore_to)

    # Resource sets ------------------------------------------------------
    def apply(
        self, context: str, manifest_path: str, namespace: Optional[str] = None
    ) -> subprocess.CompletedProcess:
        args = ["apply"]
        if namespace:
            args += ["-n", namespace]
        args += ["-f", manifest_path]
        return self.run_cmd(self._cmd(context, *args), check=False, capture_output=True)

    def delete(
        self, context: str, manifest_path: str, namespace: Optional[str] = None
    ) -> subprocess.CompletedProcess:
        args = ["delete", "--ignore-not-found=true"]
        if namespace:
            args += ["-n", namespace]
        args += ["-f", manifest_path]
        return self.run_cmd(self._cmd(context, *args), check=False, capture_output=True)

    # Namespaces ---------------------------------------------------------
    def namespace_exists(self, context: str, namespace: str) -> bool:
        result = self.run_cmd(
            self._cmd(context, "get", "namespace", namespace),
            check=False,
            capture_output=True,
        )
        return result.returncode == 0

    def ensure_namespace(self, context: str, namespace: str) -> bool:
        """Create *namespace* when absent. Returns True when it was created."""
        if self.namespace_exists(context, namespace):
            return False
        self.run_cmd(
            self._cmd(context, "create", "namespace", namespace),
            check=True,
            capture_output=True,
        )
        return True

    def delete_namespace(self, context: str, namespace: str):
        self.run_cmd(
            self._cmd(context, "delete", "namespace", namespace, "--ignore-not-found=true"),
            check=False,
            capture_output=True,
        )

    # Reads --------------------------------------------------------------
    def get_jsonpath(
        self,
        context: str,
        kind: str,
        name: str,
        jsonpath: str,
        namespace: Optional[str] = None,
    ) -> Optional[str]:
        """Return the projected field, or None when the object cannot be read."""
        args = ["get", kind, name]
        if namespace:
            args += ["-n", namespace]
        args += ["-o", f"jsonpath={jsonpath}"]
        result = self.run_cmd(self._cmd(context, *args), check=False, capture_output=True)
        if result.returncode != 0:
            return None
        return (result.stdout or "").strip()

    def crd_established(self, context: str, crd_name: str) -> bool:
        status = self.get_jsonpath(
            context,
            "crd",
            crd_name,
            '{.status.conditions[?(@.type=="Established")].status}',
        )
        return status == "True"

    def pods_ready(self, context: str, selector: str, namespace: str) -> bool:
        result = self.run_cmd(
            self._cmd(context, "get", "pods", "-n", namespace, "-l", selector, "-o", "json"),
            check=False,
            capture_output=True,
        )
        if result.returncode != 0:
            return False
        try:
            items = json.loads(result.stdout or "{}").get("items", [])
        except ValueError:
            return False
        if not items:
            return False

        for pod in items:
            conditions = pod.get("status", {}).get("conditions", [])
            ready = any(
                condition.get("type") == "Ready" and condition.get("status") == "True"
                for condition in conditions
            )
            if not ready:
                return False
        return True

    def list_names(
        self,
        context: str,
        kind: str,
        namespace: Optional[str] = None,
        selector: Optional[str] = None,
    ) -> List[str]:
        args = ["get", kind]
        if namespace:
            args += ["-n", namespace]
        if selector:
            args += ["-l", selector]
        args += ["-o", "name"]
        result = self.run_cmd(self._cmd(context, *args), check=False, capture_output=True)
        if result.returncode != 0:
            return []
        return [
            line.strip().split("/", 1)[-1]
            for line in (result.stdout or "").splitlines()
            if line.strip()
        ]

    def get_table(self, context: str, kind: str, namespace: Optional[str] = None) -> str:
        args = ["get", kind]
        if namespace:
            args += ["-n", namespace]
        args += ["-o", "wide"]
        result = self.run_cmd(self._cmd(context, *args), check=False, capture_output=True)
        return (result.stdout or "").rstrip() if result.returncode == 0 else ""

    def cluster_secret_servers(self, context: str, namespace: str) -> Dict[str, str]:
        """Map registered cluster secret names to their decoded server URLs."""
        result = self.run_cmd(
            self._cmd(
                context,
                "get",
                "secrets",
                "-n",
                namespace,
                "-l",
                CLUSTER_SECRET_SELECTOR,
                "-o",
                "json",
            ),
            check=False,
            capture_output=True,
        )
        if result.returncode != 0:
            return {}
        try:
            items = json.loads(result.stdout or "{}").get("items", [])
        except ValueError:
            return {}

        servers: Dict[str, str] = {}
        for item in items:
            name = item.get("metadata", {}).get("name", "")
            encoded = item.get("data", {}).get("server", "")
            try:
                servers[name] = base64.b64decode(encoded).decode("utf-8") if encoded else "N/A"
            except (ValueError, UnicodeDecodeError):
                servers[name] = "N/A"
        return servers

    # ConfigMaps ---------------------------------------------------------
    def get_configmap_value(
        self, context: str, name: str, namespace: str, key: str
    ) -> Optional[str]:
        escaped_key = key.replace(".", "\\.")
        return self.get_jsonpath(
            context, "configmap", name, f"{{.data.{escaped_key}}}", namespace=namespace
        )

    def patch_configmap(self, context: str, name: str, namespace: str, data: Dict[str, str]):
        patch = json.dumps({"data": data})
        self.run_cmd(
            self._cmd(
                context, "patch", "configmap", name, "-n", namespace, "--type", "merge", "-p", patch
            ),
            check=True,
            capture_output=True,
        )

    # Rollouts -----------------------------------------------------------
    def rollout_restart(self, context: str, deployment: str, namespace: str):
        self.run_cmd(
            self._cmd(context, "rollout", "restart", f"deployment/{deployment}", "-n", namespace),
            check=True,
            capture_output=True,
        )

    def rollout_status(
        self, context: str, deployment: str, namespace: str, timeout_seconds: int
    ) -> bool:
        try:
            result = self.run_cmd(
                self._cmd(
                    context,
                    "rollout",
                    "status",
                    f"deployment/{deployment}",
                    "-n",
                    namespace,
                    f"--timeout={timeout_seconds}s",
                ),
                check=False,
                capture_output=True,
            )
        except DeployerError as exc:
            self.logger.debug("Rollout status for %s failed: %s", deployment, exc)
            return False
        return result.returncode == 0
