"""argocd CLI adapter for ArgoDeploy.

All interpretation of the argocd client's human-readable output lives here,
so callers only ever see structured values (``LoginResult``, lists of names)
or domain errors.
"""

import json
import subprocess
from typing import Callable, Dict, List, Optional

from argodeploy.errors import AmbiguousResponseError, DeployerError
from argodeploy.models import LoginResult, Session


class ArgoCDClient:
    """Builds and runs argocd command lines."""

    LOGIN_SUCCESS_MARKERS = ("logged in", "successful")
    LOG_LINE_PREFIXES = ("INFO", "WARNING", "WARN", "ERROR", "DEBUG", "FATA", "[")

    def __init__(
        self,
        run_cmd: Callable[..., subprocess.CompletedProcess],
        logger,
        grpc_web: bool = True,
        insecure: bool = True,
    ):
        self.run_cmd = run_cmd
        self.logger = logger
        self.grpc_web = grpc_web
        self.insecure = insecure

    def _cmd(self, *args: str, session: Optional[Session] = None) -> List[str]:
        cmd = ["argocd", *args]
        if session is not None:
            cmd += ["--server", session.server]
            if self.insecure:
                cmd.append("--insecure")
        if self.grpc_web:
            cmd.append("--grpc-web")
        return cmd

    @staticmethod
    def _output(result: subprocess.CompletedProcess) -> str:
        return "\n".join(part for part in (result.stdout, result.stderr) if part).strip()

    # Authentication -----------------------------------------------------
    @classmethod
    def classify_login(cls, returncode: int, output: str) -> LoginResult:
        text = (output or "").strip()
        if returncode != 0:
            return LoginResult(success=False, reason=text or f"exit code {returncode}")

        lowered = text.lower()
        if any(marker in lowered for marker in cls.LOGIN_SUCCESS_MARKERS):
            return LoginResult(success=True, reason=text)

        return LoginResult(success=False, reason=text, ambiguous=True)

    def login(self, server: str, username: str, password: str) -> LoginResult:
        cmd = ["argocd", "login", server, "--username", username, "--password", password]
        if self.insecure:
            cmd.append("--insecure")
        if self.grpc_web:
            cmd.append("--grpc-web")

        result = self.run_cmd(cmd, check=False, capture_output=True, redact=[password])
        return self.classify_login(result.returncode, self._output(result))

    # Accounts -----------------------------------------------------------
    def list_accounts(self, session: Session) -> List[str]:
        result = self.run_cmd(
            self._cmd("account", "list", "-o", "json", session=session),
            check=True,
            capture_output=True,
        )
        output = (result.stdout or "").strip()
        try:
            entries = json.loads(output or "[]")
            return [str(entry.get("name", "")) for entry in entries if entry.get("name")]
        except (ValueError, AttributeError):
            self.logger.debug("Account list is not JSON. Falling back to table parsing.")

        names: List[str] = []
        for line in output.splitlines():
            columns = line.split()
            if not columns or columns[0] == "NAME":
                continue
            names.append(columns[0])
        return names

    def get_account(self, session: Session, account: str) -> str:
        result = self.run_cmd(
            self._cmd("account", "get", "--account", account, session=session),
            check=True,
            capture_output=True,
        )
        return (result.stdout or "").rstrip()

    def update_password(
        self, session: Session, account: str, new_password: str, current_password: str
    ):
        self.run_cmd(
            self._cmd(
                "account",
                "update-password",
                "--account",
                account,
                "--new-password",
                new_password,
                "--current-password",
                current_password,
                session=session,
            ),
            check=True,
            capture_output=True,
            redact=[new_password, current_password],
        )

    # Tokens -------------------------------------------------------------
    @classmethod
    def extract_token(cls, output: str) -> str:
        candidates = [
            line.strip()
            for line in (output or "").splitlines()
            if line.strip() and not line.strip().startswith(cls.LOG_LINE_PREFIXES)
        ]
        if not candidates:
            raise AmbiguousResponseError("argocd did not return a token.")

        token = candidates[-1]
        if "error" in token.lower() or " " in token:
            raise AmbiguousResponseError(f"Unexpected token output: {token}")
        return token

    def generate_token(
        self, session: Session, account: str, ttl_seconds: Optional[int] = None
    ) -> str:
        args = ["account", "generate-token", "--account", account]
        if ttl_seconds and ttl_seconds > 0:
            args += ["--expiration", f"{ttl_seconds}s"]
        result = self.run_cmd(self._cmd(*args, session=session), check=True, capture_output=True)
        token = self.extract_token(result.stdout or "")
        return token

    def revoke_token(self, session: Session, account: str, token_id: str):
        self.run_cmd(
            self._cmd("account", "revoke-token", "--account", account, "--id", token_id, session=session),
            check=True,
            capture_output=True,
        )

    # Clusters -----------------------------------------------------------
    def list_clusters(self, session: Session) -> List[Dict[str, str]]:
        result = self.run_cmd(
            self._cmd("cluster", "list", "-o", "json", session=session),
            check=True,
            capture_output=True,
        )
        try:
            entries = json.loads((result.stdout or "").strip() or "[]")
        except ValueError as exc:
            raise AmbiguousResponseError(f"Could not parse cluster list: {exc}") from exc
        if not isinstance(entries, list):
            raise AmbiguousResponseError("Cluster list has an unexpected format.")

        return [
            {
                "name": str(entry.get("name", "")),
                "server": str(entry.get("server", "")),
            }
            for entry in entries
            if isinstance(entry, dict)
        ]

    def add_cluster(
        self, session: Session, kube_context: str, cluster_name: str
    ) -> subprocess.CompletedProcess:
        return self.run_cmd(
            self._cmd(
                "cluster", "add", kube_context, "--name", cluster_name, "--yes", session=session
            ),
            check=False,
            capture_output=True,
        )

    # Admin export/import ------------------------------------------------
    def export_state(self, kube_context: str, namespace: str) -> str:
        result = self.run_cmd(
            ["argocd", "admin", "export", "--namespace", namespace, "--context", kube_context],
            check=True,
            capture_output=True,
        )
        return result.stdout or ""

    def import_state(self, kube_context: str, namespace: str, source_path: str):
        self.run_cmd(
            [
                "argocd",
                "admin",
                "import",
                source_path,
                "--namespace",
                namespace,
                "--context",
                kube_context,
            ],
            check=True,
            capture_output=True,
        )

    def client_version(self) -> Optional[str]:
        try:
            result = self.run_cmd(
                ["argocd", "version", "--client", "--short"],
                check=False,
                capture_output=True,
            )
        except DeployerError:
            return None
        if result.returncode != 0:
            return None
        return (result.stdout or "").strip() or None
