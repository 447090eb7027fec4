"""Bootstrap credential retrieval and control-plane login."""

import base64
import binascii
import time
from typing import Optional, Tuple
from urllib.parse import urlparse

from argodeploy.constants import (
    ADMIN_USERNAME,
    BOOTSTRAP_SECRET_ATTEMPTS,
    BOOTSTRAP_SECRET_BACKOFF_SECONDS,
    BOOTSTRAP_SECRET_KEY,
    BOOTSTRAP_SECRET_NAME,
    FALLBACK_SERVER_ADDRESS,
    INGRESS_NAME,
)
from argodeploy.errors import (
    AmbiguousResponseError,
    AuthenticationFailedError,
    CredentialUnavailableError,
)
from argodeploy.errors_catalog import actionable_error
from argodeploy.models import DeploymentContext, Session


class CredentialResolver:
    """Reads the generated admin secret and opens argocd sessions.

    Sessions are never persisted between invocations: every operation that
    needs authentication logs in on its own.
    """

    def __init__(
        self,
        kubectl,
        argocd,
        logger,
        console,
        server_override: Optional[str] = None,
        attempts: int = BOOTSTRAP_SECRET_ATTEMPTS,
        backoff_seconds: float = BOOTSTRAP_SECRET_BACKOFF_SECONDS,
    ):
        self.kubectl = kubectl
        self.argocd = argocd
        self.logger = logger
        self.console = console
        self.server_override = server_override
        self.attempts = attempts
        self.backoff_seconds = backoff_seconds

    @staticmethod
    def decode_secret(encoded: Optional[str]) -> Optional[str]:
        if not encoded:
            return None
        try:
            decoded = base64.b64decode(encoded.strip(), validate=True).decode("utf-8")
        except (binascii.Error, ValueError, UnicodeDecodeError):
            return None
        return decoded.strip() or None

    def get_bootstrap_password(self, context: DeploymentContext) -> str:
        self.logger.info("Reading admin password from secret %s", BOOTSTRAP_SECRET_NAME)

        for attempt in range(1, self.attempts + 1):
            encoded = self.kubectl.get_jsonpath(
                context.name,
                "secret",
                BOOTSTRAP_SECRET_NAME,
                f"{{.data.{BOOTSTRAP_SECRET_KEY}}}",
                namespace=context.namespace,
            )
            password = self.decode_secret(encoded)
            if password:
                self.logger.info("Admin password retrieved (%s characters)", len(password))
                return password

            if attempt < self.attempts:
                self.logger.warning(
                    "Attempt %s/%s: secret not available yet. Retrying in %.1fs",
                    attempt,
                    self.attempts,
                    self.backoff_seconds,
                )
                time.sleep(self.backoff_seconds)

        raise CredentialUnavailableError(
            actionable_error(
                "credential_unavailable",
                secret=BOOTSTRAP_SECRET_NAME,
                namespace=context.namespace,
                attempts=str(self.attempts),
            )
        )

    def resolve_server_address(self, context: DeploymentContext) -> str:
        if self.server_override:
            return self.server_override

        host = self.kubectl.get_jsonpath(
            context.name,
            "ingress",
            INGRESS_NAME,
            "{.spec.rules[0].host}",
            namespace=context.namespace,
        )
        if host:
            return f"https://{host}"

        self.logger.warning("No ingress host found. Falling back to %s", FALLBACK_SERVER_ADDRESS)
        return FALLBACK_SERVER_ADDRESS

    @staticmethod
    def server_host(address: str) -> str:
        """Strip scheme and path: argocd login expects ``host[:port]``."""
        if "://" not in address:
            address = f"https://{address}"
        return urlparse(address).netloc

    def login(self, server: str, username: str, password: str) -> Session:
        host = self.server_host(server)
        self.logger.info("Logging in to %s as %s", host, username)

        result = self.argocd.login(host, username, password)
        if result.success:
            self.console.print(f"[green]Logged in to {host} as {username}.[/green]")
            return Session(server=host, username=username)

        self.logger.debug("Login response: %s", result.reason)
        if result.ambiguous:
            raise AmbiguousResponseError(actionable_error("login_ambiguous", server=host))
        raise AuthenticationFailedError(
            f"{actionable_error('login_failed', server=host, username=username)} {result.reason}".strip()
        )

    def open_admin_session(self, context: DeploymentContext) -> Tuple[Session, str]:
        password = self.get_bootstrap_password(context)
        server = self.resolve_server_address(context)
        session = self.login(server, ADMIN_USERNAME, password)
        return session, password
