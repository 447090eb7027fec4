"""Required binary and client version checks."""

import re
import shutil
from typing import Optional

from packaging import version

from argodeploy.constants import ARGOCD_VERSION
from argodeploy.errors import DeployerError
from argodeploy.errors_catalog import actionable_error

REQUIRED_BINARIES = ("kubectl", "argocd")
_VERSION_PATTERN = re.compile(r"v?(\d+\.\d+(?:\.\d+)?)")


class ToolchainService:
    def __init__(self, argocd, logger, console, which=shutil.which):
        self.argocd = argocd
        self.logger = logger
        self.console = console
        self.which = which

    def ensure_binaries(self, binaries=REQUIRED_BINARIES):
        for binary in binaries:
            if self.which(binary) is None:
                raise DeployerError(actionable_error("missing_binary", binary=binary))
            self.logger.debug("Found %s", binary)

    @staticmethod
    def parse_version(output: str) -> Optional[version.Version]:
        match = _VERSION_PATTERN.search(output or "")
        if not match:
            return None
        try:
            return version.parse(match.group(1))
        except version.InvalidVersion:
            return None

    def check_argocd_version(self) -> bool:
        """Warn when the argocd client's major.minor differs from the supported one."""
        output = self.argocd.client_version()
        found = self.parse_version(output or "")
        if found is None:
            self.logger.warning("Could not determine argocd client version.")
            return False

        supported = version.parse(ARGOCD_VERSION)
        if (found.major, found.minor) != (supported.major, supported.minor):
            self.logger.warning(
                "argocd client %s differs from supported %s. Commands may behave differently.",
                found,
                supported,
            )
            self.console.print(
                f"[yellow]argocd client {found} differs from supported {supported}.[/yellow]"
            )
            return False

        self.logger.debug("argocd client version %s", found)
        return True
