"""Filesystem helpers for ArgoDeploy."""

import logging
import os
import sys

from rich.console import Console

from argodeploy.errors import DeployerError


class FileSystemService:
    """Encapsulates directory and permission side effects."""

    def __init__(self, logger: logging.Logger, console: Console):
        self.logger = logger
        self.console = console

    def set_permissions(self, path: str, mode: int):
        if sys.platform == "win32":
            return

        try:
            os.chmod(path, mode)
        except OSError as exc:
            self.logger.warning("Could not set permissions on %s: %s", path, exc)

    def ensure_dir(self, path: str, mode: int):
        try:
            os.makedirs(path, exist_ok=True)
        except OSError as exc:
            raise DeployerError(f"Could not create directory {path}: {exc}") from exc
        self.set_permissions(path, mode)

    def write_private_file(self, path: str, content: str, mode: int, dir_mode: int):
        """Write *content* to *path*, creating it with *mode* from the start."""
        self.ensure_dir(os.path.dirname(path) or ".", dir_mode)

        try:
            fd = os.open(path, os.O_WRONLY | os.O_CREAT | os.O_TRUNC, mode)
            with os.fdopen(fd, "w", encoding="utf-8") as file_obj:
                file_obj.write(content)
                if not content.endswith("\n"):
                    file_obj.write("\n")
        except OSError as exc:
            raise DeployerError(f"Could not write {path}: {exc}") from exc

        # os.open honours the umask and leaves existing files' modes untouched.
        self.set_permissions(path, mode)
        self.logger.debug("Wrote %s with mode %o", path, mode)
