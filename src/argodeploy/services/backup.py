"""Snapshot, restore and retention of ArgoCD configuration exports."""

import os
import re
import time
from datetime import datetime, timezone
from typing import List, Optional, Set

from argodeploy.constants import (
    BACKUP_PREFIX,
    BACKUP_SUFFIX,
    BACKUP_TIMESTAMP_FORMAT,
    DIR_MODE,
)
from argodeploy.errors import BackupFailedError, DeployerError, RestoreFailedError
from argodeploy.errors_catalog import actionable_error
from argodeploy.models import BackupArtifact, DeploymentContext

SECONDS_PER_DAY = 86400


class BackupService:
    """Exports control-plane state to timestamped artifacts and restores them.

    Artifacts are named ``argocd-backup-<reason>-<YYYYmmdd-HHMMSS>.yaml``.
    Two snapshots with the same reason in the same second get a numeric
    suffix (``-2``, ``-3``...) instead of overwriting each other.
    """

    SAFETY_REASON = "before-restore"
    UNINSTALL_REASON = "before-uninstall"
    MANUAL_REASON = "manual"

    def __init__(self, argocd, kubectl, readiness, filesystem, logger, console, backup_dir: str):
        self.argocd = argocd
        self.kubectl = kubectl
        self.readiness = readiness
        self.filesystem = filesystem
        self.logger = logger
        self.console = console
        self.backup_dir = backup_dir
        self._created: Set[str] = set()

    @staticmethod
    def _slug(reason: str) -> str:
        slug = re.sub(r"[^a-z0-9]+", "-", reason.strip().lower()).strip("-")
        return slug or "manual"

    def _artifact_path(self, reason: str, now: datetime) -> str:
        stem = f"{BACKUP_PREFIX}-{self._slug(reason)}-{now.strftime(BACKUP_TIMESTAMP_FORMAT)}"
        candidate = os.path.join(self.backup_dir, f"{stem}{BACKUP_SUFFIX}")
        counter = 2
        while os.path.exists(candidate):
            candidate = os.path.join(self.backup_dir, f"{stem}-{counter}{BACKUP_SUFFIX}")
            counter += 1
        return candidate

    def snapshot(self, context: DeploymentContext, reason: str = MANUAL_REASON) -> BackupArtifact:
        self.filesystem.ensure_dir(self.backup_dir, DIR_MODE)
        now = datetime.now(timezone.utc)
        path = self._artifact_path(reason, now)

        self.logger.info("Exporting ArgoCD configuration from %s to %s", context.name, path)
        self.console.print(f"[blue]Exporting ArgoCD configuration to {path}...[/blue]")

        try:
            exported = self.argocd.export_state(context.name, context.namespace)
        except DeployerError as exc:
            raise BackupFailedError(f"Export failed for context '{context.name}': {exc}") from exc

        if not exported.strip():
            raise BackupFailedError(f"Export for context '{context.name}' returned no data.")

        try:
            with open(path, "w", encoding="utf-8", newline="\n") as file_obj:
                file_obj.write(exported)
        except OSError as exc:
            if os.path.exists(path):
                os.remove(path)
            raise BackupFailedError(f"Could not write backup {path}: {exc}") from exc

        self._created.add(os.path.abspath(path))
        artifact = BackupArtifact(
            path=path,
            reason=self._slug(reason),
            created_at=now.isoformat(timespec="seconds"),
            size_bytes=os.path.getsize(path),
        )
        self.logger.info("Backup created: %s (%s bytes)", path, artifact.size_bytes)
        self.console.print(f"[green]Backup created: {path}[/green]")
        return artifact

    def list_backups(self) -> List[BackupArtifact]:
        if not os.path.isdir(self.backup_dir):
            return []

        artifacts = []
        for name in os.listdir(self.backup_dir):
            if not name.endswith(BACKUP_SUFFIX):
                continue
            path = os.path.join(self.backup_dir, name)
            if not os.path.isfile(path):
                continue
            stat = os.stat(path)
            artifacts.append(
                (
                    stat.st_mtime,
                    BackupArtifact(
                        path=path,
                        reason=self._reason_from_name(name),
                        created_at=datetime.fromtimestamp(stat.st_mtime, timezone.utc).isoformat(
                            timespec="seconds"
                        ),
                        size_bytes=stat.st_size,
                    ),
                )
            )
        return [artifact for _, artifact in sorted(artifacts, key=lambda item: item[0])]

    @staticmethod
    def _reason_from_name(name: str) -> str:
        match = re.match(
            rf"^{re.escape(BACKUP_PREFIX)}-(?:(.+)-)?\d{{8}}-\d{{6}}(?:-\d+)?{re.escape(BACKUP_SUFFIX)}$",
            name,
        )
        if not match:
            return "unknown"
        return match.group(1) or "manual"

    def restore(self, artifact_path: str, context: DeploymentContext) -> BackupArtifact:
        """Import *artifact_path* after a mandatory safety snapshot.

        Returns the safety snapshot, which is kept even when the import fails.
        """
        if not os.path.isfile(artifact_path):
            raise RestoreFailedError(actionable_error("backup_not_found", path=artifact_path))

        if not self.kubectl.namespace_exists(context.name, context.namespace):
            raise RestoreFailedError(
                actionable_error(
                    "namespace_missing", namespace=context.namespace, context=context.name
                )
            )

        self.logger.info(
            "Restoring %s (%s bytes) into %s",
            artifact_path,
            os.path.getsize(artifact_path),
            context.name,
        )
        self.console.print("[yellow]Creating safety backup before restore...[/yellow]")
        try:
            safety = self.snapshot(context, self.SAFETY_REASON)
        except BackupFailedError as exc:
            raise RestoreFailedError(
                f"Safety backup failed, restore aborted to protect current state: {exc}"
            ) from exc

        try:
            self.argocd.import_state(context.name, context.namespace, artifact_path)
        except DeployerError as exc:
            raise RestoreFailedError(
                f"Import of {artifact_path} failed: {exc}. Safety backup kept at {safety.path}."
            ) from exc

        self.console.print("[green]Configuration restored.[/green]")
        self.readiness.restart_server(context)
        self.logger.info("Restore complete. Safety backup: %s", safety.path)
        return safety

    def prune(self, max_age_days: int, now: Optional[float] = None) -> int:
        """Delete artifacts older than *max_age_days* whole days.

        Age is counted in whole days, so an artifact is removed only when its
        age in full days is strictly greater than the threshold.
        """
        if max_age_days < 0:
            raise DeployerError("max_age_days must be zero or positive.")

        current = time.time() if now is None else now
        removed = 0
        for artifact in self.list_backups():
            if os.path.abspath(artifact.path) in self._created:
                continue
            age_days = int((current - os.path.getmtime(artifact.path)) // SECONDS_PER_DAY)
            if age_days <= max_age_days:
                continue
            try:
                os.remove(artifact.path)
            except OSError as exc:
                self.logger.warning("Could not delete %s: %s", artifact.path, exc)
                continue
            self.logger.info("Deleted backup %s (%s days old)", artifact.path, age_days)
            removed += 1

        self.console.print(f"[green]{removed} old backup(s) deleted.[/green]")
        return removed
