"""Ordered resource-set execution for ArgoDeploy."""

import os
import time
from typing import Sequence

from argodeploy.errors import MissingResourceSetError, UnknownContextError
from argodeploy.errors_catalog import actionable_error
from argodeploy.models import DeploymentContext, Step, StepReport


class StepExecutor:
    """Applies or removes ordered resource sets against one context."""

    APPLY = "apply"
    DELETE = "delete"

    def __init__(self, kubectl, readiness, logger, console, settle_seconds: float = 2.0):
        self.kubectl = kubectl
        self.readiness = readiness
        self.logger = logger
        self.console = console
        self.settle_seconds = settle_seconds

    def validate_context(self, context: DeploymentContext):
        self.logger.info("Validating kubeconfig context: %s", context.name)
        available = self.kubectl.list_contexts()
        if context.name not in available:
            if available:
                self.logger.info("Available contexts: %s", ", ".join(available))
            raise UnknownContextError(actionable_error("unknown_context", context=context.name))
        self.console.print(f"[green]Context '{context.name}' validated.[/green]")

    def validate_resource_sets(self, steps: Sequence[Step]):
        for step in steps:
            path = step.resource_set
            if not os.path.isfile(path) or not os.access(path, os.R_OK):
                raise MissingResourceSetError(actionable_error("missing_resource_set", path=path))
        self.logger.info("All %s manifests validated", len(steps))

    def preflight(self, context: DeploymentContext, steps: Sequence[Step]):
        self.validate_context(context)
        self.validate_resource_sets(steps)

    def run_steps(
        self, context: DeploymentContext, steps: Sequence[Step], direction: str
    ) -> StepReport:
        if direction not in (self.APPLY, self.DELETE):
            raise ValueError(f"Unknown direction: {direction}")

        self.preflight(context, steps)

        report = StepReport(direction=direction, context=context.name)
        total = len(steps)
        verb = "Applying" if direction == self.APPLY else "Removing"

        for index, step in enumerate(steps, start=1):
            if report.failed and direction == self.APPLY:
                report.skipped.append(step.label)
                continue

            filename = os.path.basename(step.resource_set)
            self.logger.info("Step %s/%s started: %s [%s] %s", index, total, verb, step.label, filename)
            self.console.print(f"[blue]--- Step {index}/{total}: {step.label} ---[/blue]")

            if direction == self.APPLY:
                result = self.kubectl.apply(context.name, step.resource_set, step.namespace)
            else:
                result = self.kubectl.delete(context.name, step.resource_set, step.namespace)

            if result.returncode != 0:
                error = (result.stderr or result.stdout or "").strip()
                self.logger.error("Step %s/%s failed: %s. %s", index, total, step.label, error)
                self.console.print(f"[bold red]Step {step.label} failed.[/bold red] {error}")
                report.failed.append(step.label)
                continue

            self.logger.info("Step %s/%s succeeded: %s", index, total, step.label)
            report.completed.append(step.label)

            if direction == self.APPLY and step.gate is not None:
                if not self.readiness.wait_for_gate(context, step.gate):
                    report.warnings.append(f"Readiness timeout after step {step.label}")

            if index < total and self.settle_seconds > 0:
                time.sleep(self.settle_seconds)

        if report.ok:
            self.console.print(f"[green]{len(report.completed)}/{total} steps completed.[/green]")
        else:
            self.logger.error(
                "Steps failed: %s. Skipped: %s",
                ", ".join(report.failed),
                ", ".join(report.skipped) or "<none>",
            )
        return report
