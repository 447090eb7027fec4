"""Readiness gates and restart waits for ArgoDeploy."""

import time
from typing import Callable

from argodeploy.constants import (
    GATE_CRD_ESTABLISHED,
    GATE_POD_READY,
    POLL_INTERVAL_SECONDS,
    READINESS_BEST_EFFORT,
    READINESS_POLICIES,
    READINESS_STRICT,
    ROLLOUT_TIMEOUT_SECONDS,
    SERVER_DEPLOYMENT,
)
from argodeploy.errors import DeployerError, ReadinessTimeoutError
from argodeploy.models import DeploymentContext, ReadinessGate


class ReadinessService:
    """Polls readiness conditions and applies the timeout policy."""

    def __init__(
        self,
        kubectl,
        logger,
        console,
        policy: str = READINESS_BEST_EFFORT,
        poll_interval_seconds: float = POLL_INTERVAL_SECONDS,
    ):
        if policy not in READINESS_POLICIES:
            raise DeployerError(
                f"Invalid readiness policy '{policy}'. Use one of: {', '.join(READINESS_POLICIES)}."
            )
        self.kubectl = kubectl
        self.logger = logger
        self.console = console
        self.policy = policy
        self.poll_interval_seconds = poll_interval_seconds

    def poll(self, check: Callable[[], bool], timeout_seconds: float) -> bool:
        deadline = time.monotonic() + timeout_seconds
        while True:
            if check():
                return True
            if time.monotonic() >= deadline:
                return False
            time.sleep(self.poll_interval_seconds)

    def on_timeout(self, description: str) -> bool:
        message = f"Timed out waiting for {description}"
        if self.policy == READINESS_STRICT:
            raise ReadinessTimeoutError(message)

        self.logger.warning("%s (continuing)", message)
        self.console.print(f"[yellow]{message} (continuing).[/yellow]")
        return False

    def wait_for_gate(self, context: DeploymentContext, gate: ReadinessGate) -> bool:
        if gate.kind == GATE_CRD_ESTABLISHED:
            description = f"CRD {gate.target}"

            def check() -> bool:
                return self.kubectl.crd_established(context.name, gate.target)

        elif gate.kind == GATE_POD_READY:
            namespace = gate.namespace or context.namespace
            description = f"pods {gate.target} in {namespace}"

            def check() -> bool:
                return self.kubectl.pods_ready(context.name, gate.target, namespace)

        else:
            raise DeployerError(f"Unknown readiness gate kind: {gate.kind}")

        self.logger.info("Waiting for %s (timeout %ss)", description, gate.timeout_seconds)
        self.console.print(f"[blue]Waiting for {description}...[/blue]")
        if self.poll(check, gate.timeout_seconds):
            self.logger.info("Ready: %s", description)
            self.console.print(f"[green]Ready: {description}.[/green]")
            return True
        return self.on_timeout(description)

    def restart_server(
        self,
        context: DeploymentContext,
        deployment: str = SERVER_DEPLOYMENT,
        timeout_seconds: int = ROLLOUT_TIMEOUT_SECONDS,
    ) -> bool:
        self.logger.info("Restarting deployment/%s in %s", deployment, context.namespace)
        self.console.print(f"[blue]Restarting {deployment}...[/blue]")
        self.kubectl.rollout_restart(context.name, deployment, context.namespace)

        if self.kubectl.rollout_status(context.name, deployment, context.namespace, timeout_seconds):
            self.logger.info("Rollout of %s finished", deployment)
            self.console.print(f"[green]{deployment} restarted.[/green]")
            return True
        return self.on_timeout(f"rollout of deployment/{deployment}")
