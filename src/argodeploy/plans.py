"""Fixed step plans for the hub and spoke roles."""

import os
from dataclasses import replace
from typing import List, Sequence

from .constants import (
    APPLICATION_CRD,
    CRD_TIMEOUT_SECONDS,
    DEFAULT_NAMESPACE,
    GATE_CRD_ESTABLISHED,
    GATE_POD_READY,
    POD_READY_TIMEOUT_SECONDS,
    SERVER_POD_SELECTOR,
)
from .models import ReadinessGate, Step

HUB_MANIFESTS = (
    ("CRD", "1-application-crd-v2.13.3.yaml", None),
    ("Namespace", "0-namespace.yaml", None),
    ("Server", "2-install-argocd-v2.13.3.yaml", DEFAULT_NAMESPACE),
    ("Core", "3-core-install-v2.13.3.yaml", DEFAULT_NAMESPACE),
    ("Runner", "4-gitlab-runner-role.yaml", DEFAULT_NAMESPACE),
    ("OnPrem+Ingress", "5-install-optional-k8s-onpremises.yaml", DEFAULT_NAMESPACE),
)

SPOKE_MANIFESTS = (
    ("CRD", "0-application-crd-v2.13.3.yaml", None),
    ("Manager", "1-argocd-cluster-access.yaml", DEFAULT_NAMESPACE),
    ("Controller", "2-argocd-remote-cluster-access.yaml", DEFAULT_NAMESPACE),
)


def _crd_gate() -> ReadinessGate:
    return ReadinessGate(
        kind=GATE_CRD_ESTABLISHED,
        target=APPLICATION_CRD,
        timeout_seconds=CRD_TIMEOUT_SECONDS,
    )


def _build(manifest_dir: str, entries, namespace: str) -> List[Step]:
    steps = []
    for label, filename, scope in entries:
        steps.append(
            Step(
                label=label,
                resource_set=os.path.join(manifest_dir, filename),
                namespace=namespace if scope else None,
            )
        )
    return steps


def hub_install_steps(manifest_dir: str, namespace: str = DEFAULT_NAMESPACE) -> List[Step]:
    steps = _build(manifest_dir, HUB_MANIFESTS, namespace)
    steps[0] = replace(steps[0], gate=_crd_gate())
    steps[-1] = replace(
        steps[-1],
        gate=ReadinessGate(
            kind=GATE_POD_READY,
            target=SERVER_POD_SELECTOR,
            namespace=namespace,
            timeout_seconds=POD_READY_TIMEOUT_SECONDS,
        ),
    )
    return steps


def spoke_install_steps(manifest_dir: str, namespace: str = DEFAULT_NAMESPACE) -> List[Step]:
    steps = _build(manifest_dir, SPOKE_MANIFESTS, namespace)
    steps[0] = replace(steps[0], gate=_crd_gate())
    return steps


def uninstall_steps(install_steps: Sequence[Step]) -> List[Step]:
    """Reverse of *install_steps*, without readiness gates."""
    return [replace(step, gate=None) for step in reversed(list(install_steps))]
