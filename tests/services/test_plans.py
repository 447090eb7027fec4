import os

from argodeploy import plans


def test_hub_plan_order_and_gates():
    steps = plans.hub_install_steps("k8s-main")

    assert [step.label for step in steps] == [
        "CRD",
        "Namespace",
        "Server",
        "Core",
        "Runner",
        "OnPrem+Ingress",
    ]
    assert steps[0].resource_set == os.path.join("k8s-main", "1-application-crd-v2.13.3.yaml")
    assert steps[0].namespace is None
    assert steps[1].namespace is None
    assert all(step.namespace == "argocd" for step in steps[2:])

    assert steps[0].gate.kind == "crd-established"
    assert steps[0].gate.timeout_seconds == 60
    assert steps[-1].gate.kind == "pod-ready"
    assert steps[-1].gate.target == "app.kubernetes.io/name=argocd-server"
    assert steps[-1].gate.timeout_seconds == 300
    assert all(step.gate is None for step in steps[1:-1])


def test_spoke_plan_honours_namespace():
    steps = plans.spoke_install_steps("k8s-remotes", namespace="gitops")

    assert [step.label for step in steps] == ["CRD", "Manager", "Controller"]
    assert [step.namespace for step in steps] == [None, "gitops", "gitops"]
    assert steps[0].gate is not None


def test_uninstall_is_exact_reverse_without_gates():
    install = plans.hub_install_steps("k8s-main")

    removal = plans.uninstall_steps(install)

    assert [step.resource_set for step in removal] == [step.resource_set for step in reversed(install)]
    assert all(step.gate is None for step in removal)
    assert install[0].gate is not None
