import subprocess

import pytest

import argodeploy.services.step_executor as step_executor_module
from argodeploy.errors import MissingResourceSetError, UnknownContextError
from argodeploy.models import DeploymentContext, ReadinessGate, Step
from argodeploy.services.step_executor import StepExecutor


class DummyLogger:
    def info(self, *_args, **_kwargs):
        return None

    def error(self, *_args, **_kwargs):
        return None


class DummyConsole:
    def print(self, *_args, **_kwargs):
        return None


class FakeKubectl:
    def __init__(self, contexts=("hub",), failing=()):
        self.contexts = list(contexts)
        self.failing = set(failing)
        self.calls = []

    def list_contexts(self):
        return self.contexts

    def _result(self, path):
        code = 1 if path in self.failing else 0
        return subprocess.CompletedProcess([], code, stdout="", stderr="error" if code else "")

    def apply(self, context, path, namespace=None):
        self.calls.append(("apply", context, path, namespace))
        return self._result(path)

    def delete(self, context, path, namespace=None):
        self.calls.append(("delete", context, path, namespace))
        return self._result(path)


class FakeReadiness:
    def __init__(self, ready=True):
        self.ready = ready
        self.gates = []

    def wait_for_gate(self, context, gate):
        self.gates.append(gate.target)
        return self.ready


@pytest.fixture(autouse=True)
def no_sleep(monkeypatch):
    monkeypatch.setattr(step_executor_module.time, "sleep", lambda _seconds: None)


@pytest.fixture
def manifests(tmp_path):
    steps = []
    for index, label in enumerate(("CRD", "Namespace", "Server")):
        path = tmp_path / f"{index}-{label.lower()}.yaml"
        path.write_text("kind: List\n", encoding="utf-8")
        gate = ReadinessGate(kind="crd-established", target="apps") if index == 0 else None
        steps.append(Step(label=label, resource_set=str(path), namespace="argocd", gate=gate))
    return steps


CONTEXT = DeploymentContext(name="hub")


def build(kubectl, readiness=None):
    return StepExecutor(kubectl, readiness or FakeReadiness(), DummyLogger(), DummyConsole())


def test_unknown_context_touches_no_step(manifests):
    kubectl = FakeKubectl(contexts=("other",))

    with pytest.raises(UnknownContextError):
        build(kubectl).run_steps(CONTEXT, manifests, StepExecutor.APPLY)

    assert kubectl.calls == []


def test_missing_manifest_fails_before_any_mutation(manifests, tmp_path):
    kubectl = FakeKubectl()
    steps = manifests + [Step(label="Extra", resource_set=str(tmp_path / "absent.yaml"))]

    with pytest.raises(MissingResourceSetError, match="absent.yaml"):
        build(kubectl).run_steps(CONTEXT, steps, StepExecutor.APPLY)

    assert kubectl.calls == []


def test_apply_runs_in_order_and_waits_for_gates(manifests):
    kubectl = FakeKubectl()
    readiness = FakeReadiness()

    report = build(kubectl, readiness).run_steps(CONTEXT, manifests, StepExecutor.APPLY)

    assert report.ok
    assert report.completed == ["CRD", "Namespace", "Server"]
    assert [call[2] for call in kubectl.calls] == [step.resource_set for step in manifests]
    assert all(call[1] == "hub" for call in kubectl.calls)
    assert readiness.gates == ["apps"]


def test_rerunning_install_is_not_an_error(manifests):
    kubectl = FakeKubectl()
    executor = build(kubectl)

    first = executor.run_steps(CONTEXT, manifests, StepExecutor.APPLY)
    second = executor.run_steps(CONTEXT, manifests, StepExecutor.APPLY)

    assert first.ok and second.ok
    assert len(kubectl.calls) == 6


def test_apply_failure_skips_dependent_steps(manifests):
    kubectl = FakeKubectl(failing={manifests[1].resource_set})

    report = build(kubectl).run_steps(CONTEXT, manifests, StepExecutor.APPLY)

    assert not report.ok
    assert report.completed == ["CRD"]
    assert report.failed == ["Namespace"]
    assert report.skipped == ["Server"]
    assert len(kubectl.calls) == 2


def test_delete_failure_continues_with_remaining_steps(manifests):
    kubectl = FakeKubectl(failing={manifests[0].resource_set})

    report = build(kubectl).run_steps(CONTEXT, manifests, StepExecutor.DELETE)

    assert report.failed == ["CRD"]
    assert report.completed == ["Namespace", "Server"]
    assert [call[0] for call in kubectl.calls] == ["delete", "delete", "delete"]


def test_gate_timeout_is_recorded_as_warning(manifests):
    report = build(FakeKubectl(), FakeReadiness(ready=False)).run_steps(
        CONTEXT, manifests, StepExecutor.APPLY
    )

    assert report.ok
    assert report.warnings == ["Readiness timeout after step CRD"]


def test_delete_does_not_wait_for_gates(manifests):
    readiness = FakeReadiness()

    build(FakeKubectl(), readiness).run_steps(CONTEXT, manifests, StepExecutor.DELETE)

    assert readiness.gates == []
