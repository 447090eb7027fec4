"""Shared domain models for ArgoDeploy."""

from dataclasses import dataclass, field
from typing import List, Optional

from .constants import DEFAULT_NAMESPACE


@dataclass(frozen=True)
class DeploymentContext:
    """Target cluster (kubeconfig context) and control-plane namespace."""

    name: str
    namespace: str = DEFAULT_NAMESPACE


@dataclass(frozen=True)
class ReadinessGate:
    """Blocking condition checked after a step is applied."""

    kind: str
    target: str
    namespace: Optional[str] = None
    timeout_seconds: int = 60


@dataclass(frozen=True)
class Step:
    label: str
    resource_set: str
    namespace: Optional[str] = None
    gate: Optional[ReadinessGate] = None


@dataclass
class StepReport:
    """Outcome of running an ordered list of steps."""

    direction: str
    context: str
    completed: List[str] = field(default_factory=list)
    failed: List[str] = field(default_factory=list)
    skipped: List[str] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.failed


@dataclass(frozen=True)
class Session:
    """Authenticated argocd CLI session for one invocation."""

    server: str
    username: str


@dataclass(frozen=True)
class LoginResult:
    success: bool
    reason: str = ""
    ambiguous: bool = False


@dataclass(frozen=True)
class BackupArtifact:
    path: str
    reason: str
    created_at: str
    size_bytes: int


@dataclass(frozen=True)
class IssuedToken:
    account: str
    token: str
    validity: str
    saved_to: Optional[str] = None
