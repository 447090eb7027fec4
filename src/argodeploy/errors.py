"""Domain errors for ArgoDeploy."""


class DeployerError(RuntimeError):
    """Raised when an operation cannot continue safely."""


class UnknownContextError(DeployerError):
    """Raised when a kubeconfig context cannot be resolved."""


class MissingResourceSetError(DeployerError):
    """Raised when a manifest referenced by a step is absent or unreadable."""


class CredentialUnavailableError(DeployerError):
    """Raised when the bootstrap secret cannot be read after all attempts."""


class AuthenticationFailedError(DeployerError):
    """Raised when the control plane rejects a login."""


class AmbiguousResponseError(AuthenticationFailedError):
    """Raised when remote output cannot be classified as success or failure."""


class AccountAlreadyExistsError(DeployerError):
    """Raised when an account name is already bound in the RBAC policy."""


class AccountNotFoundError(DeployerError):
    """Raised when an operation targets an account the control plane does not know."""


class RegistrationFailedError(DeployerError):
    """Raised when a spoke cluster could not be registered on the hub."""


class HubAuthFailedError(RegistrationFailedError):
    """Raised when the admin login on the hub fails during registration."""


class ReadinessTimeoutError(DeployerError):
    """Raised on a readiness timeout when the strict policy is active."""


class BackupFailedError(DeployerError):
    """Raised when a state export fails or produces an empty artifact."""


class RestoreFailedError(DeployerError):
    """Raised when a restore cannot run or its import fails."""
