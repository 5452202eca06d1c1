"""Error hierarchy for hook provisioning and redeploy runs.

Provisioning errors abort a whole registration before the registry is
written. Redeploy errors abort a single run of a generated deploy action and
never touch the registry.

The split also drives tenacity retries around the listener restart:
    @retry(retry=retry_if_exception_type(TransientServiceError), stop=stop_after_attempt(3))
    def restart_listener(...):
        ...
"""

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from hookdeploy.commands import CommandResult


class HookDeployError(Exception):
    """Base exception for all hookdeploy errors."""

    pass


class ProvisioningError(HookDeployError):
    """Registration aborted; the registry was not modified."""

    pass


class MissingDependencyError(ProvisioningError):
    """A required external tool is not installed."""

    def __init__(self, missing: list[str]) -> None:
        self.missing = list(missing)
        super().__init__(
            f"Missing required tools: {', '.join(self.missing)}. "
            "Install them before continuing."
        )


class DuplicateRegistrationError(ProvisioningError):
    """A deploy action already exists for the computed hook id.

    Existing actions are never overwritten; use the update path to replace
    only the registry record.
    """

    def __init__(self, app_id: str, path: object) -> None:
        self.app_id = app_id
        self.path = path
        super().__init__(f"Webhook {app_id} already exists ({path})")


class RegistryCorruptError(ProvisioningError):
    """The registry file exists but is not a valid list of hook records."""

    pass


class ServiceError(ProvisioningError):
    """A systemd, apt or ownership step failed."""

    pass


class TransientServiceError(ServiceError):
    """Service operation failed in a way that may succeed on retry.

    Examples: systemctl restart racing a previous restart, unit still activating.
    """

    pass


class RedeployError(HookDeployError):
    """A single run of a deploy action aborted."""

    pass


class ExternalCommandFailedError(RedeployError):
    """A git or docker compose step returned a nonzero status."""

    def __init__(self, step: str, result: "CommandResult") -> None:
        self.step = step
        self.result = result
        super().__init__(f"{step} failed with exit code {result.returncode}")


class DirectoryUnavailableError(RedeployError):
    """The project directory is missing or not accessible at redeploy time."""

    pass
