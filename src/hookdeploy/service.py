"""systemd management for the shared webhook listener.

One listener serves every registered hook. Its unit is written once; each
registration restarts it so the daemon reloads hooks.json.
"""

import os
import shutil
from pathlib import Path

from tenacity import (
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_fixed,
)

from hookdeploy import commands
from hookdeploy.commands import CommandRunner
from hookdeploy.config import HookDeployConfig
from hookdeploy.errors import ServiceError, TransientServiceError
from hookdeploy.logging import get_logger
from hookdeploy.templates import SERVICE_UNIT_TEMPLATE

logger = get_logger(__name__)


def render_service_unit(config: HookDeployConfig, owner: str) -> str:
    """Generate the listener's systemd unit file."""
    return SERVICE_UNIT_TEMPLATE.format(
        env_file=config.env_file,
        listener_binary=config.listener_binary,
        hooks_file=config.hooks_file,
        port=config.listener_port,
        hooks_dir=config.hooks_dir,
        owner=owner,
    )


def ensure_listener_installed(config: HookDeployConfig, runner: CommandRunner) -> bool:
    """Install the listener package if its binary is missing.

    Returns:
        True if the package was installed by this call.
    """
    if shutil.which(config.listener_binary) or Path(config.listener_binary).exists():
        return False

    logger.info("listener_installing", package=config.listener_package)
    result = commands.install_listener_package(runner, config.listener_package)
    if not result.ok:
        raise ServiceError(
            f"Could not install {config.listener_package} (exit code {result.returncode}): "
            f"{result.output.strip()}"
        )
    return True


def unit_uses_templates(config: HookDeployConfig) -> bool:
    """Whether the installed unit starts the listener with -template.

    Without it the listener never expands the token rule's getenv call.
    """
    try:
        unit = config.service_file.read_text(encoding="utf-8")
    except FileNotFoundError:
        return False
    return "-template" in unit.split()


def ensure_service(config: HookDeployConfig, owner: str, runner: CommandRunner) -> bool:
    """Write and enable the listener unit if it does not exist yet.

    An existing unit is left alone. If it lacks -template a warning is
    logged, since hooks carrying a token rule will then never match.

    Returns:
        True if the unit was created by this call.
    """
    if config.service_file.exists():
        if unit_uses_templates(config):
            logger.debug("service_unit_present", path=str(config.service_file))
        else:
            logger.warning(
                "service_unit_without_templates",
                path=str(config.service_file),
                hint="regenerate the unit so ExecStart passes -template",
            )
        return False

    config.service_file.parent.mkdir(parents=True, exist_ok=True)
    config.service_file.write_text(render_service_unit(config, owner), encoding="utf-8")
    logger.info("service_unit_written", path=str(config.service_file), owner=owner)

    for args in (("daemon-reload",), ("enable", config.service_name)):
        result = commands.run_systemctl(runner, *args)
        if not result.ok:
            # Next run writes and enables it again
            config.service_file.unlink(missing_ok=True)
            raise ServiceError(
                f"systemctl {' '.join(args)} failed (exit code {result.returncode}): "
                f"{result.output.strip()}"
            )
    return True


def set_owner(path: Path, owner: str) -> None:
    """chown `path` to owner:owner. Skipped when not running as root."""
    if os.geteuid() != 0:
        logger.debug("chown_skipped", path=str(path), reason="not_root")
        return
    try:
        shutil.chown(path, user=owner, group=owner)
    except (LookupError, OSError) as e:
        raise ServiceError(f"Could not chown {path} to {owner}: {e}") from e


@retry(
    stop=stop_after_attempt(3),
    wait=wait_fixed(2),
    retry=retry_if_exception_type(TransientServiceError),
    reraise=True,
)
def restart_listener(config: HookDeployConfig, runner: CommandRunner) -> None:
    """Restart the listener so it picks up the updated registry.

    Raises:
        TransientServiceError: If systemctl still fails after the last attempt.
    """
    result = commands.run_systemctl(runner, "restart", config.service_name)
    if not result.ok:
        logger.warning(
            "listener_restart_failed",
            service=config.service_name,
            returncode=result.returncode,
        )
        raise TransientServiceError(
            f"systemctl restart {config.service_name} failed (exit code {result.returncode}): "
            f"{result.output.strip()}"
        )
    logger.info("listener_restarted", service=config.service_name)
