"""Register a project branch as a webhook-triggered redeploy.

Control flow: derive the hook id and refuse early (missing tools, corrupt
registry, existing action, unreadable secret file). Then make sure the
listener is installed and its service exists, write the deploy action and
secret, upsert the registry record and restart the listener. The action is
removed again if the secret or the upsert fails.
"""

import os
from pathlib import Path
from typing import Callable

from hookdeploy import commands, service
from hookdeploy.actions import create_deploy_action
from hookdeploy.commands import CommandRunner
from hookdeploy.config import HookDeployConfig
from hookdeploy.errors import DuplicateRegistrationError, ServiceError
from hookdeploy.logging import get_logger, hook_context
from hookdeploy.models import HookRecord, ProvisionResult, RedeployPlan, token_trigger_rule
from hookdeploy.registry import HookRegistry, compute_app_id
from hookdeploy.secret_store import get_or_create_secret, read_secret

logger = get_logger(__name__)


def build_hook_record(config: HookDeployConfig, app_id: str) -> HookRecord:
    return HookRecord(
        id=app_id,
        execute_command=str(config.action_path(app_id)),
        working_directory=str(config.hooks_dir),
        response_message=config.response_message,
        trigger_rule=token_trigger_rule(),
    )


def provision(
    project_dir: Path,
    branch: str,
    config: HookDeployConfig,
    runner: CommandRunner | None = None,
    update: bool = False,
    restart: bool = True,
    echo: Callable[[str], None] = print,
) -> ProvisionResult:
    """Register `branch` of the project in `project_dir`.

    Args:
        project_dir: Root of the project (holds the docker compose file).
        branch: Branch the hook deploys.
        config: Provisioning configuration.
        runner: External command runner (systemctl, apt, git config).
        update: Replace the registry record even if a deploy action already
            exists for the id. The existing action is kept as is.
        restart: Restart the listener after updating the registry.
        echo: Receives one human-readable status line per phase.

    Raises:
        MissingDependencyError: A required tool is not installed.
        RegistryCorruptError: hooks.json exists but cannot be parsed.
        ProvisioningError: The secret file exists without a SECRET_TOKEN.
        DuplicateRegistrationError: The action exists and update is False.
        ServiceError: A service or ownership step failed.
    """
    runner = runner or CommandRunner()
    project_dir = Path(project_dir).resolve()
    app_id = compute_app_id(
        project_dir.name,
        branch,
        namespace=config.id_namespace,
        default_branch=config.default_branch,
    )
    with hook_context(app_id, branch=branch):
        return _register(app_id, project_dir, branch, config, runner, update, restart, echo)


def _register(
    app_id: str,
    project_dir: Path,
    branch: str,
    config: HookDeployConfig,
    runner: CommandRunner,
    update: bool,
    restart: bool,
    echo: Callable[[str], None],
) -> ProvisionResult:
    action_path = config.action_path(app_id)

    # Refusals happen before anything is written
    commands.check_dependencies(config.required_tools)
    registry = HookRegistry(config.hooks_file)
    registry.load()
    action_exists = action_path.exists()
    if action_exists and not update:
        logger.error("registration_refused", reason="action_exists", path=str(action_path))
        raise DuplicateRegistrationError(app_id, action_path)
    read_secret(config.env_file)

    owner = commands.resolve_owner(config.preferred_owner, config.owner_user)

    # Host-level setup: a failure here leaves no hook half registered
    if service.ensure_listener_installed(config, runner):
        echo(f"📦 {config.listener_package} instalado.")
    if service.ensure_service(config, owner, runner):
        echo(f"🛠️  Servicio {config.service_name} creado.")
    elif not service.unit_uses_templates(config):
        echo(
            f"⚠️  {config.service_file} no inicia el listener con -template: "
            "la validación del token no funcionará hasta que se regenere la unidad."
        )

    result = commands.add_git_safe_directory(runner, owner, project_dir)
    if not result.ok:
        raise ServiceError(
            f"Could not add {project_dir} as a git safe.directory for {owner}: "
            f"{result.output.strip()}"
        )

    config.logs_dir.mkdir(parents=True, exist_ok=True)
    os.chmod(config.logs_dir, 0o755)
    service.set_owner(config.logs_dir, owner)

    if action_exists:
        echo(f"♻️  Conservando el script de redeploy existente: {action_path}")
    else:
        plan = RedeployPlan(
            app_id=app_id,
            project_dir=project_dir,
            branch=branch,
            log_file=config.log_path(app_id),
            max_log_size=config.log_max_size,
        )
        create_deploy_action(action_path, plan)
        echo(f"📝 Script de redeploy creado: {action_path}")

    try:
        if not action_exists:
            service.set_owner(action_path, owner)
        secret = get_or_create_secret(config.env_file, config.token_bytes)
        outcome = registry.upsert(build_hook_record(config, app_id))
    except Exception:
        # The action is only kept once its hook is registered
        if not action_exists:
            action_path.unlink(missing_ok=True)
            logger.error("registration_rolled_back", path=str(action_path))
        raise

    echo("🔐 Token secreto generado." if secret.created else "🔐 Usando token existente.")
    echo(
        {
            "created": f"📄 {config.hooks_file} creado.",
            "appended": "➕ Hook agregado.",
            "updated": "🔄 Hook existente actualizado.",
        }[outcome.value]
    )

    service.set_owner(config.hooks_dir, owner)
    service.set_owner(config.service_file, owner)

    if restart:
        echo(f"🔄 Reiniciando {config.service_name} para aplicar cambios...")
        service.restart_listener(config, runner)

    logger.info("registration_completed", outcome=outcome.value, action_created=not action_exists)
    return ProvisionResult(
        app_id=app_id,
        action_path=action_path,
        action_created=not action_exists,
        outcome=outcome,
        token=secret.value,
        token_created=secret.created,
        port=config.listener_port,
    )
