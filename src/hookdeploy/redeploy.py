"""Runtime of a generated deploy action.

A run checks out and pulls the bound branch, then stops and rebuilds the
project's docker compose stack. Steps run in order and the first failure
ends the run. Everything is appended to the app's redeploy log, which is
rotated once it reaches the configured size.
"""

import os
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import Callable

from hookdeploy import commands
from hookdeploy.commands import CommandResult, CommandRunner
from hookdeploy.errors import DirectoryUnavailableError, ExternalCommandFailedError, RedeployError
from hookdeploy.logging import get_logger, hook_context
from hookdeploy.models import RedeployPlan

logger = get_logger(__name__)

RULE = "-" * 102
TIMESTAMP_FORMAT = "%Y-%m-%d %H:%M:%S"
ROTATION_SUFFIX_FORMAT = "%Y%m%d%H%M%S"


@dataclass(frozen=True)
class RedeployStep:
    """One fatal-on-failure step of a redeploy."""

    name: str
    announcement: str
    error_marker: str
    run: Callable[[CommandRunner, RedeployPlan], CommandResult]


REDEPLOY_STEPS: tuple[RedeployStep, ...] = (
    RedeployStep(
        name="git_checkout",
        announcement="➡️  Cambiando a la rama indicada...",
        error_marker="❌ Error en git checkout",
        run=lambda runner, plan: commands.run_git_checkout(runner, plan.project_dir, plan.branch),
    ),
    RedeployStep(
        name="git_pull",
        announcement="➡️  Haciendo pull de cambios desde Git...",
        error_marker="❌ Error en git pull",
        run=lambda runner, plan: commands.run_git_pull(runner, plan.project_dir, plan.branch),
    ),
    RedeployStep(
        name="container_stop",
        announcement="➡️  Apagando contenedores Docker...",
        error_marker="❌ Error al bajar contenedores Docker",
        run=lambda runner, plan: commands.run_container_stop(runner, plan.project_dir),
    ),
    RedeployStep(
        name="container_rebuild",
        announcement="➡️  Reconstruyendo y levantando contenedores Docker...",
        error_marker="❌ Error al levantar contenedores Docker",
        run=lambda runner, plan: commands.run_container_rebuild(runner, plan.project_dir),
    ),
)


class DeployLog:
    """Append-only redeploy log with size-based rotation."""

    def __init__(self, path: Path) -> None:
        self.path = Path(path)

    def prepare(self, max_size: int, now: datetime) -> Path | None:
        """Ensure the log exists, rotating it first if it reached `max_size`.

        Returns:
            Path of the rotated file, or None if no rotation happened.
        """
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self.path.touch(exist_ok=True)
        os.chmod(self.path, 0o644)

        if self.path.stat().st_size < max_size:
            return None

        rotated = self.path.with_name(f"{self.path.name}.{now.strftime(ROTATION_SUFFIX_FORMAT)}.old")
        os.replace(self.path, rotated)
        self.path.touch()
        os.chmod(self.path, 0o644)
        logger.info("redeploy_log_rotated", path=str(self.path), rotated=str(rotated))
        return rotated

    def write(self, *lines: str) -> None:
        with open(self.path, "a", encoding="utf-8") as f:
            for line in lines:
                f.write(line + "\n")

    def write_output(self, output: str) -> None:
        if not output:
            return
        with open(self.path, "a", encoding="utf-8") as f:
            f.write(output if output.endswith("\n") else output + "\n")


def _check_project_dir(project_dir: Path) -> None:
    if not project_dir.is_dir() or not os.access(project_dir, os.R_OK | os.X_OK):
        raise DirectoryUnavailableError(f"No se pudo cambiar al directorio {project_dir}")


def run_redeploy(
    plan: RedeployPlan,
    runner: CommandRunner | None = None,
    now: Callable[[], datetime] = datetime.now,
) -> int:
    """Run one redeploy for `plan`.

    Returns:
        0 on success, 1 if the project directory is unavailable or any step
        failed. Failures are recorded in the log with a ❌ marker.
    """
    runner = runner or CommandRunner()
    with hook_context(plan.app_id, branch=plan.branch):
        return _run(plan, runner, now)


def _run(plan: RedeployPlan, runner: CommandRunner, now: Callable[[], datetime]) -> int:
    log = DeployLog(plan.log_file)
    log.prepare(plan.max_log_size, now())

    log.write(
        "",
        RULE,
        f"📅 {now().strftime(TIMESTAMP_FORMAT)} - Iniciando redeploy",
        RULE,
    )
    logger.info("redeploy_started", project_dir=str(plan.project_dir))

    try:
        try:
            _check_project_dir(plan.project_dir)
        except DirectoryUnavailableError as e:
            log.write(f"❌ {now().strftime(TIMESTAMP_FORMAT)} - {e}")
            raise

        for step in REDEPLOY_STEPS:
            log.write(step.announcement)
            result = step.run(runner, plan)
            log.write_output(result.output)
            if not result.ok:
                log.write(step.error_marker)
                raise ExternalCommandFailedError(step.name, result)
    except RedeployError as e:
        logger.error("redeploy_failed", error=str(e))
        return 1

    log.write("✅ Despliegue completado correctamente.", RULE, "")
    logger.info("redeploy_succeeded")
    return 0
