"""Deploy action generator.

One executable per hook id, written once. An existing action is never
rewritten: it may have been edited by hand or be running right now.
"""

import os
import sys
from pathlib import Path

from hookdeploy.errors import DuplicateRegistrationError
from hookdeploy.logging import get_logger
from hookdeploy.models import RedeployPlan
from hookdeploy.templates import DEPLOY_ACTION_TEMPLATE

logger = get_logger(__name__)

# Directory the hookdeploy package is imported from (src/ in a checkout)
PACKAGE_ROOT = Path(__file__).resolve().parents[1]


def render_deploy_action(plan: RedeployPlan, python_executable: str | None = None) -> str:
    """Generate the source of the deploy action for `plan`.

    Args:
        plan: Branch, project directory and log file baked into the action.
        python_executable: Interpreter for the shebang line. Defaults to the
            interpreter running hookdeploy.

    The action puts PACKAGE_ROOT on sys.path itself, so it runs whether
    hookdeploy is installed or used from a source checkout.
    """
    return DEPLOY_ACTION_TEMPLATE.format(
        python_executable=python_executable or sys.executable,
        package_root=str(PACKAGE_ROOT),
        app_id=plan.app_id,
        project_dir=str(plan.project_dir),
        branch=plan.branch,
        log_file=str(plan.log_file),
        max_log_size=plan.max_log_size,
    )


def create_deploy_action(
    path: Path, plan: RedeployPlan, python_executable: str | None = None
) -> Path:
    """Write the deploy action to `path` and make it executable.

    Raises:
        DuplicateRegistrationError: If `path` already exists. The existing
            file is left untouched.
    """
    path = Path(path)
    source = render_deploy_action(plan, python_executable)
    path.parent.mkdir(parents=True, exist_ok=True)
    try:
        fd = os.open(path, os.O_WRONLY | os.O_CREAT | os.O_EXCL, 0o755)
    except FileExistsError:
        logger.error("deploy_action_exists", hook_id=plan.app_id, path=str(path))
        raise DuplicateRegistrationError(plan.app_id, path) from None

    with os.fdopen(fd, "w", encoding="utf-8") as f:
        f.write(source)
    # O_CREAT mode is filtered by the umask
    os.chmod(path, 0o755)

    logger.info("deploy_action_created", hook_id=plan.app_id, path=str(path), branch=plan.branch)
    return path
