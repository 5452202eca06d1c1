"""Named interface over the external tools hookdeploy drives.

Every git, docker compose, systemctl and apt invocation goes through a
CommandRunner and comes back as a CommandResult, so callers can be exercised
with a fake runner instead of real processes.
"""

import pwd
import shutil
import subprocess
from dataclasses import dataclass
from pathlib import Path
from typing import Sequence

from hookdeploy.errors import MissingDependencyError
from hookdeploy.logging import get_logger

logger = get_logger(__name__)

# Exit status a shell reports for "command not found"
COMMAND_NOT_FOUND = 127


@dataclass(frozen=True)
class CommandResult:
    """Exit status and combined stdout/stderr of one external command."""

    args: tuple[str, ...]
    returncode: int
    output: str = ""

    @property
    def ok(self) -> bool:
        return self.returncode == 0


class CommandRunner:
    """Runs external commands synchronously with stdout and stderr merged."""

    def run(self, args: Sequence[str], cwd: Path | None = None) -> CommandResult:
        argv = tuple(str(a) for a in args)
        logger.debug("command_started", args=list(argv), cwd=str(cwd) if cwd else None)
        try:
            proc = subprocess.run(
                argv,
                cwd=cwd,
                stdout=subprocess.PIPE,
                stderr=subprocess.STDOUT,
                text=True,
            )
        except FileNotFoundError as e:
            logger.warning("command_not_found", command=argv[0], error=str(e))
            return CommandResult(argv, COMMAND_NOT_FOUND, f"{argv[0]}: command not found\n")

        result = CommandResult(argv, proc.returncode, proc.stdout or "")
        logger.debug("command_finished", args=list(argv), returncode=result.returncode)
        return result


# ---------------------------------------------------------------------------
# Redeploy steps
# ---------------------------------------------------------------------------
def run_git_checkout(runner: CommandRunner, project_dir: Path, branch: str) -> CommandResult:
    return runner.run(["git", "checkout", branch], cwd=project_dir)


def run_git_pull(runner: CommandRunner, project_dir: Path, branch: str) -> CommandResult:
    return runner.run(["git", "pull", "origin", branch], cwd=project_dir)


def run_container_stop(runner: CommandRunner, project_dir: Path) -> CommandResult:
    return runner.run(["docker", "compose", "down"], cwd=project_dir)


def run_container_rebuild(runner: CommandRunner, project_dir: Path) -> CommandResult:
    return runner.run(["docker", "compose", "up", "-d", "--build"], cwd=project_dir)


# ---------------------------------------------------------------------------
# Provisioning helpers
# ---------------------------------------------------------------------------
def run_systemctl(runner: CommandRunner, *args: str) -> CommandResult:
    return runner.run(["systemctl", *args])


def install_listener_package(runner: CommandRunner, package: str) -> CommandResult:
    return runner.run(["apt-get", "install", "-y", package])


def add_git_safe_directory(runner: CommandRunner, owner: str, project_dir: Path) -> CommandResult:
    """Mark project_dir as a git safe.directory in the owner's global config."""
    return runner.run(
        [
            "sudo", "-u", owner,
            "git", "config", "--global", "--add", "safe.directory", str(project_dir),
        ]
    )


def find_missing_tools(tools: Sequence[str]) -> list[str]:
    """Return the tools from `tools` that are not on PATH, in order."""
    return [tool for tool in tools if shutil.which(tool) is None]


def check_dependencies(tools: Sequence[str]) -> None:
    """Raise MissingDependencyError if any of `tools` is not installed."""
    missing = find_missing_tools(tools)
    if missing:
        logger.error("dependencies_missing", missing=missing)
        raise MissingDependencyError(missing)
    logger.debug("dependencies_ok", tools=list(tools))


def user_exists(name: str) -> bool:
    try:
        pwd.getpwnam(name)
    except KeyError:
        return False
    return True


def resolve_owner(preferred: str, fallback: str) -> str:
    """Pick the account that owns generated files."""
    return preferred if user_exists(preferred) else fallback
