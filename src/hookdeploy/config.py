"""Provisioning configuration loaded from environment variables.

Defaults match a stock single-host install: hooks live under /opt/hooks and
the adnanh/webhook listener runs as a systemd unit on port 60001.
"""

from pathlib import Path

from pydantic import Field
from pydantic_settings import BaseSettings


class HookDeployConfig(BaseSettings):
    """Provisioning configuration loaded from environment variables.

    Every field can be overridden with a HOOKDEPLOY_-prefixed variable
    (e.g. HOOKDEPLOY_HOOKS_DIR=/srv/hooks) or from a local .env file.
    """

    # Shared hook state
    hooks_dir: Path = Field(
        default=Path("/opt/hooks"),
        description="Directory holding the registry, the secret and deploy actions",
    )
    hooks_file_name: str = Field(
        default="hooks.json",
        description="Registry file read by the listener daemon",
    )
    env_file_name: str = Field(
        default=".env",
        description="Secret file loaded as the listener's environment",
    )
    logs_dir_name: str = Field(
        default="logs",
        description="Subdirectory of hooks_dir for redeploy logs",
    )

    # Listener daemon (adnanh/webhook under systemd)
    service_file: Path = Field(
        default=Path("/etc/systemd/system/webhook.service"),
        description="systemd unit file for the listener",
    )
    service_name: str = Field(
        default="webhook.service",
        description="systemd unit name",
    )
    listener_binary: str = Field(
        default="/usr/bin/webhook",
        description="Listener daemon executable",
    )
    listener_package: str = Field(
        default="webhook",
        description="apt package providing the listener",
    )
    listener_port: int = Field(
        default=60001,
        description="Port the listener binds (also used in the example request)",
    )

    # Hook records
    id_namespace: str = Field(
        default="webhook",
        description="Prefix for every hook id",
    )
    default_branch: str = Field(
        default="main",
        description="Branch whose hook id carries no suffix",
    )
    response_message: str = Field(
        default="Deploy ejecutado",
        description="Static body returned by the listener on a triggered hook",
    )
    token_bytes: int = Field(
        default=32,
        description="Random bytes in the shared secret token (hex-encoded)",
    )

    # Generated actions
    log_max_size: int = Field(
        default=10000,
        description="Redeploy log size in bytes that triggers rotation",
    )
    owner_user: str = Field(
        default="root",
        description="Owner of generated files when preferred_owner is absent",
    )
    preferred_owner: str = Field(
        default="sistemasweb",
        description="Owner of generated files when this account exists",
    )
    required_tools: list[str] = Field(
        default=["git", "docker"],
        description="Executables that must be on PATH before provisioning",
    )

    # Example request
    public_ip_url: str = Field(
        default="https://ipinfo.io/ip",
        description="Endpoint returning this host's public address",
    )
    public_ip_timeout: float = Field(
        default=5.0,
        description="Timeout in seconds for the public address lookup",
    )

    # Logging
    log_json: bool = Field(
        default=False,
        description="Output logs in JSON format (for production)",
    )
    log_level: str = Field(
        default="INFO",
        description="Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)",
    )

    model_config = {
        "env_prefix": "HOOKDEPLOY_",
        "case_sensitive": False,
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "extra": "ignore",
    }

    @property
    def hooks_file(self) -> Path:
        return self.hooks_dir / self.hooks_file_name

    @property
    def env_file(self) -> Path:
        return self.hooks_dir / self.env_file_name

    @property
    def logs_dir(self) -> Path:
        return self.hooks_dir / self.logs_dir_name

    def action_path(self, app_id: str) -> Path:
        """Path of the generated deploy action for a hook id."""
        return self.hooks_dir / f"{app_id}.py"

    def log_path(self, app_id: str) -> Path:
        """Path of the redeploy log for a hook id."""
        return self.logs_dir / f"{app_id}.log"


# Singleton pattern
_config: HookDeployConfig | None = None


def get_config() -> HookDeployConfig:
    """Get the provisioning configuration singleton.

    Returns:
        HookDeployConfig: Provisioning configuration instance
    """
    global _config
    if _config is None:
        _config = HookDeployConfig()
    return _config
